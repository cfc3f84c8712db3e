"""
Conductor entry point.

This file handles startup concerns (arg-parsing, logging) and launches the appropriate interface
(API or interactive shell).
"""

import argparse
import logging
import sys

from conductor.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stderr,
    )
    # HTTP client libraries are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Conductor application.

    Parses the command line, initializes logging, and starts either the REST API or the
    interactive shell.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Control a music player with natural language")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="cli",
        help="Launch the REST API or the interactive shell (default: cli)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting Conductor [%s mode]", args.mode)
    secrets = {"OPENROUTER_API_KEY", "ANTHROPIC_API_KEY"}
    logger.debug("Settings: %s", settings.model_dump(exclude=secrets))

    if args.mode == "api":
        # Lazy import to avoid web dependencies if not needed
        from conductor.api.app import run_api  # pylint: disable=import-outside-toplevel

        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
    else:
        from conductor.client.cli import run_cli  # pylint: disable=import-outside-toplevel

        run_cli()


if __name__ == "__main__":
    main()

"""Interactive terminal shell for Conductor."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import (
    Any,
    Tuple,
)

from conductor.agent.command_agent import CommandAgent
from conductor.agent.providers import ProviderError
from conductor.config import settings
from conductor.core.schema import (
    ProviderConfig,
    ProviderKind,
)
from conductor.dispatch.dispatcher import Dispatcher
from conductor.dispatch.playlist import PlaylistGenerator
from conductor.player.memory_player import load_player

logger = logging.getLogger(__name__)


class Color(str, Enum):
    """ANSI colours, named by what the shell uses them for."""

    ERROR = "\033[91m"
    OK = "\033[92m"
    NOTE = "\033[33m"
    PROMPT = "\033[94m"
    INFO = "\033[96m"


RESET = "\033[0m"

HELP = """\
Type what you want to hear, e.g. "play some miles davis" or "make a relaxing jazz playlist".
  /provider <openrouter|ollama|anthropic>   switch AI provider (history is kept)
  /model <id>                               switch model
  /models                                   list models of the current provider
  /history                                  show the conversation so far
  /clear                                    forget the conversation
  exit | quit                               leave"""


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def echo(text: str, color: Color, **kwargs: Any) -> None:
    print(f"{color.value}{text}{RESET}", **kwargs)


def _describe_agent(agent: CommandAgent) -> str:
    return f"Provider: {agent.provider_kind.value} ({agent.model})"


def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


async def handle_slash_command(agent: CommandAgent, line: str) -> None:
    """Run a ``/command`` typed at the prompt."""
    name, _, arg = line[1:].partition(" ")
    arg = arg.strip()
    try:
        if name == "provider" and arg:
            agent.set_provider(ProviderConfig.from_settings(ProviderKind(arg.lower())))
            echo(_describe_agent(agent), Color.OK)
        elif name == "model" and arg:
            agent.set_model(arg)
            echo(f"Model: {agent.model}", Color.OK)
        elif name == "models":
            models = await agent.list_models()
            for info in models:
                echo(f"  {info.id}", Color.INFO)
            if not models:
                echo("No model list available for this provider.", Color.NOTE)
        elif name == "history":
            for turn in agent.history:
                echo(f"{turn.role}: {turn.content}", Color.INFO)
        elif name == "clear":
            agent.clear_history()
            echo("Conversation cleared.", Color.OK)
        else:
            echo(HELP, Color.NOTE)
    except ProviderError as exc:
        echo(exc.user_message(), Color.ERROR)
    except ValueError as exc:
        echo(f"{exc}", Color.ERROR)


async def handle_command(agent: CommandAgent, dispatcher: Dispatcher, line: str) -> None:
    """Send one utterance through the agent and execute what comes back."""
    try:
        response = await agent.process_command(line, deadline=settings.REQUEST_TIMEOUT * 3)
    except ProviderError as exc:
        echo(f"⚠️ {exc.user_message()}", Color.ERROR)
        return

    if response.message:
        echo(response.message, Color.NOTE)

    result = await dispatcher.execute(response.tool_calls)
    for outcome in result.outcomes:
        color = Color.OK if outcome.ok else Color.ERROR
        echo(f"[{outcome.tool}] {outcome.summary}", color)


async def shell(agent: CommandAgent, dispatcher: Dispatcher) -> None:
    """Prompt loop; returns when the user exits."""
    echo("\n🎵 Conductor shell - type /help for commands, 'exit' to quit", Color.OK)
    echo(_describe_agent(agent), Color.INFO)
    while True:
        echo("\n🧑 You: ", Color.PROMPT, end="", flush=True)
        # Blocking read on the event loop thread so Ctrl+C interrupts input() directly.
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue
        if user_msg.startswith("/"):
            await handle_slash_command(agent, user_msg)
        else:
            await handle_command(agent, dispatcher, user_msg)


def run_cli() -> None:
    """Build the agent and player from settings and run the shell."""
    try:
        agent = CommandAgent(ProviderConfig.from_settings(), max_turns=settings.MAX_TURNS)
    except ProviderError as exc:
        echo(f"⚠️ {exc.user_message()}", Color.ERROR)
        echo("Falling back to the local Ollama provider.", Color.NOTE)
        fallback = ProviderConfig.from_settings(ProviderKind.OLLAMA)
        agent = CommandAgent(fallback, max_turns=settings.MAX_TURNS)

    player = load_player()
    generator = PlaylistGenerator(player, settings.PLAYLIST_MAX_QUERIES)
    dispatcher = Dispatcher(player, player, generator)
    try:
        asyncio.run(shell(agent, dispatcher))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run_cli()

"""
REST API for Conductor.

This module exposes the command pipeline to other frontends:
- **GET /health**     - liveness probe for health checks.
- **POST /command**   - one natural-language command: {"message": "..."}
- **GET /history**    - current conversation turns; **DELETE /history** forgets them.
- **GET /provider**   - active provider and model; **PUT /provider** switches provider.
- **PUT /model**      - switch model on the active provider.
- **GET /models**     - models offered by the active provider.
"""

import logging
from typing import (
    List,
    Optional,
)

from fastapi import (
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.middleware.cors import CORSMiddleware

from conductor.agent.command_agent import CommandAgent
from conductor.agent.providers import ProviderError
from conductor.api.models import (
    AgentState,
    CommandRequest,
    CommandResponse,
    HistoryResponse,
    ModelRequest,
    ProviderRequest,
)
from conductor.config import settings
from conductor.core.schema import (
    ModelInfo,
    ProviderConfig,
)
from conductor.dispatch.dispatcher import Dispatcher
from conductor.dispatch.playlist import PlaylistGenerator
from conductor.player.memory_player import load_player

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
def _provider_http_error(exc: ProviderError) -> HTTPException:
    """Retryable provider failures are 503, everything else 502."""
    status = 503 if exc.retryable else 502
    return HTTPException(status_code=status, detail=exc.user_message())


def _agent(request: Request) -> CommandAgent:
    return request.app.state.agent


def _state(agent: CommandAgent) -> AgentState:
    return AgentState(
        provider=agent.provider_kind, model=agent.model, supported=agent.provider.supported
    )


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(
    agent: Optional[CommandAgent] = None,
    dispatcher: Optional[Dispatcher] = None,
) -> FastAPI:
    """
    Build the API around one agent and one dispatcher.

    Both default to instances built from :data:`settings` (provider from ``PROVIDER``, in-memory
    player from ``LIBRARY_PATH``).
    """
    app = FastAPI(
        title="Conductor API", version="0.1.0", description="Natural-language music control"
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if agent is None:
        agent = CommandAgent(ProviderConfig.from_settings(), max_turns=settings.MAX_TURNS)
    if dispatcher is None:
        player = load_player()
        generator = PlaylistGenerator(player, settings.PLAYLIST_MAX_QUERIES)
        dispatcher = Dispatcher(player, player, generator)
    app.state.agent = agent
    app.state.dispatcher = dispatcher

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/health", summary="Health check")
    async def health() -> dict[str, str]:
        """Return a simple liveness payload."""
        return {"status": "ok"}

    @app.post("/command", response_model=CommandResponse, summary="Process a command")
    async def command(req: CommandRequest, request: Request) -> CommandResponse:
        """Interpret the message, then run the resulting tool calls against the player."""
        agent = _agent(request)
        try:
            response = await agent.process_command(req.message, deadline=req.deadline)
        except ProviderError as exc:
            logger.warning("Command failed: %s", exc)
            raise _provider_http_error(exc) from exc

        result = await request.app.state.dispatcher.execute(response.tool_calls)
        reply = response.message or "\n".join(o.summary for o in result.outcomes) or "Done."
        return CommandResponse(
            reply=reply,
            tool_calls=response.tool_calls,
            summaries=result.summaries,
            errors=result.errors,
            rejected=response.rejected,
        )

    @app.get("/history", response_model=HistoryResponse, summary="Conversation history")
    async def get_history(request: Request) -> HistoryResponse:
        return HistoryResponse(turns=_agent(request).history)

    @app.delete("/history", status_code=204, summary="Forget the conversation")
    async def clear_history(request: Request) -> None:
        _agent(request).clear_history()

    @app.get("/provider", response_model=AgentState, summary="Active provider")
    async def get_provider(request: Request) -> AgentState:
        return _state(_agent(request))

    @app.put("/provider", response_model=AgentState, summary="Switch provider")
    async def set_provider(req: ProviderRequest, request: Request) -> AgentState:
        agent = _agent(request)
        config = ProviderConfig.from_settings(req.kind)
        if req.model:
            config = config.model_copy(update={"model": req.model})
        try:
            agent.set_provider(config)
        except ProviderError as exc:
            raise HTTPException(status_code=400, detail=exc.user_message()) from exc
        return _state(agent)

    @app.put("/model", response_model=AgentState, summary="Switch model")
    async def set_model(req: ModelRequest, request: Request) -> AgentState:
        agent = _agent(request)
        try:
            agent.set_model(req.model)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _state(agent)

    @app.get("/models", response_model=List[ModelInfo], summary="Available models")
    async def list_models(request: Request) -> List[ModelInfo]:
        try:
            return await _agent(request).list_models()
        except ProviderError as exc:
            raise _provider_http_error(exc) from exc

    return app


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0",
    port: int = 8000,
    reload: bool = False,
    log_level: str | None = None,
) -> None:
    """Start a uvicorn server hosting the app.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting Conductor API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    uvicorn.run(
        "conductor.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m conductor.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)

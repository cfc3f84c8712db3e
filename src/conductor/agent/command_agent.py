"""Command agent: one conversation, one active provider, one command at a time."""

import asyncio
import logging
from typing import (
    List,
    Sequence,
)

import httpx

from conductor.agent.context import (
    MAX_TURNS,
    ConversationContext,
)
from conductor.agent.normalizer import normalize
from conductor.agent.providers import (
    BaseProvider,
    ProviderError,
    load_provider,
)
from conductor.core.schema import (
    AgentResponse,
    ConversationTurn,
    ModelInfo,
    ProviderConfig,
    ProviderKind,
)
from conductor.tools import (
    ToolDefinition,
    get_tool_definitions,
)

logger = logging.getLogger(__name__)


class CommandAgent:
    """
    Facade over the provider adapters.

    Owns the conversation history and the provider configuration.  ``process_command`` calls are
    serialised so turns are always appended in order.  If a call fails or is cancelled, the user
    turn stays in history and no assistant turn is added.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        max_turns: int = MAX_TURNS,
        tools: Sequence[ToolDefinition] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._http_client = http_client
        self._config = config
        self._provider: BaseProvider = load_provider(config, http_client=http_client)
        self._context = ConversationContext(max_turns=max_turns)
        self._tools = list(tools) if tools is not None else get_tool_definitions()
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Provider state
    # ------------------------------------------------------------------ #
    @property
    def provider_kind(self) -> ProviderKind:
        return self._config.kind

    @property
    def provider(self) -> BaseProvider:
        return self._provider

    @property
    def model(self) -> str:
        return self._provider.model

    def set_provider(self, config: ProviderConfig) -> None:
        """
        Swap the active adapter.  History is kept; adapter-side caches start fresh.

        Raises :class:`ProviderError` (and keeps the current provider) if the new one cannot be
        built, e.g. a missing API key.
        """
        provider = load_provider(config, http_client=self._http_client)
        self._provider = provider
        self._config = config
        logger.info("Switched provider to %s (model %s)", config.kind.value, provider.model)

    def set_model(self, model_id: str) -> None:
        """Change the active adapter's model.  History is unaffected."""
        self._provider.set_model(model_id)
        self._config = self._config.model_copy(update={"model": self._provider.model})
        logger.info("Switched model to %s", self._provider.model)

    async def list_models(self) -> List[ModelInfo]:
        return await self._provider.list_models()

    # ------------------------------------------------------------------ #
    # History
    # ------------------------------------------------------------------ #
    @property
    def history(self) -> List[ConversationTurn]:
        return self._context.get_history()

    def clear_history(self) -> None:
        self._context.clear()

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #
    async def process_command(self, utterance: str, deadline: float | None = None) -> AgentResponse:
        """
        Run one command turn and return the normalized response.

        Parameters
        ----------
        utterance:
            The user's free-form text.
        deadline:
            Optional limit in seconds for the provider call.  Expiry raises a retryable
            :class:`ProviderError`.

        Raises
        ------
        ProviderError
            If the provider call fails.  The user turn is kept for a retry.
        """
        async with self._lock:
            prior = self._context.get_history()
            self._context.append(ConversationTurn(role="user", content=utterance))

            call = self._provider.send(prior, utterance, self._tools)
            try:
                if deadline is None:
                    raw = await call
                else:
                    raw = await asyncio.wait_for(call, timeout=deadline)
            except asyncio.TimeoutError as exc:
                raise ProviderError(
                    f"no response within {deadline:.1f}s", kind="timeout", retryable=True
                ) from exc
            except ProviderError as exc:
                logger.error("Provider %s failed: %s", self.provider_kind.value, exc)
                raise

            response = normalize(raw, self._tools)
            reply = ConversationTurn(role="assistant", content=_history_text(response))
            self._context.append(reply)
            logger.debug(
                "Command processed: %d tool calls, %d rejected",
                len(response.tool_calls),
                len(response.rejected),
            )
            return response


def _history_text(response: AgentResponse) -> str:
    if response.message or not response.tool_calls:
        return response.message
    # No prose; remember what was done so follow-ups like "again" have context.
    return "Called tools: " + ", ".join(call.name for call in response.tool_calls)

"""
Provider adapters for Conductor.

This module is the only place that *directly* calls an AI backend.  Everything else (agent,
normalizer, dispatcher) stays provider-agnostic and only sees :class:`RawProviderResponse`.

Three back-ends are supported:

1. **OpenRouter** - native function calling through the OpenAI-compatible API.
2. **Ollama** - a local model that answers in free text; tool calls are scraped from embedded JSON.
3. **Anthropic** - placeholder that answers "not supported yet" instead of failing.

Additional providers can be added by subclassing :class:`BaseProvider` and registering via
:func:`register_provider`.
"""

import json
import logging
import os
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Sequence,
    Type,
)

import httpx

from conductor.agent.json_extract import extract_tool_calls
from conductor.core.schema import (
    ConversationTurn,
    ModelInfo,
    ProviderConfig,
    ProviderKind,
    RawInvocation,
    RawProviderResponse,
)
from conductor.tools import ToolDefinition

logger = logging.getLogger(__name__)

DEFAULT_OPENROUTER_URL = "https://openrouter.ai/api/v1"
# App attribution headers OpenRouter reads from every request.
OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://github.com/shelbeely/Conductor",
    "X-Title": "Conductor",
}
DEFAULT_OLLAMA_URL = "http://localhost:11434"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class ProviderError(RuntimeError):
    """
    A provider call failed.

    ``retryable`` is True for timeouts, connection problems, rate limits and 5xx responses; the
    caller decides whether to try again.  ``kind`` is one of ``not_configured``, ``auth``,
    ``timeout``, ``network``, ``rate_limit``, ``server``, ``bad_request`` or ``bad_response``.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        retryable: bool,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.retryable = retryable
        self.status_code = status_code

    def user_message(self) -> str:
        """Short, actionable explanation suitable for showing to the user."""
        if self.kind == "not_configured":
            return f"The AI provider is not configured: {self}"
        if self.kind == "auth":
            return "The AI provider rejected the credentials. Check your API key."
        if self.retryable:
            return "The AI provider is temporarily unavailable. Please try again."
        return f"The AI provider could not handle the request: {self}"


def _error_for_status(status: int, detail: str) -> ProviderError:
    if status == 429:
        kind, retryable, prefix = "rate_limit", True, "rate limited"
    elif status in (401, 403):
        kind, retryable, prefix = "auth", False, "unauthorized"
    elif status >= 500:
        kind, retryable, prefix = "server", True, "server error"
    else:
        kind, retryable, prefix = "bad_request", False, "request rejected"
    return ProviderError(f"{prefix}: {detail}", kind=kind, retryable=retryable, status_code=status)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PROVIDER_REGISTRY: Dict[ProviderKind, Type["BaseProvider"]] = {}


def register_provider(kind: ProviderKind) -> Callable:
    """Decorator to register a provider class under *kind*."""

    def wrapper(cls: Type["BaseProvider"]) -> Type["BaseProvider"]:
        cls.kind = kind
        _PROVIDER_REGISTRY[kind] = cls
        return cls

    return wrapper


def load_provider(
    config: ProviderConfig, http_client: httpx.AsyncClient | None = None
) -> "BaseProvider":
    """Factory that returns an instantiated provider for ``config.kind``."""
    cls = _PROVIDER_REGISTRY.get(config.kind)
    if cls is None:
        raise ValueError(f"Provider '{config.kind.value}' is not registered.")
    return cls(config, http_client=http_client)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseProvider(ABC):
    """Abstract adapter: (history, utterance, tools) -> raw provider response."""

    kind: ClassVar[ProviderKind]
    supported: ClassVar[bool] = True
    DEFAULT_MODEL: ClassVar[str] = ""

    SYSTEM_PROMPT: ClassVar[
        str
    ] = """\
You are a music player assistant. You help users control their music playback through natural
language commands. You have access to tools for searching, playing, queueing music, generating
playlists and controlling playback. When users ask to play something, search for it first, then
add it to the queue or play it. Be concise and friendly in your responses.
"""

    def __init__(
        self, config: ProviderConfig, http_client: httpx.AsyncClient | None = None
    ) -> None:
        self._config = config
        self._model = config.model or self.DEFAULT_MODEL
        self._timeout = config.timeout
        self._http_client = http_client

    @property
    def model(self) -> str:
        """Model id used for the next call."""
        return self._model

    def set_model(self, model_id: str) -> None:
        """Switch model; takes effect on the next call."""
        if not model_id or not model_id.strip():
            raise ValueError("Model id must not be empty.")
        self._model = model_id.strip()

    def _build_messages(
        self, system_prompt: str, history: Sequence[ConversationTurn], utterance: str
    ) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt},
            *({"role": turn.role, "content": turn.content} for turn in history),
            {"role": "user", "content": utterance},
        ]

    async def list_models(self) -> List[ModelInfo]:
        """Models this provider can be switched to (empty when unknown)."""
        return []

    @abstractmethod
    async def send(
        self,
        history: Sequence[ConversationTurn],
        utterance: str,
        tools: Sequence[ToolDefinition],
    ) -> RawProviderResponse:
        """Send one user utterance with prior *history*; return text + proposed invocations."""


# ---------------------------------------------------------------------------
# Concrete providers
# ---------------------------------------------------------------------------
def _function_spec(definition: ToolDefinition) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": definition.name,
            "description": definition.description,
            "parameters": definition.parameter_schema,
        },
    }


def _map_openai_error(exc: Exception) -> ProviderError:
    import openai  # pylint: disable=import-outside-toplevel

    if isinstance(exc, openai.APITimeoutError):
        return ProviderError(f"request timed out: {exc}", kind="timeout", retryable=True)
    if isinstance(exc, openai.APIConnectionError):
        return ProviderError(f"connection failed: {exc}", kind="network", retryable=True)
    if isinstance(exc, openai.APIStatusError):
        return _error_for_status(exc.status_code, str(exc))
    return ProviderError(f"unexpected response: {exc}", kind="bad_response", retryable=False)


@register_provider(ProviderKind.OPENROUTER)
class OpenRouterProvider(BaseProvider):
    """OpenRouter adapter using native function calling via the OpenAI SDK."""

    DEFAULT_MODEL = "anthropic/claude-3.5-sonnet"

    def __init__(
        self, config: ProviderConfig, http_client: httpx.AsyncClient | None = None
    ) -> None:
        super().__init__(config, http_client=http_client)
        api_key = config.api_key or os.getenv("OPENROUTER_API_KEY")
        if not api_key:
            raise ProviderError(
                "OpenRouter API key is required (set OPENROUTER_API_KEY)",
                kind="not_configured",
                retryable=False,
            )

        import openai  # pylint: disable=import-outside-toplevel

        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=config.base_url or DEFAULT_OPENROUTER_URL,
            timeout=self._timeout,
            max_retries=0,  # retry policy belongs to the caller
            http_client=http_client,
            default_headers=OPENROUTER_HEADERS,
        )
        # None until the current model has accepted or rejected a tools payload.
        self._tools_supported: bool | None = None

    def set_model(self, model_id: str) -> None:
        super().set_model(model_id)
        self._tools_supported = None

    async def _complete(
        self, messages: List[Dict[str, str]], tools: List[Dict[str, Any]] | None
    ) -> Any:
        import openai  # pylint: disable=import-outside-toplevel

        kwargs: Dict[str, Any] = {"model": self.model, "messages": messages, "temperature": 0.2}
        if tools:
            kwargs["tools"] = tools
        logger.debug(
            "OpenRouter request model=%s messages=%d tools=%d",
            self.model,
            len(messages),
            len(tools or []),
        )
        try:
            return await self._client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            raise _map_openai_error(exc) from exc

    async def send(
        self,
        history: Sequence[ConversationTurn],
        utterance: str,
        tools: Sequence[ToolDefinition],
    ) -> RawProviderResponse:
        messages = self._build_messages(self.SYSTEM_PROMPT, history, utterance)
        specs = [_function_spec(t) for t in tools]
        use_tools = bool(specs) and self._tools_supported is not False

        try:
            completion = await self._complete(messages, specs if use_tools else None)
        except ProviderError as exc:
            if not (use_tools and exc.kind == "bad_request" and "tool" in str(exc).lower()):
                raise
            logger.warning("Model %s rejected function calling; retrying without tools", self.model)
            self._tools_supported = False
            completion = await self._complete(messages, None)
        else:
            if use_tools:
                self._tools_supported = True

        if not completion.choices:
            raise ProviderError(
                "response contained no choices", kind="bad_response", retryable=False
            )
        message = completion.choices[0].message
        logger.debug("OpenRouter response: %s", message)

        invocations: List[RawInvocation] = []
        for tc in message.tool_calls or []:
            fn = getattr(tc, "function", None)
            if fn is None:
                continue
            try:
                arguments = json.loads(fn.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning("Undecodable arguments for tool '%s': %r", fn.name, fn.arguments)
                arguments = None
            if not isinstance(arguments, dict):
                arguments = None
            invocations.append(RawInvocation(name=fn.name, arguments=arguments))

        return RawProviderResponse(text=message.content or "", invocations=invocations)

    async def list_models(self) -> List[ModelInfo]:
        import openai  # pylint: disable=import-outside-toplevel

        try:
            page = await self._client.models.list()
        except openai.APIError as exc:
            raise _map_openai_error(exc) from exc
        return [
            ModelInfo(
                id=m.id,
                name=getattr(m, "name", None) or m.id,
                description=getattr(m, "description", None) or "",
                context_length=getattr(m, "context_length", None),
            )
            for m in page.data
        ]


@register_provider(ProviderKind.OLLAMA)
class OllamaProvider(BaseProvider):
    """Local Ollama adapter; tools are described in the prompt and scraped back out of the text."""

    DEFAULT_MODEL = "llama3.2"

    def __init__(
        self, config: ProviderConfig, http_client: httpx.AsyncClient | None = None
    ) -> None:
        super().__init__(config, http_client=http_client)
        self._base_url = (config.base_url or DEFAULT_OLLAMA_URL).rstrip("/")

    def _build_prompt(self, tools: Sequence[ToolDefinition]) -> str:
        """System prompt with the tool vocabulary and the expected JSON reply format."""
        lines = [_describe_tool(t) for t in tools]
        return (
            self.SYSTEM_PROMPT
            + "\nYou have access to these tools:\n"
            + "\n".join(lines)
            + '\n\nTo use a tool, respond with JSON like: {"tool": "tool_name", "args": {...}}\n'
            + 'For several tools, respond with a JSON list of such objects.\n'
            + "If no tool is needed, just answer in plain text.\n"
        )

    async def _request(self, method: str, path: str, payload: Dict[str, Any] | None = None) -> Any:
        url = f"{self._base_url}{path}"
        try:
            if self._http_client is not None:
                resp = await self._http_client.request(
                    method, url, json=payload, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.request(method, url, json=payload)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as exc:
            raise ProviderError(
                f"Ollama request timed out: {exc}", kind="timeout", retryable=True
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise _error_for_status(exc.response.status_code, exc.response.text) from exc
        except httpx.TransportError as exc:
            raise ProviderError(
                f"cannot reach Ollama at {self._base_url}: {exc}", kind="network", retryable=True
            ) from exc
        except ValueError as exc:
            raise ProviderError(
                f"Ollama returned invalid JSON: {exc}", kind="bad_response", retryable=False
            ) from exc

    async def send(
        self,
        history: Sequence[ConversationTurn],
        utterance: str,
        tools: Sequence[ToolDefinition],
    ) -> RawProviderResponse:
        payload = {
            "model": self.model,
            "messages": self._build_messages(self._build_prompt(tools), history, utterance),
            "stream": False,
            "options": {"temperature": 0.2},
        }
        data = await self._request("POST", "/api/chat", payload)
        content = ((data or {}).get("message") or {}).get("content") or ""
        logger.debug("Ollama response: %s", content)

        invocations, message = extract_tool_calls(content)
        return RawProviderResponse(text=message, invocations=invocations)

    async def list_models(self) -> List[ModelInfo]:
        data = await self._request("GET", "/api/tags")
        return [
            ModelInfo(
                id=m["name"],
                name=m["name"],
                description=(m.get("details") or {}).get("family", ""),
            )
            for m in (data or {}).get("models", [])
            if m.get("name")
        ]


def _describe_tool(definition: ToolDefinition) -> str:
    schema = definition.parameter_schema
    required = set(schema.get("required", []))
    params = []
    for name, info in schema.get("properties", {}).items():
        options = info.get("anyOf", [info])
        info = next((o for o in options if o.get("type") != "null"), info)
        if "enum" in info:
            kind = "|".join(str(v) for v in info["enum"])
        else:
            kind = info.get("type", "any")
            if "minimum" in info and "maximum" in info:
                kind += f" {info['minimum']}-{info['maximum']}"
        params.append(f"{name}{'' if name in required else '?'}: {kind}")
    return f"- {definition.name}({', '.join(params)}): {definition.description}"


@register_provider(ProviderKind.ANTHROPIC)
class PlaceholderProvider(BaseProvider):
    """
    Anthropic adapter - not implemented yet.

    ``supported`` is False.  Every call returns the same explanatory message and no tool calls, so
    selecting this provider gives a working (if limited) assistant rather than an error.
    """

    supported = False
    DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
    NOT_SUPPORTED_MESSAGE = (
        "The Anthropic provider is not supported yet. Switch to OpenRouter or Ollama to control "
        "playback with natural language."
    )

    async def send(
        self,
        history: Sequence[ConversationTurn],
        utterance: str,
        tools: Sequence[ToolDefinition],
    ) -> RawProviderResponse:
        logger.info("Placeholder provider received a command; returning fixed reply")
        return RawProviderResponse(text=self.NOT_SUPPORTED_MESSAGE)

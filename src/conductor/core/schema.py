"""
Schema definitions for provider <-> agent <-> dispatcher messages.

These data models serve as the contract between the provider adapters, the command agent, and the
dispatcher.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

Role = Literal["user", "assistant", "system"]


class ConversationTurn(BaseModel):
    """One entry of the conversation history."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class ToolCall(BaseModel):
    """A validated request to run one named tool."""

    name: str = Field(..., description="Registered tool name")
    arguments: Dict[str, Any] = Field(
        default_factory=dict, description="Arguments validated against the tool's schema"
    )


class RejectedCall(BaseModel):
    """A proposed tool call that failed validation and was dropped."""

    name: str
    reason: str


class AgentResponse(BaseModel):
    """Provider-agnostic result of one command turn."""

    message: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    rejected: List[RejectedCall] = Field(default_factory=list)


class RawInvocation(BaseModel):
    """
    A tool invocation exactly as a provider proposed it.

    ``arguments`` is ``None`` when the provider sent something that could not be decoded into a
    mapping.
    """

    name: str
    arguments: Optional[Dict[str, Any]] = None


class RawProviderResponse(BaseModel):
    """What every adapter returns: free text plus zero or more proposed invocations."""

    text: str = ""
    invocations: List[RawInvocation] = Field(default_factory=list)


class ProviderKind(str, Enum):
    """Supported AI backends."""

    OPENROUTER = "openrouter"  # native function calling
    OLLAMA = "ollama"  # free text with embedded JSON
    ANTHROPIC = "anthropic"  # placeholder, not implemented yet


class ProviderConfig(BaseModel):
    """Which backend to talk to and how."""

    kind: ProviderKind
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, kind: str | ProviderKind | None = None) -> "ProviderConfig":
        """Build a config for *kind* (default ``settings.PROVIDER``) from application settings."""
        from conductor.config import settings  # pylint: disable=import-outside-toplevel

        if isinstance(kind, ProviderKind):
            target = kind
        else:
            target = ProviderKind((kind or settings.PROVIDER).lower())
        if target is ProviderKind.OPENROUTER:
            return cls(
                kind=target,
                api_key=settings.OPENROUTER_API_KEY,
                base_url=settings.OPENROUTER_BASE_URL,
                model=settings.OPENROUTER_MODEL,
                timeout=settings.REQUEST_TIMEOUT,
            )
        if target is ProviderKind.OLLAMA:
            return cls(
                kind=target,
                base_url=settings.OLLAMA_BASE_URL,
                model=settings.OLLAMA_MODEL,
                timeout=settings.REQUEST_TIMEOUT,
            )
        return cls(
            kind=target, api_key=settings.ANTHROPIC_API_KEY, timeout=settings.REQUEST_TIMEOUT
        )


class ModelInfo(BaseModel):
    """A model offered by a provider."""

    id: str
    name: str = ""
    description: str = ""
    context_length: Optional[int] = None


class TrackRecord(BaseModel):
    """A track as reported by the library search interface."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable identity, e.g. the file URI")
    title: str = ""
    artist: str = ""
    album: str = ""
    genre: str = ""
    duration: float = 0.0  # seconds


class PlaylistCriteria(BaseModel):
    """Input to the playlist generator, built per ``generate_playlist`` call."""

    raw_description: str
    target_length: int = Field(20, gt=0)
    shuffle: bool = False


class DispatchError(BaseModel):
    """One tool call that failed against the player."""

    index: int
    tool: str
    message: str


class CallOutcome(BaseModel):
    """Result of a single dispatched call, kept in input order."""

    index: int
    tool: str
    ok: bool
    summary: str


class DispatchResult(BaseModel):
    """Aggregated outcome of :meth:`Dispatcher.execute`."""

    summaries: List[str] = Field(default_factory=list)
    errors: List[DispatchError] = Field(default_factory=list)
    outcomes: List[CallOutcome] = Field(default_factory=list)

"""
Pydantic models for Conductor API requests and responses.
This module defines the request and response schemas used by the Conductor API.
"""

from typing import (
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from conductor.core.schema import (
    ConversationTurn,
    DispatchError,
    ProviderKind,
    RejectedCall,
    ToolCall,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class CommandRequest(BaseModel):
    """Incoming natural-language command."""

    message: str = Field(..., min_length=1, description="What the user typed")
    deadline: Optional[float] = Field(None, gt=0, description="Seconds to wait for the AI provider")


class CommandResponse(BaseModel):
    """Result of one command: the assistant's reply plus what was done to the player."""

    reply: str
    tool_calls: List[ToolCall] = Field(default_factory=list)
    summaries: List[str] = Field(default_factory=list)
    errors: List[DispatchError] = Field(default_factory=list)
    rejected: List[RejectedCall] = Field(default_factory=list)


class ProviderRequest(BaseModel):
    """Switch to another AI provider."""

    kind: ProviderKind
    model: Optional[str] = None


class ModelRequest(BaseModel):
    """Switch the active provider's model."""

    model: str = Field(..., min_length=1)


class AgentState(BaseModel):
    """Active provider and model."""

    provider: ProviderKind
    model: str
    supported: bool


class HistoryResponse(BaseModel):
    """Current conversation history."""

    turns: List[ConversationTurn]

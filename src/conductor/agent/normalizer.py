"""Turn a raw provider response into the provider-agnostic :class:`AgentResponse`."""

import logging
from typing import (
    List,
    Mapping,
    Sequence,
)

from conductor.core.schema import (
    AgentResponse,
    RawProviderResponse,
    RejectedCall,
    ToolCall,
)
from conductor.tools import (
    SchemaError,
    ToolDefinition,
    validate,
)

logger = logging.getLogger(__name__)


def normalize(
    raw: RawProviderResponse,
    tool_definitions: Sequence[ToolDefinition] | Mapping[str, ToolDefinition],
) -> AgentResponse:
    """
    Validate every proposed invocation and keep only the good ones.

    Invalid invocations are dropped (never raised) and reported in ``AgentResponse.rejected``.
    When the provider offered no prose and nothing survived validation, the message says why, so
    a request like "set volume to 150" does not end in silence.
    """
    if isinstance(tool_definitions, Mapping):
        registry = dict(tool_definitions)
    else:
        registry = {d.name: d for d in tool_definitions}

    calls: List[ToolCall] = []
    rejected: List[RejectedCall] = []
    for invocation in raw.invocations:
        result = validate(invocation.name, invocation.arguments, registry)
        if isinstance(result, SchemaError):
            rejected.append(RejectedCall(name=result.tool, reason=result.reason))
            continue
        calls.append(ToolCall(name=invocation.name, arguments=result.model_dump(exclude_none=True)))

    if rejected:
        logger.warning(
            "Dropped %d of %d tool calls: %s",
            len(rejected),
            len(raw.invocations),
            "; ".join(f"{r.name} ({r.reason})" for r in rejected),
        )

    message = raw.text.strip()
    if not message and rejected and not calls:
        details = "; ".join(f"{r.name}: {r.reason}" for r in rejected)
        message = f"I couldn't do that - the request was invalid ({details})."

    return AgentResponse(message=message, tool_calls=calls, rejected=rejected)

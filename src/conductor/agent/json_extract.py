"""
Best-effort extraction of tool calls embedded in free model text.

Local models without native function calling are asked to answer with JSON such as
    {"tool": "<name>", "args": { ... }}
but they regularly wrap it in prose or markdown fences, or get it wrong altogether.  This module
finds the first balanced JSON object or array in the text, decodes it, and checks its shape.  Any
failure simply yields no invocations: "no usable JSON" is a normal outcome, not an error.
"""

import json
import logging
import re
from typing import (
    Any,
    List,
    Optional,
    Tuple,
)

from conductor.core.schema import RawInvocation

logger = logging.getLogger(__name__)


class ToolCallParseError(ValueError):
    """Raised internally when a candidate JSON block is malformed or has the wrong shape."""


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
_OPENERS = {"{": "}", "[": "]"}
_FENCE = re.compile(r"```(?:json)?\s*(.+?)```", re.DOTALL)


def _skip_string(s: str, i: int) -> int:
    """Given s[i] == '"', return index just past the closing quote."""
    i += 1
    esc = False
    while i < len(s):
        ch = s[i]
        if esc:
            esc = False
        elif ch == "\\":
            esc = True
        elif ch == '"':
            return i + 1
        i += 1
    raise ToolCallParseError("unterminated string literal")


def _find_matching_close(s: str, i: int) -> int:
    """Given s[i] in '{[', return index just past its matching closer."""
    stack: List[str] = []
    while i < len(s):
        ch = s[i]
        if ch == '"':
            i = _skip_string(s, i)
            continue  # i already advanced
        if ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in "}]":
            if not stack or stack.pop() != ch:
                raise ToolCallParseError(f"mismatched {ch!r} at pos {i}")
            if not stack:
                return i + 1
        i += 1
    raise ToolCallParseError("unbalanced brackets")


def find_json_block(text: str) -> Optional[Tuple[int, int]]:
    """
    Return ``(start, end)`` of the first balanced JSON object or array in *text*, or ``None``.

    Candidates that turn out unbalanced are skipped and the scan continues after them.
    """
    i = 0
    while i < len(text):
        if text[i] in _OPENERS:
            try:
                return i, _find_matching_close(text, i)
            except ToolCallParseError:
                pass
        i += 1
    return None


# ---------------------------------------------------------------------------
# Shape checking
# ---------------------------------------------------------------------------
def _to_invocation(item: Any) -> RawInvocation:
    if not isinstance(item, dict):
        raise ToolCallParseError("tool call must be an object")
    if "function" in item and isinstance(item["function"], dict):
        item = item["function"]  # OpenAI-style record pasted as text
    name = item.get("tool", item.get("name"))
    if not isinstance(name, str) or not name.strip():
        raise ToolCallParseError("tool call has no name")
    args = item.get("args", item.get("arguments", {}))
    if isinstance(args, str):
        try:
            args = json.loads(args)
        except json.JSONDecodeError:
            args = None
    return RawInvocation(name=name.strip(), arguments=args if isinstance(args, dict) else None)


def _to_invocations(payload: Any) -> List[RawInvocation]:
    if isinstance(payload, dict) and isinstance(payload.get("tool_calls"), list):
        payload = payload["tool_calls"]
    if isinstance(payload, list):
        if not payload:
            raise ToolCallParseError("empty tool call list")
        return [_to_invocation(item) for item in payload]
    return [_to_invocation(payload)]


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------
def extract_tool_calls(text: str) -> Tuple[List[RawInvocation], str]:
    """
    Split model *text* into ``(invocations, message)``.

    When a well-formed tool call block is found, *message* is the prose around it.  Otherwise there
    are no invocations and *message* is *text*, unchanged.
    """
    haystack = text
    offset = 0
    fence = _FENCE.search(text)
    if fence:
        haystack, offset = fence.group(1), fence.start(1)

    span = find_json_block(haystack)
    if span is None:
        return [], text

    start, end = span
    try:
        invocations = _to_invocations(json.loads(haystack[start:end]))
    except (json.JSONDecodeError, ToolCallParseError) as exc:
        logger.debug("No usable tool call in model text: %s", exc)
        return [], text

    if fence:
        # Drop the whole fenced block from the prose.
        start, end = fence.start(), fence.end()
    else:
        start, end = start + offset, end + offset
    message = (text[:start] + text[end:]).strip()
    return invocations, message

"""
Dispatches validated tool calls against the player and collects the outcomes.

Each tool name maps to one handler coroutine registered with :func:`register_handler`.  Calls run
strictly in the order given; a failing handler is recorded as a :class:`DispatchError` and the
batch carries on with the next call.
"""

import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Optional,
    Sequence,
)

from conductor.core.schema import (
    CallOutcome,
    DispatchError,
    DispatchResult,
    PlaylistCriteria,
    ToolCall,
    TrackRecord,
)
from conductor.dispatch.playlist import PlaylistGenerator
from conductor.player import (
    LibrarySearch,
    PlayerControl,
)

logger = logging.getLogger(__name__)

Handler = Callable[["Dispatcher", Dict[str, Any]], Awaitable[str]]

HANDLER_REGISTRY: Dict[str, Handler] = {}
"""Tool name -> handler coroutine."""

QUEUE_ADD_LIMIT = 10
SEARCH_PREVIEW = 5


def register_handler(name: str) -> Callable[[Handler], Handler]:
    """Register the coroutine as the handler for tool *name*."""
    if name in HANDLER_REGISTRY:
        raise ValueError(f"Handler for '{name}' is already registered.")

    def wrapper(fn: Handler) -> Handler:
        HANDLER_REGISTRY[name] = fn
        return fn

    return wrapper


def _describe(track: TrackRecord) -> str:
    if track.artist:
        return f"{track.title or track.id} - {track.artist}"
    return track.title or track.id


class Dispatcher:
    """Runs tool calls against a player and library."""

    def __init__(
        self,
        player: PlayerControl,
        library: LibrarySearch,
        generator: Optional[PlaylistGenerator] = None,
    ) -> None:
        self.player = player
        self.library = library
        self.generator = generator or PlaylistGenerator(library)

    async def execute(self, tool_calls: Sequence[ToolCall]) -> DispatchResult:
        """
        Execute *tool_calls* in order.

        Returns
        -------
        DispatchResult
            One summary per successful call, one :class:`DispatchError` per failed call, and an
            ``outcomes`` list with an entry for every call in input order.  Never raises for a
            failing handler.
        """
        result = DispatchResult()
        for index, call in enumerate(tool_calls):
            handler = HANDLER_REGISTRY.get(call.name)
            try:
                if handler is None:
                    raise LookupError(f"no handler for tool '{call.name}'")
                logger.debug("Dispatching '%s' with args=%s", call.name, call.arguments)
                summary = await handler(self, dict(call.arguments))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Tool '%s' failed", call.name)
                message = str(exc) or exc.__class__.__name__
                result.errors.append(DispatchError(index=index, tool=call.name, message=message))
                summary = f"{call.name} failed: {message}"
                result.outcomes.append(
                    CallOutcome(index=index, tool=call.name, ok=False, summary=summary)
                )
                continue
            logger.info("Tool '%s': %s", call.name, summary)
            result.summaries.append(summary)
            result.outcomes.append(
                CallOutcome(index=index, tool=call.name, ok=True, summary=summary)
            )
        return result


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------
@register_handler("search_music")
async def _search_music(d: Dispatcher, args: Dict[str, Any]) -> str:
    query, field = args["query"], args.get("type", "any")
    results = await d.library.search(field, query)
    if not results:
        return f'No results for "{query}".'
    preview = ", ".join(_describe(t) for t in results[:SEARCH_PREVIEW])
    more = f" and {len(results) - SEARCH_PREVIEW} more" if len(results) > SEARCH_PREVIEW else ""
    return f'Found {len(results)} results for "{query}": {preview}{more}.'


@register_handler("play_music")
async def _play_music(d: Dispatcher, args: Dict[str, Any]) -> str:
    position = args.get("position")
    query = args.get("query")
    if position is not None:
        await d.player.play(position)
        return f"Playing queue position {position}."
    if query:
        results = await d.library.search("any", query)
        if not results:
            return f'Nothing found for "{query}"; playback unchanged.'
        await d.player.clear_queue()
        await d.player.add_to_queue(results[0].id)
        await d.player.play(0)
        return f"Now playing {_describe(results[0])}."
    await d.player.play()
    return "Playback started."


@register_handler("queue_music")
async def _queue_music(d: Dispatcher, args: Dict[str, Any]) -> str:
    query = args["query"]
    results = (await d.library.search("any", query))[:QUEUE_ADD_LIMIT]
    if not results:
        return f'Nothing found for "{query}"; queue unchanged.'
    insert_at: Optional[int] = None
    if args.get("position") == "next":
        status = await d.player.get_status()
        insert_at = 0 if status.song is None else status.song + 1
    for offset, track in enumerate(results):
        await d.player.add_to_queue(track.id, None if insert_at is None else insert_at + offset)
    where = "to play next" if insert_at is not None else "to the queue"
    return f'Added {len(results)} tracks for "{query}" {where}.'


@register_handler("control_playback")
async def _control_playback(d: Dispatcher, args: Dict[str, Any]) -> str:
    action = args["action"]
    if action == "toggle":
        status = await d.player.get_status()
        action = "pause" if status.state == "play" else "play"
    if action == "play":
        await d.player.play()
        return "Playing."
    if action == "pause":
        await d.player.pause()
        return "Paused."
    if action == "stop":
        await d.player.stop()
        return "Stopped."
    if action == "next":
        await d.player.next()
        return "Skipped to the next track."
    await d.player.previous()
    return "Back to the previous track."


@register_handler("set_volume")
async def _set_volume(d: Dispatcher, args: Dict[str, Any]) -> str:
    volume = args["volume"]
    await d.player.set_volume(volume)
    return f"Volume set to {volume}%."


@register_handler("toggle_setting")
async def _toggle_setting(d: Dispatcher, args: Dict[str, Any]) -> str:
    # Toggling twice restores the original state.
    setting = args["setting"]
    enabled = await d.player.toggle_setting(setting)
    return f"{setting.capitalize()} mode {'on' if enabled else 'off'}."


@register_handler("get_queue")
async def _get_queue(d: Dispatcher, args: Dict[str, Any]) -> str:
    queue = await d.player.get_queue()
    if not queue:
        return "The queue is empty."
    limit = args.get("limit") or len(queue)
    lines = [f"{i + 1}. {_describe(t)}" for i, t in enumerate(queue[:limit])]
    header = f"Queue ({len(queue)} tracks):"
    return "\n".join([header, *lines])


@register_handler("clear_queue")
async def _clear_queue(d: Dispatcher, args: Dict[str, Any]) -> str:
    if args.get("confirm") is not True:
        return "Queue not cleared: clearing needs explicit confirmation."
    await d.player.clear_queue()
    return "Queue cleared."


@register_handler("generate_playlist")
async def _generate_playlist(d: Dispatcher, args: Dict[str, Any]) -> str:
    criteria = PlaylistCriteria(
        raw_description=args["criteria"],
        target_length=args.get("target_length", 20),
        shuffle=args.get("shuffle", False),
    )
    tracks = await d.generator.generate(criteria)
    if not tracks:
        return f'No tracks matched "{criteria.raw_description}".'
    for track in tracks:
        await d.player.add_to_queue(track.id)
    short = ""
    if len(tracks) < criteria.target_length:
        short = f" (asked for {criteria.target_length})"
    return f'Queued a {len(tracks)}-track playlist for "{criteria.raw_description}"{short}.'

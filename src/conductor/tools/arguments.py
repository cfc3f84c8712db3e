"""Argument models for the music-player tools.  Docstrings double as tool descriptions."""

from typing import (
    Literal,
    Optional,
)

from pydantic import Field

from conductor.player import (
    SearchField,
    Setting,
)
from conductor.tools import (
    ToolArguments,
    register_tool,
)

PlaybackAction = Literal["play", "pause", "stop", "next", "previous", "toggle"]


@register_tool("search_music")
class SearchMusicArgs(ToolArguments):
    """Search for music in the library by artist, album, track title or genre."""

    query: str = Field(..., min_length=1, description="Search query for artist, album, or track")
    type: SearchField = Field("any", description="Which field to search")


@register_tool("play_music")
class PlayMusicArgs(ToolArguments):
    """Play music immediately, either from a search or a specific queue position."""

    query: Optional[str] = Field(
        None, min_length=1, description="What to play - can be artist, album, or track"
    )
    position: Optional[int] = Field(None, ge=0, description="Position in queue to play")


@register_tool("queue_music")
class QueueMusicArgs(ToolArguments):
    """Add music to the playback queue."""

    query: str = Field(..., min_length=1, description="Music to add to queue")
    position: Literal["end", "next"] = Field("end", description="Where to add in queue")


@register_tool("control_playback")
class ControlPlaybackArgs(ToolArguments):
    """Control playback: play, pause, stop, next, previous, or toggle play/pause."""

    action: PlaybackAction = Field(..., description="Playback action")


@register_tool("set_volume")
class SetVolumeArgs(ToolArguments):
    """Set the playback volume level."""

    volume: int = Field(..., ge=0, le=100, description="Volume level 0-100")


@register_tool("toggle_setting")
class ToggleSettingArgs(ToolArguments):
    """Toggle playback settings like repeat, random, single, or consume mode."""

    setting: Setting = Field(..., description="Setting to toggle")


@register_tool("get_queue")
class GetQueueArgs(ToolArguments):
    """Get the current playback queue."""

    limit: Optional[int] = Field(None, ge=1, description="Maximum number of items to return")


@register_tool("clear_queue")
class ClearQueueArgs(ToolArguments):
    """Clear the entire playback queue.  Only happens when confirm is true."""

    confirm: bool = Field(False, description="Must be true to actually clear the queue")


@register_tool("generate_playlist")
class GeneratePlaylistArgs(ToolArguments):
    """
    Build a playlist from a description of mood, genre, activity, energy or theme
    (e.g. "relaxing jazz", "upbeat workout") and add it to the queue.
    """

    criteria: str = Field(..., min_length=1, description="Free-text description of the playlist")
    target_length: int = Field(20, ge=1, le=200, description="Number of tracks wanted")
    shuffle: bool = Field(False, description="Shuffle the resulting tracks")

"""
Interfaces of the external music player that the dispatcher drives.

The real transport (MPD or otherwise) lives outside this package; anything providing these
coroutines can be dispatched against.  :class:`~conductor.player.memory_player.InMemoryPlayer` is
the reference implementation.
"""

from typing import (
    List,
    Literal,
    Optional,
    Protocol,
    runtime_checkable,
)

from pydantic import (
    BaseModel,
    Field,
)

from conductor.core.schema import TrackRecord

SearchField = Literal["artist", "album", "title", "genre", "any"]
Setting = Literal["repeat", "random", "single", "consume"]


class PlayerUnavailableError(RuntimeError):
    """Raised by a player that is disconnected or otherwise cannot take commands."""


class PlayerStatus(BaseModel):
    """Snapshot of the player's state."""

    state: Literal["play", "pause", "stop"] = "stop"
    volume: int = Field(50, ge=0, le=100)
    repeat: bool = False
    random: bool = False
    single: bool = False
    consume: bool = False
    song: Optional[int] = None  # queue position of the current track


@runtime_checkable
class LibrarySearch(Protocol):
    """Searchable music library.  Returns ``[]`` when nothing matches."""

    async def search(self, field: SearchField, query: str) -> List[TrackRecord]: ...


@runtime_checkable
class PlayerControl(Protocol):
    """Playback and queue control.  Mutating calls may raise :class:`PlayerUnavailableError`."""

    async def play(self, position: Optional[int] = None) -> None: ...

    async def pause(self) -> None: ...

    async def stop(self) -> None: ...

    async def next(self) -> None: ...

    async def previous(self) -> None: ...

    async def set_volume(self, volume: int) -> None: ...

    async def toggle_setting(self, setting: Setting) -> bool: ...

    async def get_queue(self) -> List[TrackRecord]: ...

    async def add_to_queue(self, track_id: str, position: Optional[int] = None) -> None: ...

    async def clear_queue(self) -> None: ...

    async def get_status(self) -> PlayerStatus: ...

"""In-memory player and library, used by the shell, the API and the tests."""

import json
import logging
from pathlib import Path
from typing import (
    Dict,
    Iterable,
    List,
    Optional,
)

from conductor.core.schema import TrackRecord
from conductor.player import (
    PlayerStatus,
    PlayerUnavailableError,
    SearchField,
    Setting,
)

logger = logging.getLogger(__name__)


class InMemoryPlayer:
    """
    Library + queue + playback state held in memory.

    Search is a case-insensitive substring match; ``any`` looks at title, artist, album and genre.
    Set ``connected = False`` to simulate a dropped connection.
    """

    def __init__(self, tracks: Iterable[TrackRecord] = ()) -> None:
        self._library: Dict[str, TrackRecord] = {t.id: t for t in tracks}
        self._queue: List[TrackRecord] = []
        self._status = PlayerStatus()
        self.connected = True

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryPlayer":
        """Load the library from a JSON list of track objects."""
        with Path(path).open(encoding="utf-8") as f:
            records = json.load(f)
        player = cls(TrackRecord.model_validate(r) for r in records)
        logger.info("Loaded %d tracks from %s", len(player._library), path)
        return player

    def _ensure_connected(self) -> None:
        if not self.connected:
            raise PlayerUnavailableError("player is not connected")

    # ------------------------------------------------------------------ #
    # Library
    # ------------------------------------------------------------------ #
    async def search(self, field: SearchField, query: str) -> List[TrackRecord]:
        self._ensure_connected()
        needle = query.strip().lower()
        if not needle:
            return []
        fields = ("title", "artist", "album", "genre") if field == "any" else (field,)
        return [
            t
            for t in self._library.values()
            if any(needle in getattr(t, f).lower() for f in fields)
        ]

    # ------------------------------------------------------------------ #
    # Playback
    # ------------------------------------------------------------------ #
    async def play(self, position: Optional[int] = None) -> None:
        self._ensure_connected()
        if position is not None:
            if not 0 <= position < len(self._queue):
                raise IndexError(f"no track at queue position {position}")
            self._status.song = position
        elif self._status.song is None and self._queue:
            self._status.song = 0
        if self._status.song is not None:
            self._status.state = "play"

    async def pause(self) -> None:
        self._ensure_connected()
        if self._status.state == "play":
            self._status.state = "pause"

    async def stop(self) -> None:
        self._ensure_connected()
        self._status.state = "stop"

    async def next(self) -> None:
        self._ensure_connected()
        if self._status.song is not None and self._status.song + 1 < len(self._queue):
            self._status.song += 1
        else:
            self._status.state = "stop"

    async def previous(self) -> None:
        self._ensure_connected()
        if self._status.song:
            self._status.song -= 1

    async def set_volume(self, volume: int) -> None:
        self._ensure_connected()
        self._status.volume = max(0, min(100, volume))

    async def toggle_setting(self, setting: Setting) -> bool:
        """Flip *setting* and return its new value."""
        self._ensure_connected()
        value = not getattr(self._status, setting)
        setattr(self._status, setting, value)
        return value

    async def get_status(self) -> PlayerStatus:
        self._ensure_connected()
        return self._status.model_copy()

    # ------------------------------------------------------------------ #
    # Queue
    # ------------------------------------------------------------------ #
    async def get_queue(self) -> List[TrackRecord]:
        self._ensure_connected()
        return list(self._queue)

    async def add_to_queue(self, track_id: str, position: Optional[int] = None) -> None:
        self._ensure_connected()
        track = self._library.get(track_id)
        if track is None:
            raise KeyError(f"unknown track '{track_id}'")
        if position is None or position >= len(self._queue):
            self._queue.append(track)
        else:
            self._queue.insert(position, track)
            if self._status.song is not None and position <= self._status.song:
                self._status.song += 1

    async def clear_queue(self) -> None:
        self._ensure_connected()
        self._queue.clear()
        self._status.song = None
        self._status.state = "stop"


def load_player() -> InMemoryPlayer:
    """Build the player configured by ``settings.LIBRARY_PATH`` (empty library if unset)."""
    from conductor.config import settings  # pylint: disable=import-outside-toplevel

    if settings.LIBRARY_PATH:
        return InMemoryPlayer.from_json(settings.LIBRARY_PATH)
    logger.warning("LIBRARY_PATH not set; starting with an empty library")
    return InMemoryPlayer()

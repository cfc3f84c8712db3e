"""Shared fixtures and fakes for the Conductor tests."""

from typing import (
    Any,
    Callable,
    Dict,
    List,
)

import httpx
import pytest

from conductor.core.schema import (
    ProviderConfig,
    ProviderKind,
    TrackRecord,
)
from conductor.player.memory_player import InMemoryPlayer


def make_track(
    n: int, genre: str, title: str | None = None, artist: str = "Various"
) -> TrackRecord:
    """Build a deterministic track."""
    return TrackRecord(
        id=f"{genre.lower()}/{n:03d}.flac",
        title=title or f"{genre} Piece {n}",
        artist=artist,
        album=f"{genre} Sessions",
        genre=genre,
        duration=180.0 + n,
    )


@pytest.fixture
def library() -> List[TrackRecord]:
    """12 relaxing jazz tracks plus some unrelated rock and pop."""
    jazz = [make_track(i, "Jazz") for i in range(12)]
    rock = [make_track(i, "Rock", title=f"Thunder Road {i}", artist="Loud Band") for i in range(6)]
    pop = [make_track(i, "Pop", title=f"Sunny Hit {i}", artist="Pop Star") for i in range(4)]
    return jazz + rock + pop


@pytest.fixture
def player(library: List[TrackRecord]) -> InMemoryPlayer:
    return InMemoryPlayer(library)


def ollama_client(
    replies: List[Any], seen: List[Dict[str, Any]] | None = None
) -> httpx.AsyncClient:
    """
    An httpx client whose /api/chat answers with *replies* in turn.

    A string reply becomes the assistant content; an ``httpx.Response`` or an exception instance
    is returned / raised as-is.
    """
    pending = list(replies)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append({"url": str(request.url), "body": request.content})
        reply = pending.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        message = {"role": "assistant", "content": reply}
        return httpx.Response(200, json={"message": message, "done": True})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def ollama_config() -> ProviderConfig:
    return ProviderConfig(kind=ProviderKind.OLLAMA, base_url="http://ollama.test", model="llama3.2")


@pytest.fixture
def make_ollama_client() -> Callable[..., httpx.AsyncClient]:
    return ollama_client

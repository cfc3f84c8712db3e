"""Tests for description-driven playlist generation."""

import random
from typing import (
    List,
    Set,
)

import pytest

from conductor.core.schema import (
    PlaylistCriteria,
    TrackRecord,
)
from conductor.dispatch.playlist import (
    PlaylistGenerator,
    build_queries,
)
from conductor.player import (
    PlayerUnavailableError,
    SearchField,
)
from conductor.player.memory_player import InMemoryPlayer


class FlakyLibrary(InMemoryPlayer):
    """Fails every search whose term is in *broken*."""

    def __init__(self, tracks: List[TrackRecord], broken: Set[str]) -> None:
        super().__init__(tracks)
        self.broken = broken

    async def search(self, field: SearchField, query: str) -> List[TrackRecord]:
        if query in self.broken:
            raise PlayerUnavailableError(f"search for {query!r} failed")
        return await super().search(field, query)


def test_queries_for_relaxing_jazz() -> None:
    assert build_queries("relaxing jazz") == [
        ("genre", "jazz"),
        ("any", "relax"),
        ("any", "chill"),
        ("any", "calm"),
    ]


def test_genre_matches_outrank_mood_matches() -> None:
    assert build_queries("calm chill jazz")[0] == ("genre", "jazz")


def test_queries_are_bounded_and_distinct() -> None:
    description = "chill relaxing happy upbeat summer night workout party jazz rock funk"
    queries = build_queries(description, max_queries=8)
    assert len(queries) == 8
    assert len(set(queries)) == 8
    assert len(build_queries(description, max_queries=3)) == 3


def test_unknown_words_come_last_and_stopwords_are_dropped() -> None:
    assert build_queries("some miles davis jazz for me") == [
        ("genre", "jazz"),
        ("any", "miles"),
        ("any", "davis"),
    ]
    assert build_queries("a playlist of the music") == []


@pytest.mark.asyncio
async def test_short_library_gives_short_playlist(player: InMemoryPlayer) -> None:
    """12 matching tracks for a request of 30: exactly those 12, no padding."""
    tracks = await PlaylistGenerator(player).generate(
        PlaylistCriteria(raw_description="relaxing jazz", target_length=30)
    )
    assert len(tracks) == 12
    assert {t.genre for t in tracks} == {"Jazz"}
    assert len({t.id for t in tracks}) == 12


@pytest.mark.asyncio
async def test_overlapping_queries_are_deduplicated(player: InMemoryPlayer) -> None:
    # genre:jazz and any:sessions both match every jazz track.
    tracks = await PlaylistGenerator(player).generate(
        PlaylistCriteria(raw_description="jazz sessions", target_length=100)
    )
    ids = [t.id for t in tracks]
    assert len(ids) == len(set(ids)) == 22
    assert all(i.startswith("jazz/") for i in ids[:12])


@pytest.mark.asyncio
async def test_result_is_truncated_in_query_order(player: InMemoryPlayer) -> None:
    tracks = await PlaylistGenerator(player).generate(
        PlaylistCriteria(raw_description="jazz", target_length=5)
    )
    assert [t.id for t in tracks] == [f"jazz/{i:03d}.flac" for i in range(5)]


@pytest.mark.asyncio
async def test_shuffle_keeps_the_same_tracks(player: InMemoryPlayer) -> None:
    criteria = PlaylistCriteria(raw_description="relaxing jazz", target_length=12)
    ordered = await PlaylistGenerator(player).generate(criteria)

    shuffled = await PlaylistGenerator(player, rng=random.Random(7)).generate(
        criteria.model_copy(update={"shuffle": True})
    )
    again = await PlaylistGenerator(player, rng=random.Random(7)).generate(
        criteria.model_copy(update={"shuffle": True})
    )

    assert sorted(t.id for t in shuffled) == sorted(t.id for t in ordered)
    assert shuffled == again


@pytest.mark.asyncio
async def test_nothing_to_search_gives_empty_playlist(player: InMemoryPlayer) -> None:
    tracks = await PlaylistGenerator(player).generate(PlaylistCriteria(raw_description="the"))
    assert tracks == []


@pytest.mark.asyncio
async def test_failed_searches_are_skipped(library: List[TrackRecord]) -> None:
    flaky = FlakyLibrary(library, broken={"relax", "chill"})
    tracks = await PlaylistGenerator(flaky).generate(
        PlaylistCriteria(raw_description="relaxing jazz", target_length=30)
    )
    assert len(tracks) == 12


@pytest.mark.asyncio
async def test_all_searches_failing_raises(library: List[TrackRecord]) -> None:
    flaky = FlakyLibrary(library, broken={"jazz", "relax", "chill", "calm"})
    with pytest.raises(PlayerUnavailableError):
        await PlaylistGenerator(flaky).generate(PlaylistCriteria(raw_description="relaxing jazz"))


@pytest.mark.asyncio
async def test_off_genre_mood_titles_do_not_crowd_out_the_genre() -> None:
    """25 rock tracks titled "Chill Out" must not push the 12 jazz tracks out of the playlist."""
    chill_rock = [
        TrackRecord(
            id=f"rock/chill-{i:03d}.flac",
            title=f"Chill Out {i}",
            artist="Loud Band",
            album="Rock Sessions",
            genre="Rock",
        )
        for i in range(25)
    ]
    jazz = [
        TrackRecord(
            id=f"jazz/{i:03d}.flac",
            title=f"Jazz Piece {i}",
            artist="Various",
            album="Jazz Sessions",
            genre="Jazz",
        )
        for i in range(12)
    ]
    library = InMemoryPlayer(chill_rock + jazz)

    tracks = await PlaylistGenerator(library).generate(
        PlaylistCriteria(raw_description="relaxing jazz", target_length=20)
    )

    assert len(tracks) == 20
    assert [t.genre for t in tracks[:12]] == ["Jazz"] * 12
    assert {t.id for t in jazz} <= {t.id for t in tracks}


@pytest.mark.asyncio
async def test_tracks_found_by_more_searches_rank_first(library: List[TrackRecord]) -> None:
    # "Sunny Hit" pop tracks match both any:sunny and any:hit.
    tracks = await PlaylistGenerator(InMemoryPlayer(library)).generate(
        PlaylistCriteria(raw_description="road sunny hit", target_length=4)
    )
    assert [t.id for t in tracks] == [f"pop/{i:03d}.flac" for i in range(4)]

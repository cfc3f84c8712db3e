"""
Playlist generation from a free-text description.

A description such as "relaxing jazz for studying" is mapped to a small set of library searches:
words are looked up in per-category vocabularies (mood, genre, activity, energy, theme) and every
match contributes its search terms, genre searches first.  Results are merged and ranked by how
many searches found each track, de-duplicated by track id, truncated to the requested length and
optionally shuffled.
"""

import asyncio
import logging
import random
import re
from typing import (
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
)

from conductor.core.schema import (
    PlaylistCriteria,
    TrackRecord,
)
from conductor.player import (
    LibrarySearch,
    SearchField,
)

logger = logging.getLogger(__name__)

Query = Tuple[SearchField, str]

DEFAULT_MAX_QUERIES = 8

# Genre words are searched in the genre field; everything else anywhere.
GENRES = {
    "jazz": ["jazz"],
    "blues": ["blues"],
    "rock": ["rock"],
    "metal": ["metal"],
    "punk": ["punk"],
    "pop": ["pop"],
    "classical": ["classical"],
    "hip-hop": ["hip-hop", "rap"],
    "hiphop": ["hip-hop", "rap"],
    "rap": ["rap", "hip-hop"],
    "electronic": ["electronic"],
    "techno": ["techno", "electronic"],
    "house": ["house"],
    "ambient": ["ambient"],
    "folk": ["folk"],
    "country": ["country"],
    "soul": ["soul"],
    "funk": ["funk"],
    "reggae": ["reggae"],
    "indie": ["indie"],
    "lofi": ["lo-fi"],
    "lo-fi": ["lo-fi"],
}

MOODS = {
    "relaxing": ["relax", "chill", "calm"],
    "relaxed": ["relax", "chill", "calm"],
    "chill": ["chill", "relax"],
    "calm": ["calm", "relax"],
    "happy": ["happy", "sunny"],
    "sad": ["sad", "blue"],
    "melancholy": ["melancholy", "sad"],
    "romantic": ["love", "romance"],
    "angry": ["rage", "angry"],
    "dreamy": ["dream"],
}

ACTIVITIES = {
    "workout": ["workout", "power"],
    "gym": ["workout", "power"],
    "running": ["run"],
    "study": ["study", "focus"],
    "studying": ["study", "focus"],
    "focus": ["focus"],
    "sleep": ["sleep", "lullaby"],
    "party": ["party", "dance"],
    "dinner": ["dinner"],
    "driving": ["drive", "road"],
}

ENERGY = {
    "energetic": ["energy", "power"],
    "upbeat": ["upbeat", "dance"],
    "high": ["energy"],
    "mellow": ["mellow", "soft"],
    "low": ["soft", "quiet"],
    "intense": ["intense"],
}

THEMES = {
    "summer": ["summer", "sun"],
    "winter": ["winter", "snow"],
    "night": ["night", "midnight"],
    "rain": ["rain"],
    "love": ["love"],
    "christmas": ["christmas"],
    "road": ["road"],
}

STOPWORDS = {
    "a", "an", "and", "the", "for", "to", "of", "with", "some", "music", "songs", "song",
    "tracks", "playlist", "me", "my", "play", "make", "create", "mix", "vibe", "vibes", "energy",
    "in", "on", "while", "please", "something",
}

_WORD = re.compile(r"[a-z0-9][a-z0-9'-]*")


def build_queries(description: str, max_queries: int = DEFAULT_MAX_QUERIES) -> List[Query]:
    """Derive at most *max_queries* distinct ``(field, term)`` searches from *description*."""
    words = _WORD.findall(description.lower())
    genres: List[Query] = []
    others: List[Query] = []
    leftovers: List[Query] = []

    def add(target: List[Query], query: Query) -> None:
        if query not in genres and query not in others and query not in leftovers:
            target.append(query)

    for word in words:
        matched = False
        if word in GENRES:
            for term in GENRES[word]:
                add(genres, ("genre", term))
            matched = True
        for vocabulary in (MOODS, ACTIVITIES, ENERGY, THEMES):
            if word in vocabulary:
                for term in vocabulary[word]:
                    add(others, ("any", term))
                matched = True
        if not matched and word not in STOPWORDS and len(word) > 2:
            add(leftovers, ("any", word))

    # Genre searches are the most precise, literal words the least.
    return (genres + others + leftovers)[:max_queries]


class PlaylistGenerator:
    """Expands :class:`PlaylistCriteria` into concrete tracks using a :class:`LibrarySearch`."""

    def __init__(
        self,
        library: LibrarySearch,
        max_queries: int = DEFAULT_MAX_QUERIES,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._library = library
        self._max_queries = max_queries
        self._rng = rng or random.Random()

    async def generate(self, criteria: PlaylistCriteria) -> List[TrackRecord]:
        """
        Return up to ``criteria.target_length`` unique tracks.

        Fewer matches than requested is a valid, short playlist.  Individual failing searches are
        skipped; if every search fails the first error is raised.
        """
        queries = build_queries(criteria.raw_description, self._max_queries)
        if not queries:
            logger.info("No search terms in playlist description %r", criteria.raw_description)
            return []
        logger.debug("Playlist queries for %r: %s", criteria.raw_description, queries)

        results = await asyncio.gather(
            *(self._library.search(field, term) for field, term in queries),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures and len(failures) == len(results):
            raise failures[0]
        for (field, term), error in zip(queries, results):
            if isinstance(error, BaseException):
                logger.warning("Playlist search %s=%r failed: %s", field, term, error)

        tracks = _rank(r for r in results if not isinstance(r, BaseException))
        tracks = tracks[: criteria.target_length]
        if criteria.shuffle:
            self._rng.shuffle(tracks)
        return tracks


def _rank(batches: Iterable[List[TrackRecord]]) -> List[TrackRecord]:
    """De-duplicate by id, most-matched tracks first; ties keep first-seen order."""
    seen: Dict[str, TrackRecord] = {}
    hits: Dict[str, int] = {}
    for batch in batches:
        for track in {t.id: t for t in batch}.values():
            seen.setdefault(track.id, track)
            hits[track.id] = hits.get(track.id, 0) + 1
    return sorted(seen.values(), key=lambda t: -hits[t.id])

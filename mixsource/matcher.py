"""Release matching and merging across metadata sources.

Releases are matched in two passes:
1. Exact fingerprint match ("artist::title::year", normalized).
2. Fuzzy Jaro-Winkler similarity on artist and title, with a small bonus
   when both sides report the same year.

Matched releases are merged into the existing entry: ids and genres are
unioned, the highest confidence wins, a missing year is backfilled and
artwork follows ARTWORK_PRIORITY.
"""

import copy
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from rapidfuzz.distance import JaroWinkler
from unidecode import unidecode

from mixsource.constants import (
    ARTIST_WEIGHT,
    ARTWORK_PRIORITY,
    FUZZY_MATCH_THRESHOLD,
    JARO_WINKLER_PREFIX_WEIGHT,
    TITLE_WEIGHT,
    UNKNOWN_YEAR,
    YEAR_MATCH_BONUS,
    get_logger,
)
from mixsource.models import NormalizedRelease, SourceId

logger = get_logger("matcher")


class MatchType(Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    NEW = "new"


@dataclass(frozen=True)
class SimilarityScore:
    """Similarity breakdown, every score in 0..1."""

    overall: float
    artist: float
    title: float
    year_match: bool


@dataclass(frozen=True)
class MatchResult:
    match_type: MatchType
    index: Optional[int] = None
    similarity: Optional[SimilarityScore] = None


@dataclass(frozen=True)
class MatcherStats:
    total: int
    exact_matches: int
    fuzzy_matches: int
    new_entries: int


def normalize(text: str) -> str:
    """Transliterate, lower-case and strip punctuation; '&' becomes 'and'."""
    text = unidecode(text or "").lower()
    text = re.sub(r"\s*&\s*", " and ", text)
    text = re.sub(r"[^a-z0-9\s]", " ", text)
    return " ".join(text.split())


def normalize_artist(name: str) -> str:
    """Normalize an artist name, dropping a leading 'the'."""
    return re.sub(r"^the\s+", "", normalize(name))


def generate_fingerprint(artist: str, title: str, year: Optional[int] = None) -> str:
    """Build the exact-match key: "artist::title::year" (year is "x" if unknown)."""
    year_part = UNKNOWN_YEAR if year is None else str(year)
    return f"{normalize_artist(artist)}::{normalize(title)}::{year_part}"


def release_fingerprint(release: NormalizedRelease) -> str:
    return generate_fingerprint(release.artist_name, release.title, release.year)


def jaro_winkler(s1: str, s2: str) -> float:
    return JaroWinkler.similarity(s1, s2, prefix_weight=JARO_WINKLER_PREFIX_WEIGHT)


def compute_similarity(a: NormalizedRelease, b: NormalizedRelease) -> SimilarityScore:
    """Weighted artist/title similarity of two releases.

    Title weighs slightly more than artist. The year bonus only applies
    when both releases carry the same year.
    """
    artist_sim = jaro_winkler(normalize_artist(a.artist_name), normalize_artist(b.artist_name))
    title_sim = jaro_winkler(normalize(a.title), normalize(b.title))
    year_match = a.year is not None and b.year is not None and a.year == b.year

    base = artist_sim * ARTIST_WEIGHT + title_sim * TITLE_WEIGHT
    overall = min(1.0, base + YEAR_MATCH_BONUS) if year_match else base

    return SimilarityScore(overall=overall, artist=artist_sim, title=title_sim, year_match=year_match)


def _artwork_rank(source: Optional[str]) -> int:
    """Lower is better; unknown sources rank after every listed one."""
    if source in ARTWORK_PRIORITY:
        return ARTWORK_PRIORITY.index(source)
    return len(ARTWORK_PRIORITY)


def _unique_ids(ids) -> list[SourceId]:
    seen: set[str] = set()
    unique: list[SourceId] = []
    for source_id in ids:
        if source_id.key in seen:
            continue
        seen.add(source_id.key)
        unique.append(source_id)
    return unique


class Matcher:
    """Accumulates releases, merging the ones that describe the same album.

    One instance is meant to live for a single aggregation pass.
    """

    def __init__(self, similarity_threshold: float = FUZZY_MATCH_THRESHOLD):
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValueError(f"similarity_threshold must be within 0..1, got {similarity_threshold}")
        self.similarity_threshold = similarity_threshold
        self._entries: list[NormalizedRelease] = []
        self._artwork_sources: list[Optional[str]] = []
        self._fingerprints: dict[str, int] = {}
        self._exact_matches = 0
        self._fuzzy_matches = 0
        self._new_entries = 0

    def match(self, release: NormalizedRelease) -> MatchResult:
        """Find the entry a release belongs to without changing anything."""
        index = self._fingerprints.get(release_fingerprint(release))
        if index is not None:
            return MatchResult(MatchType.EXACT, index)

        # First candidate over the threshold wins, not the best one.
        for index, entry in enumerate(self._entries):
            similarity = compute_similarity(release, entry)
            if similarity.overall >= self.similarity_threshold:
                return MatchResult(MatchType.FUZZY, index, similarity)

        return MatchResult(MatchType.NEW)

    def add(self, release: NormalizedRelease) -> NormalizedRelease:
        """Append a release as a new entry without matching."""
        if not release.ids:
            raise ValueError(f"Release {release.title!r} carries no source ids")
        fingerprint = release_fingerprint(release)
        entry = replace(
            release,
            artists=list(release.artists),
            ids=_unique_ids(release.ids),
            genres=list(dict.fromkeys(release.genres)),
            source_scores=dict(release.source_scores),
            fingerprint=fingerprint,
        )
        index = len(self._entries)
        self._entries.append(entry)
        self._artwork_sources.append(entry.reporting_source if entry.artwork_url else None)
        self._index_fingerprint(fingerprint, index)
        self._new_entries += 1
        return entry

    def add_or_merge(self, release: NormalizedRelease) -> NormalizedRelease:
        result = self.match(release)

        if result.match_type is MatchType.EXACT:
            self._exact_matches += 1
            logger.debug(f"Точное совпадение: {release.artist_name} - {release.title}")
            return self._merge(result.index, release)

        if result.match_type is MatchType.FUZZY:
            self._fuzzy_matches += 1
            logger.debug(
                f"Нечёткое совпадение ({result.similarity.overall:.3f}): "
                f"{release.artist_name} - {release.title} -> {self._entries[result.index].title}"
            )
            return self._merge(result.index, release)

        return self.add(release)

    def get_all(self) -> tuple[NormalizedRelease, ...]:
        """Snapshot of the merged entries in insertion order."""
        return tuple(copy.deepcopy(self._entries))

    def get_stats(self) -> MatcherStats:
        return MatcherStats(
            total=len(self._entries),
            exact_matches=self._exact_matches,
            fuzzy_matches=self._fuzzy_matches,
            new_entries=self._new_entries,
        )

    def _merge(self, index: int, release: NormalizedRelease) -> NormalizedRelease:
        entry = self._entries[index]

        entry.ids = _unique_ids([*entry.ids, *release.ids])
        entry.genres = list(dict.fromkeys([*entry.genres, *release.genres]))
        entry.source_scores.update(release.source_scores)
        entry.confidence = max(entry.confidence, release.confidence)

        if entry.year is None and release.year is not None:
            entry.year = release.year

        if release.artwork_url:
            source = release.reporting_source
            if entry.artwork_url is None or _artwork_rank(source) < _artwork_rank(self._artwork_sources[index]):
                entry.artwork_url = release.artwork_url
                self._artwork_sources[index] = source

        entry.fingerprint = release_fingerprint(entry)
        self._index_fingerprint(entry.fingerprint, index)
        self._index_fingerprint(release_fingerprint(release), index)
        return entry

    def _index_fingerprint(self, fingerprint: str, index: int) -> None:
        # Earliest entry keeps a shared fingerprint.
        current = self._fingerprints.get(fingerprint)
        if current is None or index < current:
            self._fingerprints[fingerprint] = index


def create_matcher(similarity_threshold: float = FUZZY_MATCH_THRESHOLD) -> Matcher:
    return Matcher(similarity_threshold=similarity_threshold)

from dataclasses import dataclass, field
from typing import Optional

from mixsource.constants import ARTIST_JOIN


@dataclass(frozen=True)
class SourceId:
    """Provider type plus the provider-local id of a record."""

    source: str
    id: str

    @property
    def key(self) -> str:
        return f"{self.source}:{self.id}"


@dataclass(frozen=True)
class CanonicalTrack:
    """Normalized track representation used across providers."""

    id: str
    title: str
    artist: str
    album: str
    source_id: SourceId
    duration: Optional[int] = None
    artwork_url: Optional[str] = None


@dataclass(frozen=True)
class CanonicalAlbum:
    """Album as returned to callers; may be backed by several providers."""

    id: str
    title: str
    artist: str
    source_ids: tuple[SourceId, ...]
    year: Optional[int] = None
    tracks: tuple[CanonicalTrack, ...] = ()
    artwork_url: Optional[str] = None
    genres: tuple[str, ...] = ()


@dataclass(frozen=True)
class CanonicalPlaylist:
    id: str
    name: str
    source: str
    description: Optional[str] = None
    artwork_url: Optional[str] = None


@dataclass(frozen=True)
class SearchResult:
    tracks: tuple[CanonicalTrack, ...] = ()
    albums: tuple[CanonicalAlbum, ...] = ()


@dataclass(frozen=True)
class AlbumTracks:
    album: CanonicalAlbum
    tracks: tuple[CanonicalTrack, ...]


@dataclass(frozen=True)
class ReleaseArtist:
    name: str
    ids: tuple[SourceId, ...] = ()


@dataclass
class NormalizedRelease:
    """Release shape the matcher works on.

    `ids` always holds at least the id of the reporting provider. The
    fingerprint is recomputed by the matcher, so providers may leave it blank.
    """

    title: str
    artists: list[ReleaseArtist]
    ids: list[SourceId]
    release_type: str = "album"
    year: Optional[int] = None
    confidence: float = 1.0
    genres: list[str] = field(default_factory=list)
    artwork_url: Optional[str] = None
    source_scores: dict[str, float] = field(default_factory=dict)
    fingerprint: str = ""

    @property
    def artist_name(self) -> str:
        """All credited artist names joined for comparison."""

        return ARTIST_JOIN.join(artist.name for artist in self.artists if artist.name)

    @property
    def reporting_source(self) -> Optional[str]:
        return self.ids[0].source if self.ids else None

"""Capability contracts for music sources.

A source is any object with `type` and `name` attributes. It supports a
capability when the matching coroutine methods are present; nothing has to
inherit from anything here.
"""

from typing import Any, Protocol, Sequence, TypeGuard

from mixsource.models import (
    AlbumTracks,
    CanonicalPlaylist,
    CanonicalTrack,
    NormalizedRelease,
    SearchResult,
)

CAPABILITY_PLAYLISTS = "playlists"
CAPABILITY_STREAMING = "streaming"
CAPABILITY_ALBUMS = "albums"


class Source(Protocol):
    type: str
    name: str


class SearchCapability(Source, Protocol):
    async def search(self, query: str) -> SearchResult: ...


class PlaylistCapability(Source, Protocol):
    async def list_playlists(self) -> Sequence[CanonicalPlaylist]: ...

    async def get_playlist_tracks(self, playlist_id: str) -> Sequence[CanonicalTrack]: ...


class StreamCapability(Source, Protocol):
    async def get_stream_url(self, track_id: str) -> str: ...


class AlbumCapability(Source, Protocol):
    async def get_album_tracks(self, album_id: str) -> AlbumTracks: ...


class ReleaseSearchCapability(Source, Protocol):
    async def search_releases(self, query: str, limit: int) -> Sequence[NormalizedRelease]: ...


class UnsupportedCapabilityError(ValueError):
    """Raised when a source type is unknown or lacks the requested capability."""

    def __init__(self, source_type: str, capability: str):
        self.source_type = source_type
        self.capability = capability
        super().__init__(f'Source "{source_type}" does not support {capability}')


def _has_methods(source: Any, *names: str) -> bool:
    return all(callable(getattr(source, name, None)) for name in names)


def has_search_capability(source: Any) -> TypeGuard[SearchCapability]:
    return _has_methods(source, "search")


def has_playlist_capability(source: Any) -> TypeGuard[PlaylistCapability]:
    """Both listing and track retrieval are required; one alone does not count."""
    return _has_methods(source, "list_playlists", "get_playlist_tracks")


def has_stream_capability(source: Any) -> TypeGuard[StreamCapability]:
    return _has_methods(source, "get_stream_url")


def has_album_capability(source: Any) -> TypeGuard[AlbumCapability]:
    return _has_methods(source, "get_album_tracks")


def has_release_search_capability(source: Any) -> TypeGuard[ReleaseSearchCapability]:
    return _has_methods(source, "search_releases")

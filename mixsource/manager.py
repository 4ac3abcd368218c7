"""Fan-out over registered sources and album deduplication."""

import asyncio
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence

from mixsource.capabilities import (
    CAPABILITY_ALBUMS,
    CAPABILITY_PLAYLISTS,
    CAPABILITY_STREAMING,
    Source,
    UnsupportedCapabilityError,
    has_album_capability,
    has_playlist_capability,
    has_release_search_capability,
    has_search_capability,
    has_stream_capability,
)
from mixsource.constants import (
    DEFAULT_RELEASE_TYPE,
    FUZZY_MATCH_THRESHOLD,
    METADATA_SEARCH_LIMIT,
    get_logger,
)
from mixsource.matcher import Matcher
from mixsource.models import (
    AlbumTracks,
    CanonicalAlbum,
    CanonicalPlaylist,
    CanonicalTrack,
    NormalizedRelease,
    ReleaseArtist,
    SearchResult,
    SourceId,
)

logger = get_logger("manager")


def album_to_release(album: CanonicalAlbum, source_type: str) -> NormalizedRelease:
    """Turn a primary source album into a matcher release."""
    ids = list(album.source_ids) or [SourceId(source_type, album.id)]
    return NormalizedRelease(
        title=album.title,
        artists=[ReleaseArtist(name=album.artist)],
        ids=ids,
        release_type=DEFAULT_RELEASE_TYPE,
        year=album.year,
        confidence=1.0,
        genres=list(album.genres),
        artwork_url=album.artwork_url,
    )


def release_to_album(
    release: NormalizedRelease,
    tracks: tuple[CanonicalTrack, ...] = (),
) -> CanonicalAlbum:
    """Turn a merged release back into the public album shape."""
    return CanonicalAlbum(
        id=release.ids[0].id,
        title=release.title,
        artist=release.artists[0].name if release.artists else "",
        source_ids=tuple(release.ids),
        year=release.year,
        tracks=tracks,
        artwork_url=release.artwork_url,
        genres=tuple(release.genres),
    )


async def _settle(
    sources: Sequence[Any],
    call: Callable[[Any], Awaitable[Any]],
) -> list[tuple[Any, Any]]:
    """Run one call per source concurrently; keep successes in source order.

    A failing source is logged and dropped, its siblings are unaffected.
    """
    outcomes = await asyncio.gather(*(call(source) for source in sources), return_exceptions=True)
    settled = []
    for source, outcome in zip(sources, outcomes):
        if isinstance(outcome, Exception):
            logger.warning(f"Источник {source.type} завершился с ошибкой: {outcome!r}")
            continue
        if isinstance(outcome, BaseException):
            raise outcome
        settled.append((source, outcome))
    return settled


class SourceManager:
    def __init__(
        self,
        sources: Iterable[Source],
        metadata_sources: Iterable[Source] = (),
        similarity_threshold: float = FUZZY_MATCH_THRESHOLD,
        metadata_search_limit: int = METADATA_SEARCH_LIMIT,
    ):
        self._sources = tuple(sources)
        self._metadata_sources = tuple(metadata_sources)
        self.similarity_threshold = similarity_threshold
        self.metadata_search_limit = metadata_search_limit

        self._by_type: dict[str, Source] = {}
        for source in self._sources:
            if source.type in self._by_type:
                logger.warning(f"Источник {source.type} уже зарегистрирован, повторная регистрация пропущена")
                continue
            self._by_type[source.type] = source

    def get_source(self, source_type: str) -> Optional[Source]:
        return self._by_type.get(source_type)

    def get_all_sources(self) -> tuple[Source, ...]:
        return self._sources

    def get_metadata_sources(self) -> tuple[Source, ...]:
        return self._metadata_sources

    async def list_all_playlists(self) -> list[CanonicalPlaylist]:
        """Playlists of every playlist-capable source, in registration order.

        Unlike search_all, a failing source fails the whole call.
        """
        capable = [source for source in self._sources if has_playlist_capability(source)]
        batches = await asyncio.gather(*(source.list_playlists() for source in capable))
        playlists: list[CanonicalPlaylist] = []
        for batch in batches:
            playlists.extend(batch)
        return playlists

    async def get_playlist_tracks(self, source_type: str, playlist_id: str) -> Sequence[CanonicalTrack]:
        source = self._require(source_type, has_playlist_capability, CAPABILITY_PLAYLISTS)
        return await source.get_playlist_tracks(playlist_id)

    async def get_stream_url(self, source_type: str, track_id: str) -> str:
        source = self._require(source_type, has_stream_capability, CAPABILITY_STREAMING)
        return await source.get_stream_url(track_id)

    async def get_album_tracks(self, source_type: str, album_id: str) -> AlbumTracks:
        source = self._require(source_type, has_album_capability, CAPABILITY_ALBUMS)
        return await source.get_album_tracks(album_id)

    async def search_all(self, query: str) -> SearchResult:
        """Search every source and merge albums that describe the same release.

        Primary albums seed the matcher before metadata releases, so metadata
        only ever enriches them. Without metadata sources the primary albums
        are returned untouched.
        """
        searchable = [source for source in self._sources if has_search_capability(source)]
        release_sources = [source for source in self._metadata_sources if has_release_search_capability(source)]

        search_results, release_results = await asyncio.gather(
            _settle(searchable, lambda source: source.search(query)),
            _settle(release_sources, lambda source: source.search_releases(query, self.metadata_search_limit)),
        )

        tracks: list[CanonicalTrack] = []
        albums: list[tuple[str, CanonicalAlbum]] = []
        for source, result in search_results:
            tracks.extend(result.tracks)
            albums.extend((source.type, album) for album in result.albums)

        if not self._metadata_sources:
            logger.debug(f"Поиск '{query}': {len(tracks)} треков, {len(albums)} альбомов")
            return SearchResult(tracks=tuple(tracks), albums=tuple(album for _, album in albums))

        matcher = Matcher(similarity_threshold=self.similarity_threshold)
        album_tracks: dict[str, tuple[CanonicalTrack, ...]] = {}
        for source_type, album in albums:
            release = album_to_release(album, source_type)
            if album.tracks:
                album_tracks.setdefault(release.ids[0].key, album.tracks)
            matcher.add_or_merge(release)
        for source, releases in release_results:
            for release in releases:
                if not release.ids:
                    logger.warning(f"Источник {source.type} вернул релиз без идентификаторов: {release.title!r}")
                    continue
                matcher.add_or_merge(release)

        merged = [
            release_to_album(release, self._tracks_for(release, album_tracks))
            for release in matcher.get_all()
        ]
        logger.debug(f"Поиск '{query}': {len(tracks)} треков, {len(merged)} альбомов, {matcher.get_stats()}")
        return SearchResult(tracks=tuple(tracks), albums=tuple(merged))

    @staticmethod
    def _tracks_for(
        release: NormalizedRelease,
        album_tracks: dict[str, tuple[CanonicalTrack, ...]],
    ) -> tuple[CanonicalTrack, ...]:
        for source_id in release.ids:
            if source_id.key in album_tracks:
                return album_tracks[source_id.key]
        return ()

    def _require(self, source_type: str, predicate: Callable[[Any], bool], capability: str) -> Any:
        source = self._by_type.get(source_type)
        if source is None or not predicate(source):
            raise UnsupportedCapabilityError(source_type, capability)
        return source


def create_source_manager(
    sources: Iterable[Source],
    metadata_sources: Iterable[Source] = (),
    *,
    similarity_threshold: float = FUZZY_MATCH_THRESHOLD,
    metadata_search_limit: int = METADATA_SEARCH_LIMIT,
) -> SourceManager:
    return SourceManager(
        sources,
        metadata_sources,
        similarity_threshold=similarity_threshold,
        metadata_search_limit=metadata_search_limit,
    )

"""Tidal source with search, playlists, albums and stream URLs."""

import asyncio
from pathlib import Path
from typing import Optional

import tidalapi

from mixsource.config import TIDAL_SESSION_FILE, load_tidal_session
from mixsource.constants import (
    SEARCH_RESULTS_LIMIT,
    SOURCE_TIDAL,
    TIDAL_COVER_SIZE,
    TIDAL_PLAYLIST_IMAGE_SIZE,
    get_logger,
)
from mixsource.models import (
    AlbumTracks,
    CanonicalAlbum,
    CanonicalPlaylist,
    CanonicalTrack,
    SearchResult,
    SourceId,
)
from mixsource.retry import retry_with_backoff

logger = get_logger("tidal")


def _image(item, size: int) -> Optional[str]:
    """Image URL of an album or playlist, None if it has no artwork."""
    if item is None:
        return None
    try:
        return item.image(size)
    except (ValueError, AttributeError):
        return None


def _artist_name(item) -> str:
    return item.artist.name if getattr(item, "artist", None) else ""


class TidalSource:
    type = SOURCE_TIDAL
    name = "Tidal"

    def __init__(self, session: tidalapi.Session):
        self.session = session

    @classmethod
    def from_saved_session(cls, path: Path = TIDAL_SESSION_FILE) -> Optional["TidalSource"]:
        """Restore the saved OAuth session. Returns None if it is missing, expired or cannot be restored."""
        session = tidalapi.Session()
        if not load_tidal_session(session, path):
            logger.info("Сохранённая сессия Tidal недоступна")
            return None
        return cls(session)

    async def search(self, query: str) -> SearchResult:
        return await asyncio.to_thread(self._search, query)

    async def list_playlists(self) -> list[CanonicalPlaylist]:
        return await asyncio.to_thread(self._list_playlists)

    async def get_playlist_tracks(self, playlist_id: str) -> list[CanonicalTrack]:
        return await asyncio.to_thread(self._get_playlist_tracks, playlist_id)

    async def get_album_tracks(self, album_id: str) -> AlbumTracks:
        return await asyncio.to_thread(self._get_album_tracks, album_id)

    async def get_stream_url(self, track_id: str) -> str:
        return await asyncio.to_thread(self._get_stream_url, track_id)

    @retry_with_backoff()
    def _search(self, query: str) -> SearchResult:
        results = self.session.search(query, models=[tidalapi.Track, tidalapi.Album], limit=SEARCH_RESULTS_LIMIT)
        tracks = tuple(self._to_track(track) for track in results.get("tracks") or [])
        albums = tuple(self._to_album(album) for album in results.get("albums") or [])
        logger.debug(f"Tidal '{query}': {len(tracks)} треков, {len(albums)} альбомов")
        return SearchResult(tracks=tracks, albums=albums)

    @retry_with_backoff()
    def _list_playlists(self) -> list[CanonicalPlaylist]:
        return [
            CanonicalPlaylist(
                id=str(playlist.id),
                name=playlist.name,
                source=SOURCE_TIDAL,
                description=playlist.description or None,
                artwork_url=_image(playlist, TIDAL_PLAYLIST_IMAGE_SIZE),
            )
            for playlist in self.session.user.playlists()
        ]

    @retry_with_backoff()
    def _get_playlist_tracks(self, playlist_id: str) -> list[CanonicalTrack]:
        playlist = self.session.playlist(playlist_id)
        return [self._to_track(track) for track in playlist.tracks()]

    @retry_with_backoff()
    def _get_album_tracks(self, album_id: str) -> AlbumTracks:
        album = self.session.album(album_id)
        canonical = self._to_album(album)
        tracks = tuple(self._to_track(track) for track in album.tracks())
        return AlbumTracks(album=canonical, tracks=tracks)

    @retry_with_backoff()
    def _get_stream_url(self, track_id: str) -> str:
        return self.session.track(track_id).get_url()

    @staticmethod
    def _to_track(track) -> CanonicalTrack:
        track_id = str(track.id)
        return CanonicalTrack(
            id=track_id,
            title=track.name or "",
            artist=_artist_name(track),
            album=track.album.name if track.album else "",
            source_id=SourceId(SOURCE_TIDAL, track_id),
            duration=track.duration or None,
            artwork_url=_image(track.album, TIDAL_COVER_SIZE),
        )

    @staticmethod
    def _to_album(album) -> CanonicalAlbum:
        album_id = str(album.id)
        year = getattr(album, "year", None)
        if year is None and getattr(album, "release_date", None):
            year = album.release_date.year
        return CanonicalAlbum(
            id=album_id,
            title=album.name or "",
            artist=_artist_name(album),
            source_ids=(SourceId(SOURCE_TIDAL, album_id),),
            year=year,
            artwork_url=_image(album, TIDAL_COVER_SIZE),
        )

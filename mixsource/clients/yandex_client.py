import asyncio
import os
from typing import Optional

from yandex_music import Client

from mixsource.constants import ARTIST_JOIN, SOURCE_YANDEX, YANDEX_COVER_SIZE, get_logger
from mixsource.models import (
    AlbumTracks,
    CanonicalAlbum,
    CanonicalPlaylist,
    CanonicalTrack,
    SearchResult,
    SourceId,
)
from mixsource.retry import retry_with_backoff

logger = get_logger("yandex")


def cover_url(cover_uri: Optional[str]) -> Optional[str]:
    """Expand a Yandex '%%' cover template into a fetchable URL."""
    if not cover_uri:
        return None
    return f"https://{cover_uri.replace('%%', YANDEX_COVER_SIZE)}"


def split_playlist_id(playlist_id: str) -> tuple[str, int]:
    """Split an '<owner uid>:<kind>' playlist id."""
    owner, _, kind = playlist_id.partition(":")
    if not owner or not kind.isdigit():
        raise ValueError(f"Invalid Yandex Music playlist id: {playlist_id!r}")
    return owner, int(kind)


def _artist_names(item) -> str:
    return ARTIST_JOIN.join(artist.name for artist in item.artists or () if artist.name)


class YandexMusicSource:
    """Yandex Music: search, playlists, albums and direct stream links."""

    type = SOURCE_YANDEX
    name = "Yandex Music"

    def __init__(self, token: str | None = None, client: Optional[Client] = None):
        if client is None:
            token = token or os.environ.get("YANDEX_MUSIC_TOKEN")
            if not token:
                raise ValueError("YANDEX_MUSIC_TOKEN is required")
            client = Client(token).init()
        self.client = client

    async def search(self, query: str) -> SearchResult:
        return await asyncio.to_thread(self._search, query)

    async def list_playlists(self) -> list[CanonicalPlaylist]:
        return await asyncio.to_thread(self._list_playlists)

    async def get_playlist_tracks(self, playlist_id: str) -> list[CanonicalTrack]:
        owner, kind = split_playlist_id(playlist_id)
        return await asyncio.to_thread(self._get_playlist_tracks, owner, kind)

    async def get_album_tracks(self, album_id: str) -> AlbumTracks:
        return await asyncio.to_thread(self._get_album_tracks, album_id)

    async def get_stream_url(self, track_id: str) -> str:
        return await asyncio.to_thread(self._get_stream_url, track_id)

    @retry_with_backoff()
    def _search(self, query: str) -> SearchResult:
        results = self.client.search(query)
        if results is None:
            return SearchResult()
        tracks = tuple(self._to_track(t) for t in (results.tracks.results if results.tracks else []))
        albums = tuple(self._to_album(a) for a in (results.albums.results if results.albums else []))
        logger.debug(f"Yandex Music '{query}': {len(tracks)} треков, {len(albums)} альбомов")
        return SearchResult(tracks=tracks, albums=albums)

    @retry_with_backoff()
    def _list_playlists(self) -> list[CanonicalPlaylist]:
        return [
            CanonicalPlaylist(
                id=f"{playlist.owner.uid}:{playlist.kind}",
                name=playlist.title,
                source=SOURCE_YANDEX,
                description=playlist.description or None,
                artwork_url=cover_url(playlist.og_image),
            )
            for playlist in self.client.users_playlists_list()
        ]

    @retry_with_backoff()
    def _get_playlist_tracks(self, owner: str, kind: int) -> list[CanonicalTrack]:
        playlist = self.client.users_playlists(kind, user_id=owner)
        return [self._to_track(item.track) for item in playlist.tracks if item.track]

    @retry_with_backoff()
    def _fetch_album(self, album_id: str):
        return self.client.albums_with_tracks(album_id)

    def _get_album_tracks(self, album_id: str) -> AlbumTracks:
        data = self._fetch_album(album_id)
        if data is None:
            raise LookupError(f"Yandex Music album {album_id} not found")
        album = self._to_album(data)
        tracks = tuple(
            self._to_track(track, album_name=album.title)
            for volume in data.volumes or ()
            for track in volume
        )
        return AlbumTracks(album=album, tracks=tracks)

    @retry_with_backoff()
    def _fetch_download_info(self, track_id: str) -> list:
        return self.client.tracks_download_info(track_id, get_direct_links=True)

    def _get_stream_url(self, track_id: str) -> str:
        infos = self._fetch_download_info(track_id)
        candidates = [info for info in infos or () if info.direct_link]
        if not candidates:
            raise LookupError(f"No stream available for Yandex Music track {track_id}")
        best = max(candidates, key=lambda info: (info.codec == "mp3", info.bitrate_in_kbps or 0))
        return best.direct_link

    @staticmethod
    def _to_track(track, album_name: str | None = None) -> CanonicalTrack:
        track_id = str(track.id)
        albums = track.albums or []
        return CanonicalTrack(
            id=track_id,
            title=track.title or "",
            artist=_artist_names(track),
            album=album_name if album_name is not None else (albums[0].title if albums else ""),
            source_id=SourceId(SOURCE_YANDEX, track_id),
            duration=track.duration_ms // 1000 if track.duration_ms else None,
            artwork_url=cover_url(track.cover_uri),
        )

    @staticmethod
    def _to_album(album) -> CanonicalAlbum:
        album_id = str(album.id)
        return CanonicalAlbum(
            id=album_id,
            title=album.title or "",
            artist=_artist_names(album),
            source_ids=(SourceId(SOURCE_YANDEX, album_id),),
            year=album.year,
            artwork_url=cover_url(album.cover_uri),
            genres=(album.genre,) if album.genre else (),
        )

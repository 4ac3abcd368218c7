import asyncio
import os
from typing import Optional

import spotipy
from spotipy.oauth2 import SpotifyOAuth

from mixsource.constants import ARTIST_JOIN, SEARCH_RESULTS_LIMIT, SOURCE_SPOTIFY, get_logger
from mixsource.models import (
    AlbumTracks,
    CanonicalAlbum,
    CanonicalPlaylist,
    CanonicalTrack,
    SearchResult,
    SourceId,
)
from mixsource.retry import retry_with_backoff

logger = get_logger("spotify")


def _first_image(images: Optional[list]) -> Optional[str]:
    for image in images or []:
        if image.get("url"):
            return image["url"]
    return None


def _parse_year(release_date: Optional[str]) -> Optional[int]:
    if not release_date:
        return None
    try:
        return int(release_date[:4])
    except ValueError:
        return None


def _artist_names(item: dict) -> str:
    return ARTIST_JOIN.join(artist.get("name", "") for artist in item.get("artists", []) if artist.get("name"))


class SpotifySource:
    """Spotify catalog: search, playlists and albums. Spotify does not hand out stream URLs."""

    type = SOURCE_SPOTIFY
    name = "Spotify"

    def __init__(self, client: Optional[spotipy.Spotify] = None, scope: str | None = None):
        if client is None:
            scope = scope or "playlist-read-private playlist-read-collaborative"
            client = spotipy.Spotify(
                auth_manager=SpotifyOAuth(
                    scope=scope,
                    client_id=os.environ.get("SPOTIFY_CLIENT_ID"),
                    client_secret=os.environ.get("SPOTIFY_CLIENT_SECRET"),
                    redirect_uri=os.environ.get("SPOTIFY_REDIRECT_URI", "http://localhost:8080/callback"),
                    cache_path=os.environ.get("SPOTIFY_TOKEN_CACHE", ".spotify-token-cache"),
                    open_browser=False,
                )
            )
        self.client = client

    async def search(self, query: str) -> SearchResult:
        return await asyncio.to_thread(self._search, query)

    async def list_playlists(self) -> list[CanonicalPlaylist]:
        return await asyncio.to_thread(self._list_playlists)

    async def get_playlist_tracks(self, playlist_id: str) -> list[CanonicalTrack]:
        return await asyncio.to_thread(self._get_playlist_tracks, playlist_id)

    async def get_album_tracks(self, album_id: str) -> AlbumTracks:
        return await asyncio.to_thread(self._get_album_tracks, album_id)

    @retry_with_backoff()
    def _search(self, query: str) -> SearchResult:
        results = self.client.search(query, limit=SEARCH_RESULTS_LIMIT, type="track,album")
        tracks = [
            self._to_track(item)
            for item in (results.get("tracks") or {}).get("items", [])
            if item and item.get("id")
        ]
        albums = [
            self._to_album(item)
            for item in (results.get("albums") or {}).get("items", [])
            if item and item.get("id")
        ]
        logger.debug(f"Spotify '{query}': {len(tracks)} треков, {len(albums)} альбомов")
        return SearchResult(tracks=tuple(tracks), albums=tuple(albums))

    @retry_with_backoff()
    def _list_playlists(self) -> list[CanonicalPlaylist]:
        results = self.client.current_user_playlists()
        playlists = self._extract_playlists(results)
        while results["next"]:
            results = self.client.next(results)
            playlists.extend(self._extract_playlists(results))
        return playlists

    @retry_with_backoff()
    def _get_playlist_tracks(self, playlist_id: str) -> list[CanonicalTrack]:
        results = self.client.playlist_items(playlist_id, additional_types=("track",))
        tracks = self._extract_tracks(results)
        while results["next"]:
            results = self.client.next(results)
            tracks.extend(self._extract_tracks(results))
        return tracks

    @retry_with_backoff()
    def _get_album_tracks(self, album_id: str) -> AlbumTracks:
        data = self.client.album(album_id)
        items = list((data.get("tracks") or {}).get("items", []))
        page = data.get("tracks") or {}
        while page.get("next"):
            page = self.client.next(page)
            items.extend(page.get("items", []))

        album = self._to_album(data)
        tracks = tuple(
            self._to_track(item, album_name=album.title, artwork_url=album.artwork_url)
            for item in items
            if item and item.get("id")
        )
        return AlbumTracks(album=album, tracks=tracks)

    @staticmethod
    def _to_track(item: dict, album_name: str | None = None, artwork_url: str | None = None) -> CanonicalTrack:
        album = item.get("album") or {}
        duration_ms = item.get("duration_ms")
        return CanonicalTrack(
            id=item["id"],
            title=item.get("name", ""),
            artist=_artist_names(item),
            album=album_name if album_name is not None else album.get("name", ""),
            source_id=SourceId(SOURCE_SPOTIFY, item["id"]),
            duration=duration_ms // 1000 if duration_ms else None,
            artwork_url=artwork_url or _first_image(album.get("images")),
        )

    @staticmethod
    def _to_album(item: dict) -> CanonicalAlbum:
        return CanonicalAlbum(
            id=item["id"],
            title=item.get("name", ""),
            artist=_artist_names(item),
            source_ids=(SourceId(SOURCE_SPOTIFY, item["id"]),),
            year=_parse_year(item.get("release_date")),
            artwork_url=_first_image(item.get("images")),
            genres=tuple(item.get("genres") or ()),
        )

    @staticmethod
    def _extract_playlists(results: dict) -> list[CanonicalPlaylist]:
        return [
            CanonicalPlaylist(
                id=item["id"],
                name=item.get("name", ""),
                source=SOURCE_SPOTIFY,
                description=item.get("description") or None,
                artwork_url=_first_image(item.get("images")),
            )
            for item in results.get("items", [])
            if item and item.get("id")
        ]

    @classmethod
    def _extract_tracks(cls, results: dict) -> list[CanonicalTrack]:
        extracted: list[CanonicalTrack] = []
        for item in results.get("items", []):
            track = item.get("track")
            if not track or not track.get("id") or not track.get("name"):
                continue
            extracted.append(cls._to_track(track))
        return extracted

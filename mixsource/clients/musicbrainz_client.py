"""MusicBrainz release-group search as a metadata source."""

import asyncio
import os
import re
from typing import Optional

import musicbrainzngs

from mixsource.constants import (
    APP_NAME,
    APP_VERSION,
    OTHER_RELEASE_TYPE,
    RELEASE_TYPES,
    SOURCE_MUSICBRAINZ,
    get_logger,
)
from mixsource.models import NormalizedRelease, ReleaseArtist, SourceId
from mixsource.retry import retry_with_backoff

logger = get_logger("musicbrainz")


def _artist_credit(group: dict) -> tuple[str, tuple[SourceId, ...]]:
    """Credited name with join phrases, plus the ids of every credited artist."""
    credit = group.get("artist-credit")
    if not credit:
        return group.get("artist-credit-phrase") or "", ()

    parts: list[str] = []
    ids: list[SourceId] = []
    for chunk in credit:
        # musicbrainzngs keeps join phrases as bare strings between credits
        if isinstance(chunk, str):
            parts.append(chunk)
            continue
        artist = chunk.get("artist") or {}
        name = chunk.get("name") or artist.get("name")
        if name:
            parts.append(name)
        if chunk.get("joinphrase"):
            parts.append(chunk["joinphrase"])
        if artist.get("id"):
            ids.append(SourceId(SOURCE_MUSICBRAINZ, artist["id"]))
    return "".join(parts).strip(), tuple(ids)


def _release_type(group: dict) -> str:
    primary = (group.get("primary-type") or group.get("type") or "").lower()
    return primary if primary in RELEASE_TYPES else OTHER_RELEASE_TYPE


def _year(date: Optional[str]) -> Optional[int]:
    match = re.match(r"^(\d{4})", date or "")
    return int(match.group(1)) if match else None


def _genres(group: dict) -> list[str]:
    tags = sorted(group.get("tag-list") or [], key=lambda tag: int(tag.get("count") or 0), reverse=True)
    return [tag["name"] for tag in tags if tag.get("name")]


class MusicBrainzSource:
    """Release metadata from MusicBrainz. Has no tracks, playlists or streams."""

    type = SOURCE_MUSICBRAINZ
    name = "MusicBrainz"

    def __init__(self, contact: str | None = None, client=None):
        self.client = client or musicbrainzngs
        contact = contact or os.environ.get("MUSICBRAINZ_CONTACT")
        self.client.set_useragent(APP_NAME, APP_VERSION, contact)

    async def search_releases(self, query: str, limit: int) -> list[NormalizedRelease]:
        return await asyncio.to_thread(self._search_releases, query, limit)

    @retry_with_backoff(exceptions=(musicbrainzngs.WebServiceError,))
    def _fetch_release_groups(self, query: str, limit: int) -> dict:
        return self.client.search_release_groups(query=query, limit=limit)

    def _search_releases(self, query: str, limit: int) -> list[NormalizedRelease]:
        data = self._fetch_release_groups(query, limit)
        releases = [
            self._to_release(group)
            for group in data.get("release-group-list", [])
            if group.get("id")
        ]
        logger.debug(f"MusicBrainz '{query}': {len(releases)} релизов")
        return releases

    @staticmethod
    def _to_release(group: dict) -> NormalizedRelease:
        name, artist_ids = _artist_credit(group)
        score = int(group.get("ext:score") or 0)
        return NormalizedRelease(
            title=group.get("title") or "Unknown",
            artists=[ReleaseArtist(name=name or "Unknown", ids=artist_ids)],
            ids=[SourceId(SOURCE_MUSICBRAINZ, group["id"])],
            release_type=_release_type(group),
            year=_year(group.get("first-release-date")),
            confidence=score / 100,
            genres=_genres(group),
            source_scores={SOURCE_MUSICBRAINZ: score},
        )

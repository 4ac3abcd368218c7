import os
from typing import Iterable, Optional

from mixsource.capabilities import Source
from mixsource.clients.musicbrainz_client import MusicBrainzSource
from mixsource.clients.spotify_client import SpotifySource
from mixsource.clients.tidal_client import TidalSource
from mixsource.clients.yandex_client import YandexMusicSource
from mixsource.config import Config, load_environment
from mixsource.constants import SOURCE_MUSICBRAINZ, SOURCE_SPOTIFY, SOURCE_TIDAL, SOURCE_YANDEX, get_logger
from mixsource.manager import SourceManager, create_source_manager

logger = get_logger("sources")


def build_sources(config: Optional[Config] = None, env_file: str = ".env") -> list[Source]:
    """Create every enabled primary source that has credentials, in config order."""
    config = config or Config.load()
    load_environment(env_file)

    sources: list[Source] = []
    for source_type in config.enabled_sources:
        if source_type == SOURCE_SPOTIFY:
            if not os.environ.get("SPOTIFY_CLIENT_ID"):
                logger.info("SPOTIFY_CLIENT_ID не задан, Spotify пропущен")
                continue
            sources.append(SpotifySource())
        elif source_type == SOURCE_YANDEX:
            token = config.yandex_token or os.environ.get("YANDEX_MUSIC_TOKEN")
            if not token:
                logger.info("Токен Yandex Music не задан, источник пропущен")
                continue
            sources.append(YandexMusicSource(token=token))
        elif source_type == SOURCE_TIDAL:
            tidal = TidalSource.from_saved_session()
            if tidal is None:
                continue
            sources.append(tidal)
        else:
            logger.warning(f"Неизвестный источник в конфигурации: {source_type}")
    return sources


def build_metadata_sources(config: Optional[Config] = None) -> list[Source]:
    """Create every enabled metadata source, in config order."""
    config = config or Config.load()

    sources: list[Source] = []
    for source_type in config.metadata_sources:
        if source_type == SOURCE_MUSICBRAINZ:
            sources.append(MusicBrainzSource(contact=config.musicbrainz_contact))
        else:
            logger.warning(f"Неизвестный источник метаданных в конфигурации: {source_type}")
    return sources


def build_source_manager(
    config: Optional[Config] = None,
    metadata_sources: Optional[Iterable[Source]] = None,
    env_file: str = ".env",
) -> SourceManager:
    """Wire configured sources into a manager. Explicit metadata sources replace the configured ones."""
    config = config or Config.load()
    sources = build_sources(config, env_file)
    if metadata_sources is None:
        metadata_sources = build_metadata_sources(config)
    return create_source_manager(
        sources,
        metadata_sources,
        similarity_threshold=config.similarity_threshold,
        metadata_search_limit=config.metadata_search_limit,
    )

"""Configuration loading with permission checks."""

import json
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from mixsource.constants import (
    FUZZY_MATCH_THRESHOLD,
    METADATA_SEARCH_LIMIT,
    METADATA_SOURCES,
    PRIMARY_SOURCES,
    get_logger,
)

logger = get_logger("config")

CONFIG_DIR = Path.home() / ".config" / "mixsource"
CONFIG_FILE = CONFIG_DIR / "config.json"
TIDAL_SESSION_FILE = CONFIG_DIR / "tidal_session.json"


def _check_permissions(path: Path) -> None:
    """Warn if file has insecure permissions."""
    if not path.exists():
        return

    try:
        mode = stat.S_IMODE(os.stat(path).st_mode)
        if mode & (stat.S_IRWXG | stat.S_IRWXO):  # Group or other has access
            logger.warning(
                f"Файл {path} имеет небезопасные права доступа ({oct(mode)}). "
                f"Рекомендуется: chmod 600 {path}"
            )
    except OSError:
        pass


def load_environment(env_file: str = ".env") -> bool:
    """Load credentials from a .env file if it exists."""
    env_path = Path(env_file)
    if not env_path.exists():
        return False
    return load_dotenv(env_path)


@dataclass
class Config:
    yandex_token: Optional[str] = None
    musicbrainz_contact: Optional[str] = None
    similarity_threshold: float = FUZZY_MATCH_THRESHOLD
    metadata_search_limit: int = METADATA_SEARCH_LIMIT
    enabled_sources: list[str] = field(default_factory=lambda: list(PRIMARY_SOURCES))
    metadata_sources: list[str] = field(default_factory=lambda: list(METADATA_SOURCES))

    @classmethod
    def load(cls, path: Path = CONFIG_FILE) -> "Config":
        """Load config from file, falling back to defaults."""
        if not path.exists():
            return cls()

        _check_permissions(path)

        try:
            with open(path) as f:
                data = json.load(f)
            logger.debug(f"Конфигурация загружена из {path}")
            return cls(**data)
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Ошибка чтения конфигурации: {e}")
            return cls()


def load_tidal_session(session, path: Path = TIDAL_SESSION_FILE) -> bool:
    """Load Tidal session credentials. Returns True if successful."""
    if not path.exists():
        return False

    _check_permissions(path)

    try:
        with open(path) as f:
            data = json.load(f)

        session.load_oauth_session(
            token_type=data["token_type"],
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
        )

        if session.check_login():
            logger.debug("Сессия Tidal загружена успешно")
            return True

        logger.debug("Сессия Tidal истекла")
        return False

    except (json.JSONDecodeError, KeyError) as e:
        logger.warning(f"Ошибка загрузки сессии Tidal: {e}")
        return False
    except Exception as e:
        logger.error(f"Неожиданная ошибка при загрузке сессии: {e}")
        return False

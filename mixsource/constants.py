"""Constants and tuning values for source aggregation."""

import logging

# --- Source types ---
SOURCE_SPOTIFY = "spotify"
SOURCE_YANDEX = "yandex"
SOURCE_TIDAL = "tidal"
SOURCE_MUSICBRAINZ = "musicbrainz"
SOURCE_DISCOGS = "discogs"
SOURCE_BANDCAMP = "bandcamp"

PRIMARY_SOURCES = (SOURCE_SPOTIFY, SOURCE_YANDEX, SOURCE_TIDAL)
METADATA_SOURCES = (SOURCE_MUSICBRAINZ,)

APP_NAME = "mixsource"
APP_VERSION = "0.1.0"

# --- Search and matching ---
SEARCH_RESULTS_LIMIT = 10
METADATA_SEARCH_LIMIT = 10
FUZZY_MATCH_THRESHOLD = 0.85
ARTIST_WEIGHT = 0.45
TITLE_WEIGHT = 0.55
YEAR_MATCH_BONUS = 0.05
JARO_WINKLER_PREFIX_WEIGHT = 0.1
UNKNOWN_YEAR = "x"
DEFAULT_RELEASE_TYPE = "album"
RELEASE_TYPES = ("album", "ep", "single", "compilation", "soundtrack", "live", "remix")
OTHER_RELEASE_TYPE = "other"
ARTIST_JOIN = " & "

# Highest first.
ARTWORK_PRIORITY = (
    SOURCE_DISCOGS,
    SOURCE_BANDCAMP,
    SOURCE_MUSICBRAINZ,
    SOURCE_TIDAL,
    SOURCE_SPOTIFY,
    SOURCE_YANDEX,
)

# --- Artwork sizes ---
YANDEX_COVER_SIZE = "400x400"
TIDAL_COVER_SIZE = 640
TIDAL_PLAYLIST_IMAGE_SIZE = 480

# --- Retry ---
RETRY_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY_SEC = 1.0
RETRY_MAX_DELAY_SEC = 10.0


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific module."""
    return logging.getLogger(f"mixsource.{name}")

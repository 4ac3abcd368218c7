import json
import os
import tempfile
from pathlib import Path
from types import SimpleNamespace
from unittest import TestCase
from unittest.mock import Mock, patch

from mixsource.config import Config, load_environment, load_tidal_session
from mixsource.constants import FUZZY_MATCH_THRESHOLD, METADATA_SOURCES, PRIMARY_SOURCES


class ConfigTests(TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.dir = Path(self.tmp.name) / "mixsource"
        self.path = self.dir / "config.json"

    def test_defaults_when_missing(self) -> None:
        config = Config.load(self.path)
        self.assertIsNone(config.yandex_token)
        self.assertEqual(config.similarity_threshold, FUZZY_MATCH_THRESHOLD)
        self.assertEqual(config.enabled_sources, list(PRIMARY_SOURCES))
        self.assertEqual(config.metadata_sources, list(METADATA_SOURCES))

    def test_loads_stored_values(self) -> None:
        self.dir.mkdir(parents=True)
        self.path.write_text(json.dumps({"yandex_token": "secret", "similarity_threshold": 0.9, "metadata_sources": []}))
        os.chmod(self.path, 0o600)

        loaded = Config.load(self.path)
        self.assertEqual(loaded.yandex_token, "secret")
        self.assertEqual(loaded.similarity_threshold, 0.9)
        self.assertEqual(loaded.metadata_sources, [])
        self.assertEqual(loaded.enabled_sources, list(PRIMARY_SOURCES))

    def test_unreadable_file_falls_back_to_defaults(self) -> None:
        self.dir.mkdir(parents=True)
        self.path.write_text("{}")
        os.chmod(self.path, 0o600)

        with patch("builtins.open", side_effect=PermissionError("denied")), \
                self.assertLogs("mixsource.config", level="WARNING"):
            config = Config.load(self.path)
        self.assertEqual(config, Config())

    def test_broken_file_falls_back_to_defaults(self) -> None:
        self.dir.mkdir(parents=True)
        self.path.write_text("{not json")
        os.chmod(self.path, 0o600)

        with self.assertLogs("mixsource.config", level="WARNING"):
            config = Config.load(self.path)
        self.assertEqual(config, Config())

    def test_unknown_keys_fall_back_to_defaults(self) -> None:
        self.dir.mkdir(parents=True)
        self.path.write_text(json.dumps({"spotify_secret": "x"}))
        os.chmod(self.path, 0o600)

        with self.assertLogs("mixsource.config", level="WARNING"):
            self.assertEqual(Config.load(self.path), Config())

    def test_warns_about_insecure_permissions(self) -> None:
        self.dir.mkdir(parents=True)
        self.path.write_text(json.dumps({"metadata_search_limit": 5}))
        os.chmod(self.path, 0o644)

        with self.assertLogs("mixsource.config", level="WARNING") as logs:
            config = Config.load(self.path)
        self.assertEqual(config.metadata_search_limit, 5)
        self.assertIn("chmod 600", "\n".join(logs.output))


class EnvironmentTests(TestCase):
    def test_missing_env_file(self) -> None:
        self.assertFalse(load_environment("/nonexistent/.env"))

    def test_loads_env_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            env_file = Path(tmp) / ".env"
            env_file.write_text("MIXSOURCE_TEST_TOKEN=abc\n")
            with patch.dict(os.environ, {}, clear=False):
                os.environ.pop("MIXSOURCE_TEST_TOKEN", None)
                self.assertTrue(load_environment(str(env_file)))
                self.assertEqual(os.environ["MIXSOURCE_TEST_TOKEN"], "abc")


class FakeTidalSession:
    def __init__(self, logged_in: bool = True):
        self.logged_in = logged_in
        self.loaded = None

    def load_oauth_session(self, token_type, access_token, refresh_token=None):
        self.loaded = SimpleNamespace(token_type=token_type, access_token=access_token, refresh_token=refresh_token)

    def check_login(self) -> bool:
        return self.logged_in


class TidalSessionTests(TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = Path(self.tmp.name) / "tidal_session.json"

    def _write(self, data: dict) -> None:
        self.path.write_text(json.dumps(data))
        os.chmod(self.path, 0o600)

    def test_no_saved_session(self) -> None:
        self.assertFalse(load_tidal_session(FakeTidalSession(), self.path))

    def test_restores_session(self) -> None:
        self._write({"token_type": "Bearer", "access_token": "a", "refresh_token": "r"})
        session = FakeTidalSession()

        self.assertTrue(load_tidal_session(session, self.path))
        self.assertEqual(session.loaded.access_token, "a")
        self.assertEqual(session.loaded.refresh_token, "r")

    def test_expired_session(self) -> None:
        self._write({"token_type": "Bearer", "access_token": "a"})
        self.assertFalse(load_tidal_session(FakeTidalSession(logged_in=False), self.path))

    def test_incomplete_session_file(self) -> None:
        self._write({"token_type": "Bearer"})
        with self.assertLogs("mixsource.config", level="WARNING"):
            self.assertFalse(load_tidal_session(FakeTidalSession(), self.path))

    def test_session_fault_is_not_raised(self) -> None:
        self._write({"token_type": "Bearer", "access_token": "a"})
        session = FakeTidalSession()
        session.load_oauth_session = Mock(side_effect=ConnectionError("tidal unreachable"))

        with self.assertLogs("mixsource.config", level="ERROR"):
            self.assertFalse(load_tidal_session(session, self.path))

from types import SimpleNamespace
from unittest import TestCase

from mixsource.capabilities import (
    UnsupportedCapabilityError,
    has_album_capability,
    has_playlist_capability,
    has_release_search_capability,
    has_search_capability,
    has_stream_capability,
)


async def _noop(*args):
    return None


class CapabilityTests(TestCase):
    def test_bare_source_has_nothing(self) -> None:
        source = SimpleNamespace(type="local", name="Local")
        self.assertFalse(has_search_capability(source))
        self.assertFalse(has_playlist_capability(source))
        self.assertFalse(has_stream_capability(source))
        self.assertFalse(has_album_capability(source))
        self.assertFalse(has_release_search_capability(source))

    def test_detects_each_capability(self) -> None:
        source = SimpleNamespace(
            type="full",
            name="Full",
            search=_noop,
            list_playlists=_noop,
            get_playlist_tracks=_noop,
            get_stream_url=_noop,
            get_album_tracks=_noop,
            search_releases=_noop,
        )
        self.assertTrue(has_search_capability(source))
        self.assertTrue(has_playlist_capability(source))
        self.assertTrue(has_stream_capability(source))
        self.assertTrue(has_album_capability(source))
        self.assertTrue(has_release_search_capability(source))

    def test_playlists_need_both_methods(self) -> None:
        listing_only = SimpleNamespace(type="a", name="A", list_playlists=_noop)
        tracks_only = SimpleNamespace(type="b", name="B", get_playlist_tracks=_noop)
        self.assertFalse(has_playlist_capability(listing_only))
        self.assertFalse(has_playlist_capability(tracks_only))

    def test_non_callable_attribute_does_not_count(self) -> None:
        source = SimpleNamespace(type="odd", name="Odd", search="not a function", get_stream_url=None)
        self.assertFalse(has_search_capability(source))
        self.assertFalse(has_stream_capability(source))

    def test_class_methods_count(self) -> None:
        class StreamOnly:
            type = "radio"
            name = "Radio"

            async def get_stream_url(self, track_id: str) -> str:
                return f"https://radio/{track_id}"

        source = StreamOnly()
        self.assertTrue(has_stream_capability(source))
        self.assertFalse(has_search_capability(source))

    def test_error_names_source_and_capability(self) -> None:
        error = UnsupportedCapabilityError("radio", "playlists")
        self.assertEqual(error.source_type, "radio")
        self.assertEqual(error.capability, "playlists")
        self.assertEqual(str(error), 'Source "radio" does not support playlists')
        self.assertIsInstance(error, ValueError)

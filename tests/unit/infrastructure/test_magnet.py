"""Tests for magnet URI construction."""

from __future__ import annotations

from streamsift.infrastructure.matching.magnet import (
    DEFAULT_TRACKERS,
    build_magnet,
    encode_component,
)


class TestEncodeComponent:
    def test_keeps_unreserved_marks(self) -> None:
        assert encode_component("a-b_c.d!e~f*g'h(i)") == "a-b_c.d!e~f*g'h(i)"

    def test_encodes_spaces_and_reserved(self) -> None:
        assert encode_component("a b/c:d&e") == "a%20b%2Fc%3Ad%26e"


class TestBuildMagnet:
    def test_full_uri(self) -> None:
        uri = build_magnet("abc123", "The Matrix (1999)", ["udp://t:1/announce"])
        assert uri == (
            "magnet:?xt=urn:btih:abc123"
            "&dn=The%20Matrix%20(1999)"
            "&tr=udp%3A%2F%2Ft%3A1%2Fannounce"
        )

    def test_default_trackers_appended(self) -> None:
        uri = build_magnet("abc123", "Name")
        assert uri.count("&tr=") == len(DEFAULT_TRACKERS) == 18

    def test_empty_hash_yields_empty_string(self) -> None:
        assert build_magnet("", "Name") == ""
        assert build_magnet("   ", "Name") == ""

    def test_no_display_name(self) -> None:
        assert build_magnet("abc123", "", []) == "magnet:?xt=urn:btih:abc123"

    def test_hash_is_stripped(self) -> None:
        assert build_magnet(" abc123 ", "", []) == "magnet:?xt=urn:btih:abc123"

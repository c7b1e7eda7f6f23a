"""Magnet URI construction."""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import quote

DEFAULT_TRACKERS: tuple[str, ...] = (
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://open.tracker.cl:1337/announce",
    "udp://9.rarbg.com:2810/announce",
    "udp://tracker.torrent.eu.org:451/announce",
    "udp://tracker.dler.org:6969/announce",
    "udp://open.stealth.si:80/announce",
    "udp://exodus.desync.com:6969/announce",
    "udp://tracker.openbittorrent.com:6969/announce",
    "http://tracker.openbittorrent.com:80/announce",
    "udp://www.torrent.eu.org:451/announce",
    "udp://tracker.moeking.me:6969/announce",
    "udp://movies.zsw.ca:6969/announce",
    "udp://uploads.gamecoast.net:6969/announce",
    "udp://tracker.tiny-vps.com:6969/announce",
    "udp://tracker.theoks.net:6969/announce",
    "udp://tracker.skyts.net:6969/announce",
    "udp://tracker.publictracker.xyz:6969/announce",
    "udp://tracker.monitorit4.me:6969/announce",
)

# Characters encodeURIComponent leaves alone; players expect that encoding.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_magnet(
    info_hash: str,
    display_name: str,
    trackers: Iterable[str] = DEFAULT_TRACKERS,
) -> str:
    """``magnet:?xt=urn:btih:<hash>&dn=<name>&tr=...``; empty for no hash."""
    info_hash = (info_hash or "").strip()
    if not info_hash:
        return ""
    parts = [f"magnet:?xt=urn:btih:{info_hash}"]
    if display_name:
        parts.append(f"dn={encode_component(display_name)}")
    parts.extend(f"tr={encode_component(t)}" for t in trackers)
    return "&".join(parts)

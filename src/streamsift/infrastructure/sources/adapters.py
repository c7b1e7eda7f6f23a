"""Response-shape adapters: one upstream payload family -> RawCandidates.

Upstream JSON is treated as untrusted: missing, renamed or wrongly typed
fields are read as absent, never as errors.  Adapters return an empty
list for payloads they cannot make sense of.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from streamsift.domain.entities.streams import RawCandidate, SourceFamily
from streamsift.infrastructure.common.converters import to_float, to_int, to_str
from streamsift.infrastructure.common.parsers import parse_size_to_bytes

SourceAdapter = Callable[[Any, str, str], list[RawCandidate]]

# Torrentio packs seeders and size into the display title:
#   "Release.Name.1080p\n👤 120 💾 1.4 GB ⚙️ ThePirateBay"
_STREAM_DATA_RE = re.compile(
    r"(?:👤 (\d+) )?💾 ([\d.]+ [KMGT]B)(?: ⚙️ (\w+))?", re.IGNORECASE
)


def _get(obj: Any, *path: str | int) -> Any:
    """Walk dicts/lists along *path*; None as soon as a step is missing."""
    cur = obj
    for step in path:
        if isinstance(step, int):
            if not isinstance(cur, list) or len(cur) <= step:
                return None
            cur = cur[step]
        else:
            if not isinstance(cur, dict):
                return None
            cur = cur.get(step)
    return cur


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# quality_index (YTS)
# ---------------------------------------------------------------------------


def _quality_index_torrents(payload: Any) -> tuple[Any, list[Any]]:
    movie = _get(payload, "data", "movie")
    torrents = _get(movie, "torrents")
    if isinstance(torrents, list):
        return movie, torrents
    movie = _get(payload, "data", "movies", 0)
    torrents = _get(movie, "torrents")
    if isinstance(torrents, list):
        return movie, torrents
    return None, []


def _quality_index_name(movie: Any, title: str) -> str:
    """Name of the movie the payload describes, with its year.

    ``title_long`` already carries the year ("Inception (2010)").  The
    requested title is used only when the payload names no movie at all.
    """
    year = to_int(_get(movie, "year"))
    name = to_str(_get(movie, "title"))
    if name is None:
        long_name = to_str(_get(movie, "title_long"))
        if long_name:
            return long_name
        name = title
    return f"{name} {year}" if year else name


def adapt_quality_index(payload: Any, title: str, source_url: str) -> list[RawCandidate]:
    """``data.movie.torrents`` (details) or ``data.movies[0].torrents`` (search)."""
    movie, torrents = _quality_index_torrents(payload)
    name = _quality_index_name(movie, title)

    out: list[RawCandidate] = []
    for t in torrents:
        if not isinstance(t, dict):
            continue
        quality = to_str(t.get("quality"))
        kind = to_str(t.get("type"))
        parts = [name, quality, kind.upper() if kind else None]
        out.append(
            RawCandidate(
                source_tag=SourceFamily.QUALITY_INDEX,
                raw_title=" ".join(p for p in parts if p),
                info_hash=to_str(t.get("hash")),
                size_bytes=_first(
                    to_float(t.get("size_bytes")),
                    parse_size_to_bytes(to_str(t.get("size"))),
                ),
                seed_count=to_int(t.get("seeds")),
                peer_count=to_int(t.get("peers")),
                declared_quality=quality,
                download_count=to_int(_get(movie, "download_count")),
                source_url=source_url,
            )
        )
    return out


# ---------------------------------------------------------------------------
# aggregated_stream (Torrentio)
# ---------------------------------------------------------------------------


def adapt_aggregated_stream(
    payload: Any, title: str, source_url: str
) -> list[RawCandidate]:
    """``streams[]`` with emoji-annotated titles."""
    streams = _get(payload, "streams")
    if not isinstance(streams, list):
        return []

    out: list[RawCandidate] = []
    for s in streams:
        if not isinstance(s, dict):
            continue
        full_title = to_str(s.get("title")) or to_str(s.get("name")) or ""
        release = full_title.split("\n", 1)[0].strip()
        m = _STREAM_DATA_RE.search(full_title)

        seeds = _first(to_int(s.get("seeders")), to_int(s.get("seeds")))
        if seeds is None and m and m.group(1):
            seeds = int(m.group(1))

        size = _first(
            to_float(s.get("filesize")),
            to_float(s.get("size")),
            to_float(_get(s, "behaviorHints", "videoSize")),
        )
        if size is None and m:
            size = parse_size_to_bytes(m.group(2))

        out.append(
            RawCandidate(
                source_tag=SourceFamily.AGGREGATED_STREAM,
                raw_title=release or title,
                info_hash=to_str(s.get("infoHash")),
                size_bytes=size,
                seed_count=seeds,
                peer_count=to_int(s.get("peers")),
                declared_quality=to_str(s.get("quality")),
                source_url=source_url,
            )
        )
    return out


def adapt_cross_reference(payload: Any, title: str, source_url: str) -> list[RawCandidate]:
    """External-id lookups carry no torrents; they only seed follow-ups."""
    return []


ADAPTERS: dict[SourceFamily, SourceAdapter] = {
    SourceFamily.QUALITY_INDEX: adapt_quality_index,
    SourceFamily.AGGREGATED_STREAM: adapt_aggregated_stream,
    SourceFamily.CROSS_REFERENCE: adapt_cross_reference,
}

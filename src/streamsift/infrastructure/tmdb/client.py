"""TMDB metadata client - RetryingFetcher + CachePort."""

from __future__ import annotations

from typing import Any

import structlog

from streamsift.domain.entities.streams import MediaKind, SeasonInfo, TitleInfo
from streamsift.domain.ports.cache import CachePort
from streamsift.domain.ports.fetcher import FetcherPort
from streamsift.infrastructure.common.converters import to_int, to_str

log = structlog.get_logger(__name__)

_BASE_URL = "https://api.themoviedb.org/3"

# Cache TTL (seconds)
_TTL_DETAILS = 86_400  # 24 hours


def _tmdb_kind(media_kind: MediaKind) -> str:
    return "tv" if media_kind == MediaKind.SERIES else "movie"


def _year_from(date_str: Any) -> int | None:
    if isinstance(date_str, str) and len(date_str) >= 4 and date_str[:4].isdigit():
        return int(date_str[:4])
    return None


class HttpxTmdbClient:
    """Async TMDB client.

    Implements ``MetadataProviderPort`` from domain.ports.metadata.  Every
    lookup degrades to ``None``/``[]`` when TMDB is unreachable or does
    not know the id.
    """

    def __init__(
        self,
        *,
        api_key: str,
        fetcher: FetcherPort,
        cache: CachePort,
        ttl_seconds: int = _TTL_DETAILS,
        base_url: str = _BASE_URL,
    ) -> None:
        self._api_key = api_key
        self._fetcher = fetcher
        self._cache = cache
        self._ttl = ttl_seconds
        self._base_url = base_url.rstrip("/")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get(self, path: str, cache_key: str) -> dict[str, Any] | None:
        """Cached GET of a TMDB object. None when unavailable."""
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._fetcher.fetch(
            f"{self._base_url}{path}",
            params={"api_key": self._api_key},
        )
        if not isinstance(data, dict):
            log.debug("tmdb_lookup_empty", path=path)
            return None

        await self._cache.set(cache_key, data, ttl=self._ttl)
        return data

    async def _details(self, content_id: str, media_kind: MediaKind) -> dict[str, Any] | None:
        kind = _tmdb_kind(media_kind)
        return await self._get(f"/{kind}/{content_id}", f"tmdb:{kind}:{content_id}")

    # ------------------------------------------------------------------
    # Public API (MetadataProviderPort)
    # ------------------------------------------------------------------

    async def get_title(self, content_id: str, media_kind: MediaKind) -> TitleInfo | None:
        """Title and release year. Movies use "title", TV shows use "name"."""
        data = await self._details(content_id, media_kind)
        if data is None:
            return None
        title = to_str(data.get("title")) or to_str(data.get("name"))
        if not title:
            return None
        year = _year_from(data.get("release_date") or data.get("first_air_date"))
        return TitleInfo(title=title, media_kind=media_kind, year=year)

    async def get_external_id(self, content_id: str, media_kind: MediaKind) -> str | None:
        """IMDb id via ``/{movie|tv}/{id}/external_ids``."""
        kind = _tmdb_kind(media_kind)
        data = await self._get(
            f"/{kind}/{content_id}/external_ids",
            f"tmdb:external_ids:{kind}:{content_id}",
        )
        if data is None:
            return None
        return to_str(data.get("imdb_id"))

    async def get_season_info(self, content_id: str) -> list[SeasonInfo]:
        """Seasons of a TV show, specials (season 0) included as reported."""
        data = await self._details(content_id, MediaKind.SERIES)
        if data is None:
            return []
        seasons = data.get("seasons")
        if not isinstance(seasons, list):
            return []

        out: list[SeasonInfo] = []
        for s in seasons:
            if not isinstance(s, dict):
                continue
            number = to_int(s.get("season_number"))
            if number is None:
                continue
            out.append(
                SeasonInfo(
                    season_number=number,
                    episode_count=to_int(s.get("episode_count")) or 0,
                    name=to_str(s.get("name")) or f"Season {number}",
                )
            )
        return out

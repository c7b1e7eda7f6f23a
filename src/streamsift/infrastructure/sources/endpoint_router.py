"""Endpoint routing: URL templates per tier, source families, adapters."""

from __future__ import annotations

import string
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import structlog

from streamsift.domain.entities.streams import (
    EndpointTiers,
    MediaKind,
    RawCandidate,
    SourceFamily,
    Tier,
)
from streamsift.infrastructure.config.schema import EndpointsConfig, EndpointTemplates
from streamsift.infrastructure.sources.adapters import ADAPTERS

log = structlog.get_logger(__name__)

_FORMATTER = string.Formatter()


def _template_fields(template: str) -> set[str]:
    return {name for _, name, _, _ in _FORMATTER.parse(template) if name}


class EndpointRouter:
    """Build tiered endpoint lists and translate their responses.

    Templates may reference ``{id}`` (metadata-provider id),
    ``{external_id}`` (IMDb-style id) and ``{title}``.  A template whose
    tokens cannot all be filled is skipped for that request.
    """

    def __init__(
        self,
        endpoints: EndpointsConfig,
        *,
        tmdb_api_key: str | None = None,
    ) -> None:
        self._templates: dict[MediaKind, EndpointTemplates] = {
            MediaKind.MOVIE: endpoints.movie,
            MediaKind.SERIES: endpoints.series,
        }
        self._follow_up = dict(endpoints.follow_up)
        self._markers = dict(endpoints.family_markers)
        self._origins = dict(endpoints.origins)
        self._tmdb_api_key = tmdb_api_key

    def route(
        self,
        content_id: str,
        *,
        media_kind: MediaKind,
        external_id: str | None = None,
        title: str | None = None,
    ) -> EndpointTiers:
        values = {
            "id": content_id,
            "external_id": external_id,
            "title": title,
        }
        templates = self._templates[media_kind]
        return EndpointTiers(
            primary=self._fill_all(templates.primary, values, Tier.PRIMARY),
            secondary=self._fill_all(templates.secondary, values, Tier.SECONDARY),
            fallback=self._fill_all(templates.fallback, values, Tier.FALLBACK),
        )

    def _fill_all(
        self,
        templates: list[str],
        values: Mapping[str, str | None],
        tier: Tier,
    ) -> tuple[str, ...]:
        urls: list[str] = []
        for template in templates:
            url = self._fill(template, values)
            if url is None:
                log.debug("endpoint_template_skipped", template=template, tier=tier.value)
                continue
            urls.append(url)
        return tuple(urls)

    @staticmethod
    def _fill(template: str, values: Mapping[str, str | None]) -> str | None:
        substitutions: dict[str, str] = {}
        for name in _template_fields(template):
            value = values.get(name)
            if not value or not str(value).strip():
                return None
            substitutions[name] = quote(str(value).strip(), safe="")
        return template.format(**substitutions)

    def family_of(self, url: str) -> SourceFamily:
        """Classify *url* by the first configured marker it contains."""
        lowered = url.lower()
        for marker, family in self._markers.items():
            if marker.lower() in lowered:
                return family
        return SourceFamily.UNKNOWN

    def request_options(self, url: str) -> tuple[dict[str, str], dict[str, str]]:
        """Per-family request headers and query params for *url*."""
        family = self.family_of(url)
        headers: dict[str, str] = {}
        params: dict[str, str] = {}

        origin = self._origins.get(family)
        if origin:
            origin = origin.rstrip("/")
            headers["Origin"] = origin
            headers["Referer"] = f"{origin}/"

        if family == SourceFamily.CROSS_REFERENCE and self._tmdb_api_key:
            params["api_key"] = self._tmdb_api_key

        return headers, params

    def adapt(self, source_url: str, payload: Any, *, title: str) -> list[RawCandidate]:
        """Translate a payload from *source_url* into candidates."""
        family = self.family_of(source_url)
        adapter = ADAPTERS.get(family)
        if adapter is None:
            log.debug("endpoint_no_adapter", url=source_url, family=family.value)
            return []
        try:
            return adapter(payload, title, source_url)
        except Exception:  # noqa: BLE001
            log.warning(
                "endpoint_adapter_failed",
                url=source_url,
                family=family.value,
                exc_info=True,
            )
            return []

    def follow_ups(
        self, source_url: str, payload: Any, *, media_kind: MediaKind
    ) -> list[str]:
        """URLs a cross-reference payload unlocks (e.g. by IMDb id)."""
        if self.family_of(source_url) != SourceFamily.CROSS_REFERENCE:
            return []
        if not isinstance(payload, dict):
            return []
        imdb_id = payload.get("imdb_id")
        if not isinstance(imdb_id, str):
            return []
        return self.follow_ups_for(imdb_id, media_kind=media_kind)

    def follow_ups_for(self, imdb_id: str, *, media_kind: MediaKind) -> list[str]:
        """Stream URLs for an already known IMDb id."""
        template = self._follow_up.get(media_kind)
        if not template or not imdb_id.strip():
            return []
        url = self._fill(template, {"imdb_id": imdb_id, "external_id": imdb_id})
        return [url] if url else []

"""Port for the metadata provider (title/year/season oracle)."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from streamsift.domain.entities.streams import MediaKind, SeasonInfo, TitleInfo


@runtime_checkable
class MetadataProviderPort(Protocol):
    """Async lookups used to seed search terms and bound season/episode values."""

    async def get_title(self, content_id: str, media_kind: MediaKind) -> TitleInfo | None:
        """Title and release year, or None if unknown."""
        ...

    async def get_external_id(
        self, content_id: str, media_kind: MediaKind
    ) -> str | None:
        """Cross-reference (IMDb) id, or None if unknown."""
        ...

    async def get_season_info(self, content_id: str) -> list[SeasonInfo]:
        """Seasons with episode counts. Empty list if unknown."""
        ...

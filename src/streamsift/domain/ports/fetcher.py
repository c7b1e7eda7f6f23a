"""Port for the retrying JSON fetch layer."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class FetcherPort(Protocol):
    """GET a JSON payload; ``None`` means "source unavailable"."""

    async def fetch(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        max_retries: int | None = None,
        initial_delay: float | None = None,
    ) -> Any | None: ...

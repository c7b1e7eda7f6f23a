"""Domain exceptions."""

from __future__ import annotations

from enum import StrEnum


class StreamSiftError(Exception):
    """Base error for streamsift."""


class ConfigError(StreamSiftError):
    """Configuration file has an invalid shape."""


class FetchErrorKind(StrEnum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    HTTP_STATUS = "http_status"
    NETWORK = "network"
    NOT_FOUND = "not_found"
    INVALID_PAYLOAD = "invalid_payload"


class FetchError(StreamSiftError):
    """Classified upstream failure.

    Raised inside the fetch layer only; callers of ``RetryingFetcher.fetch``
    see ``None`` instead.
    """

    def __init__(
        self,
        kind: FetchErrorKind,
        url: str,
        *,
        status: int | None = None,
        message: str = "",
    ) -> None:
        self.kind = kind
        self.url = url
        self.status = status
        detail = message or (f"HTTP {status}" if status is not None else kind.value)
        super().__init__(f"{kind.value}: {detail} ({url})")

    @property
    def retryable(self) -> bool:
        return self.kind not in (
            FetchErrorKind.NOT_FOUND,
            FetchErrorKind.INVALID_PAYLOAD,
        )

"""JSON GET with per-attempt timeout and classified 429/500/timeout retry."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from streamsift.domain.entities.errors import FetchError, FetchErrorKind

log = structlog.get_logger(__name__)

_DEFAULT_HEADERS: dict[str, str] = {"Accept": "application/json"}

# Multiplier applied to the current delay before the next retry.
_BACKOFF_FACTORS: dict[FetchErrorKind, float] = {
    FetchErrorKind.RATE_LIMITED: 2.0,
    FetchErrorKind.SERVER_ERROR: 1.5,
    FetchErrorKind.TIMEOUT: 1.5,
    FetchErrorKind.HTTP_STATUS: 1.5,
    FetchErrorKind.NETWORK: 1.5,
}


def _classify_status(status: int, url: str) -> FetchError:
    if status == 404:
        return FetchError(FetchErrorKind.NOT_FOUND, url, status=status)
    if status == 429:
        return FetchError(FetchErrorKind.RATE_LIMITED, url, status=status)
    if status == 500:
        return FetchError(FetchErrorKind.SERVER_ERROR, url, status=status)
    return FetchError(FetchErrorKind.HTTP_STATUS, url, status=status)


def _is_json_content_type(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return "application/json" in content_type.lower()


def _parse_payload(response: httpx.Response, url: str) -> Any | None:
    """Decode a 2xx body.

    A non-JSON content type is still parsed once; the result is accepted
    only when it is an object or array.  Unparseable bodies raise
    ``FetchError(INVALID_PAYLOAD)``.
    """
    is_json = _is_json_content_type(response)
    if not is_json:
        log.info(
            "fetch_non_json_content_type",
            url=url,
            content_type=response.headers.get("content-type"),
        )
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
        raise FetchError(
            FetchErrorKind.INVALID_PAYLOAD, url, message=str(exc)
        ) from exc

    if not isinstance(data, (dict, list)):
        if is_json:
            raise FetchError(
                FetchErrorKind.INVALID_PAYLOAD,
                url,
                message=f"unexpected JSON type {type(data).__name__}",
            )
        return None
    return data


class RetryingFetcher:
    """Fetch JSON payloads from unreliable upstream indexes.

    404 returns ``None`` immediately.  429 retries with a 2x delay growth,
    500, timeouts, transport errors and other non-2xx statuses with 1.5x.
    Each sleep is capped at *max_backoff*.  Once retries are exhausted the
    failure is logged and ``None`` is returned; nothing but cancellation
    escapes ``fetch``.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        attempt_timeout: float = 15.0,
        max_backoff: float = 30.0,
        default_headers: Mapping[str, str] | None = None,
    ) -> None:
        self._http = http_client
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._attempt_timeout = attempt_timeout
        self._max_backoff = max_backoff
        self._headers = {**_DEFAULT_HEADERS, **(default_headers or {})}

    async def fetch(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        max_retries: int | None = None,
        initial_delay: float | None = None,
    ) -> Any | None:
        """GET *url* and return the parsed JSON payload or ``None``."""
        retries_left = self._max_retries if max_retries is None else max_retries
        delay = self._initial_delay if initial_delay is None else initial_delay
        merged_headers = {**self._headers, **(headers or {})}
        attempt = 0

        while True:
            attempt += 1
            try:
                payload = await self._attempt(url, merged_headers, params)
            except FetchError as err:
                if err.kind == FetchErrorKind.NOT_FOUND:
                    log.info("fetch_not_found", url=url)
                    return None
                if not err.retryable:
                    log.warning(
                        "fetch_invalid_payload", url=url, reason=str(err)
                    )
                    return None
                if retries_left <= 0:
                    log.warning(
                        "fetch_gave_up",
                        url=url,
                        kind=err.kind.value,
                        status=err.status,
                        attempts=attempt,
                    )
                    return None

                delay = min(delay * _BACKOFF_FACTORS[err.kind], self._max_backoff)
                retries_left -= 1
                log.info(
                    "fetch_retry",
                    url=url,
                    kind=err.kind.value,
                    status=err.status,
                    attempt=attempt,
                    retries_left=retries_left,
                    delay=round(delay, 2),
                )
                await asyncio.sleep(delay)
                continue

            if payload is None or len(payload) == 0:
                log.info("fetch_empty_payload", url=url)
                return None
            return payload

    async def _attempt(
        self,
        url: str,
        headers: Mapping[str, str],
        params: Mapping[str, Any] | None,
    ) -> Any | None:
        """Run one GET bounded by the per-attempt timeout."""
        try:
            response = await asyncio.wait_for(
                self._http.get(url, headers=headers, params=params),
                timeout=self._attempt_timeout,
            )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise FetchError(
                FetchErrorKind.TIMEOUT,
                url,
                message=f"no response within {self._attempt_timeout}s",
            ) from exc
        except httpx.TransportError as exc:
            raise FetchError(FetchErrorKind.NETWORK, url, message=str(exc)) from exc

        if not response.is_success:
            raise _classify_status(response.status_code, url)
        return _parse_payload(response, url)

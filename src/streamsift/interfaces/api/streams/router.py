"""Stream aggregation API endpoints (movies, series)."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Literal, cast

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from streamsift.domain.entities.streams import AggregationResult
from streamsift.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["streams"])


def _result_to_dict(result: AggregationResult) -> dict[str, Any]:
    """JSON shape of an aggregation result (enums as values, tuples as lists)."""
    data = asdict(result)
    data["media_kind"] = result.media_kind.value
    for stream in data["torrents"]:
        stream["source_tag"] = str(stream["source_tag"])
    for bucket in data["episodes"]:
        for stream in bucket["torrents"]:
            stream["source_tag"] = str(stream["source_tag"])
    return data


def _missing_title() -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": "title_required"})


StreamOrder = Literal["availability", "trust"]

_SORT_HELP = "availability: seeds+peers, then quality. trust: trust score first."


def _respond(result: AggregationResult, sort: StreamOrder) -> JSONResponse:
    if sort == "trust":
        result = result.ranked_by_trust()
    return JSONResponse(content=_result_to_dict(result))


@router.get("/movies/{content_id}/streams")
async def movie_streams(
    request: Request,
    content_id: str,
    title: str = Query(default="", description="Display title used for matching."),
    year: int | None = Query(default=None, description="Release year."),
    external_id: str | None = Query(default=None, description="IMDb id (tt...)."),
    sort: StreamOrder = Query(default="availability", description=_SORT_HELP),
) -> JSONResponse:
    """Ranked movie torrents, one per quality."""
    state = cast(AppState, request.app.state)
    if not title.strip():
        return _missing_title()

    result = await state.movie_aggregator.aggregate_movie(
        content_id, title, year=year, external_id=external_id
    )
    if result is None:
        return _missing_title()
    return _respond(result, sort)


@router.get("/series/{content_id}/streams")
async def series_streams(
    request: Request,
    content_id: str,
    title: str = Query(default="", description="Display title used for matching."),
    external_id: str | None = Query(default=None, description="IMDb id (tt...)."),
    sort: StreamOrder = Query(default="availability", description=_SORT_HELP),
) -> JSONResponse:
    """Per-episode torrents plus season availability."""
    state = cast(AppState, request.app.state)
    if not title.strip():
        return _missing_title()

    result = await state.series_aggregator.aggregate_series(
        content_id, title, external_id=external_id
    )
    if result is None:
        return _missing_title()
    return _respond(result, sort)

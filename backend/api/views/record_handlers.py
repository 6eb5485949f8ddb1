"""Users, play history and personal best lists."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

from starlette.responses import Response

from api.types import CreateUserRequest
from api.views.common import caller_id, model_response, parse_body, path_int, query_int

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import JSONResponse

    from stats.records import RecordsService


def _records(request: Request) -> RecordsService:
    return request.app.state.records_service


async def create_user(request: Request) -> JSONResponse:
    req = await parse_body(request, CreateUserRequest)
    user = await _records(request).create_user(req.username)
    return model_response(user, status_code=HTTPStatus.CREATED)


async def list_plays(request: Request) -> JSONResponse:
    """GET /plays - the caller's play history, newest first."""
    user_id = caller_id(request)
    plays = await _records(request).list_plays(
        user_id,
        mode=request.query_params.get("mode"),
        limit=query_int(request, "limit", 20),
        offset=query_int(request, "offset", 0) or 0,
    )
    return model_response({"plays": [p.model_dump(mode="json") for p in plays]})


async def get_play(request: Request) -> JSONResponse:
    caller_id(request)
    play = await _records(request).get_play(path_int(request, "play_id"))
    return model_response(play)


async def delete_play(request: Request) -> Response:
    caller_id(request)
    await _records(request).delete_play(path_int(request, "play_id"))
    return Response(status_code=HTTPStatus.NO_CONTENT)


async def user_stats(request: Request) -> JSONResponse:
    """GET /users/{user_id}/stats - counters plus rolling stats per mode."""
    caller_id(request)
    records = _records(request)
    user_id = request.path_params["user_id"]
    user = await records.get_user(user_id)
    rolling = await records.get_rolling_stats(user_id, mode=request.query_params.get("mode"))
    return model_response(
        {
            "user": user.model_dump(mode="json"),
            "rolling_stats": [s.model_dump(mode="json") for s in rolling],
        },
    )


async def best_entries(request: Request) -> JSONResponse:
    """GET /users/{user_id}/best/{metric}?mode=... - a personal top list."""
    caller_id(request)
    entries = await _records(request).get_best_entries(
        request.path_params["user_id"],
        request.query_params.get("mode", ""),
        request.path_params["metric"],
        limit=query_int(request, "limit", None),
        offset=query_int(request, "offset", 0) or 0,
    )
    return model_response({"entries": [e.model_dump(mode="json") for e in entries]})


async def tenth_best(request: Request) -> JSONResponse:
    caller_id(request)
    value = await _records(request).get_tenth_best(
        request.path_params["user_id"],
        request.query_params.get("mode", ""),
        request.path_params["metric"],
    )
    return model_response({"value": value})


async def delete_best_entry(request: Request) -> Response:
    caller_id(request)
    await _records(request).delete_best_entry(path_int(request, "entry_id"))
    return Response(status_code=HTTPStatus.NO_CONTENT)

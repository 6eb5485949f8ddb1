"""Start and end game sessions for the calling user."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

from api.types import StartSessionRequest
from api.views.common import caller_id, model_response, parse_body, path_int
from stats.types import FinalResult

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import JSONResponse

    from stats.sessions import SessionService


async def start_session(request: Request) -> JSONResponse:
    """POST /plays - reserve a play for the caller and return the bars to beat."""
    user_id = caller_id(request)
    req = await parse_body(request, StartSessionRequest)
    sessions: SessionService = request.app.state.session_service
    handle = await sessions.start_session(user_id, req.mode)
    return model_response(handle, status_code=HTTPStatus.CREATED)


async def end_session(request: Request) -> JSONResponse:
    """PATCH /plays/{play_id} - submit final results and get the stats summary."""
    user_id = caller_id(request)
    play_id = path_int(request, "play_id")
    result = await parse_body(request, FinalResult)
    sessions: SessionService = request.app.state.session_service
    summary = await sessions.end_session(play_id, result, user_id)
    return model_response(summary)

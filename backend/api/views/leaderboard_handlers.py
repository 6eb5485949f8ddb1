"""Global leaderboard snapshot."""

from __future__ import annotations

from typing import TYPE_CHECKING

from api.views.common import model_response, query_list
from stats.leaderboards import LeaderboardFilters
from stats.types import parse_mode

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import JSONResponse

    from stats.leaderboards import LeaderboardService


async def leaderboards(request: Request) -> JSONResponse:
    """GET /leaderboards?modes=&metrics=&user_ids=&usernames= (CSV lists)."""
    modes = query_list(request, "modes")
    filters = LeaderboardFilters(
        modes=tuple(parse_mode(m) for m in modes) if modes is not None else None,
        metrics=query_list(request, "metrics"),
        user_ids=query_list(request, "user_ids"),
        usernames=query_list(request, "usernames"),
    )
    service: LeaderboardService = request.app.state.leaderboard_service
    boards = await service.get_leaderboards(filters)
    return model_response(
        {
            metric: {mode.value: [e.model_dump(mode="json") for e in entries] for mode, entries in by_mode.items()}
            for metric, by_mode in boards.items()
        },
    )

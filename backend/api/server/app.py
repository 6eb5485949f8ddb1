from __future__ import annotations

import contextlib
from http import HTTPStatus
from typing import TYPE_CHECKING, cast

import structlog
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from api.server.settings import ApiServerSettings
from api.views import (
    best_entries,
    create_user,
    delete_best_entry,
    delete_play,
    end_session,
    get_play,
    leaderboards,
    list_plays,
    start_session,
    tenth_best,
    user_stats,
)
from shared.db import Database, SqliteStatsStore
from shared.logging import setup_logging
from stats.errors import (
    BadInputError,
    ConflictError,
    NotFoundError,
    SessionUnavailableError,
    StoreFailureError,
)
from stats.leaderboards import LeaderboardService
from stats.records import RecordsService
from stats.sessions import SessionService
from stats.settings import StatsSettings

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

_ERROR_STATUS: dict[type[Exception], HTTPStatus] = {
    BadInputError: HTTPStatus.UNPROCESSABLE_ENTITY,
    NotFoundError: HTTPStatus.NOT_FOUND,
    SessionUnavailableError: HTTPStatus.FORBIDDEN,
    ConflictError: HTTPStatus.CONFLICT,
    StoreFailureError: HTTPStatus.SERVICE_UNAVAILABLE,
}


async def _stats_error_handler(request: Request, exc: Exception) -> Response:
    """Render engine and store errors as JSON with their mapped status."""
    status = next(
        (_ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in _ERROR_STATUS),
        HTTPStatus.INTERNAL_SERVER_ERROR,
    )
    if isinstance(exc, StoreFailureError):
        logger.warning("store unavailable", path=request.url.path, error=str(exc))
        return JSONResponse({"error": "Storage temporarily unavailable"}, status_code=status)
    if isinstance(exc, ConflictError):
        logger.info("store conflict", path=request.url.path)
    return JSONResponse({"error": str(exc)}, status_code=status)


async def _http_error_handler(_request: Request, exc: Exception) -> Response:
    http_exc = cast("HTTPException", exc)
    if http_exc.status_code == HTTPStatus.UNAUTHORIZED:
        return JSONResponse({"error": "Authentication required"}, status_code=HTTPStatus.UNAUTHORIZED)
    if http_exc.status_code in {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}:
        return Response(status_code=http_exc.status_code, headers=http_exc.headers)
    return JSONResponse({"error": http_exc.detail}, status_code=http_exc.status_code, headers=http_exc.headers)


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def create_app(
    settings: ApiServerSettings | None = None,
    stats_settings: StatsSettings | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ApiServerSettings()
    if stats_settings is None:  # pragma: no cover
        stats_settings = StatsSettings()
    config = stats_settings.to_config()

    routes = [
        Route("/health", health, methods=["GET"], name="health"),
        Route("/users", create_user, methods=["POST"], name="create_user"),
        Route("/users/{user_id}/stats", user_stats, methods=["GET"], name="user_stats"),
        Route("/users/{user_id}/best/{metric}", best_entries, methods=["GET"], name="best_entries"),
        Route("/users/{user_id}/best/{metric}/tenth", tenth_best, methods=["GET"], name="tenth_best"),
        Route("/best/{entry_id}", delete_best_entry, methods=["DELETE"], name="delete_best_entry"),
        Route("/plays", list_plays, methods=["GET"], name="list_plays"),
        Route("/plays", start_session, methods=["POST"], name="start_session"),
        Route("/plays/{play_id}", get_play, methods=["GET"], name="get_play"),
        Route("/plays/{play_id}", end_session, methods=["PATCH"], name="end_session"),
        Route("/plays/{play_id}", delete_play, methods=["DELETE"], name="delete_play"),
        Route("/leaderboards", leaderboards, methods=["GET"], name="leaderboards"),
    ]

    db = Database(stats_settings.database_path, busy_timeout_ms=stats_settings.busy_timeout_ms)
    db.connect()
    store = SqliteStatsStore(db)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        db.close()

    exception_handlers = {cls: _stats_error_handler for cls in _ERROR_STATUS}
    exception_handlers[HTTPException] = _http_error_handler
    app = Starlette(routes=routes, lifespan=lifespan, exception_handlers=exception_handlers)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", settings.user_header],
    )

    app.state.db = db
    app.state.settings = settings
    app.state.stats_settings = stats_settings
    app.state.session_service = SessionService(store, config)
    app.state.records_service = RecordsService(store, config)
    app.state.leaderboard_service = LeaderboardService(store, config)

    logger.info("stats api ready", database=db.path)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory api.server.app:get_app."""
    s = ApiServerSettings()
    setup_logging(log_dir=s.log_dir)
    return create_app(settings=s, stats_settings=StatsSettings())

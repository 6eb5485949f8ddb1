"""Request parsing and response helpers shared by the JSON handlers."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse

from shared.validators import parse_string_list
from stats.errors import BadInputError

if TYPE_CHECKING:
    from starlette.requests import Request

ModelT = TypeVar("ModelT", bound=BaseModel)


async def parse_body(request: Request, model: type[ModelT]) -> ModelT:
    """Decode a JSON body into `model`. Raises BadInputError on malformed input."""
    raw_body = await request.body()
    if not raw_body or raw_body.strip() == b"":
        body = {}
    else:
        try:
            body = json.loads(raw_body)
        except ValueError:
            raise BadInputError("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise BadInputError("JSON body must be an object")
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise BadInputError(str(e)) from None


def caller_id(request: Request) -> str:
    """Caller id set by the upstream gateway; 401 when absent."""
    header = request.app.state.settings.user_header
    user_id = request.headers.get(header, "").strip()
    if not user_id:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED)
    return user_id


def path_int(request: Request, name: str) -> int:
    value = request.path_params[name]
    try:
        return int(value)
    except ValueError:
        raise BadInputError(f"{name} must be an integer") from None


def query_int(request: Request, name: str, default: int | None) -> int | None:
    value = request.query_params.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise BadInputError(f"{name} must be an integer") from None


def query_list(request: Request, name: str) -> tuple[str, ...] | None:
    """CSV or JSON-array query parameter. Absent means no filter."""
    value = request.query_params.get(name)
    if value is None:
        return None
    try:
        return tuple(parse_string_list(value))
    except ValueError as e:
        raise BadInputError(f"{name}: {e}") from None


def model_response(
    payload: BaseModel | list[BaseModel] | dict,
    status_code: int = HTTPStatus.OK,
) -> JSONResponse:
    if isinstance(payload, BaseModel):
        content = payload.model_dump(mode="json")
    elif isinstance(payload, list):
        content = [item.model_dump(mode="json") for item in payload]
    else:
        content = payload
    return JSONResponse(content, status_code=status_code)

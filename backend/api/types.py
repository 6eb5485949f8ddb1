"""Request bodies accepted by the JSON API."""

from pydantic import BaseModel, ConfigDict, Field

from shared.dal.models import GameMode


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1, max_length=64)


class StartSessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: GameMode

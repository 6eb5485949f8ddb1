"""API server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class ApiServerSettings(BaseSettings):
    model_config = {"env_prefix": "API_"}

    log_dir: str = "backend/logs/api"
    cors_origins: list[str] = []
    # Header carrying the caller id, set by the authenticating gateway in front of this service.
    user_header: str = "X-User-Id"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @field_validator("user_header")
    @classmethod
    def validate_user_header(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("user_header must not be blank")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            StringListEnvSettingsSource(settings_cls, list_fields={"cors_origins"}),
            dotenv_settings,
            file_secret_settings,
        )

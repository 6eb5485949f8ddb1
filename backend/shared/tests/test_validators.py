import pytest
from pydantic import field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list


class _ListSettings(BaseSettings):
    model_config = {"env_prefix": "TEST_"}

    hosts: list[str] = []
    ports: list[int] = []

    @field_validator("hosts", mode="before")
    @classmethod
    def validate_hosts(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,  # noqa: ARG003
        dotenv_settings,  # noqa: ARG003
        file_secret_settings,  # noqa: ARG003
    ):
        return (init_settings, StringListEnvSettingsSource(settings_cls, list_fields={"hosts"}))


class TestParseStringList:
    def test_json_array_string(self):
        result = parse_string_list('["http://a.com","http://b.com"]')
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_string(self):
        result = parse_string_list("http://a.com,http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_with_whitespace(self):
        result = parse_string_list("http://a.com , http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_passthrough_list(self):
        origins = ["http://a.com", "http://b.com"]
        result = parse_string_list(origins)
        assert result == origins

    def test_empty_string_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("")

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list("[not valid json")

    def test_json_mixed_types_array_raises(self):
        with pytest.raises(ValueError, match="must be an array of strings"):
            parse_string_list('["http://a.com", 123]')

    def test_json_empty_array_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("[]")

    def test_empty_list_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list([])

    def test_comma_separated_skips_empty_segments(self):
        result = parse_string_list("http://a.com,,http://b.com,")
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_only_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(",")

    def test_multiple_commas_only_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(",,,,")

    def test_blank_allowed_when_empty_permitted(self):
        assert parse_string_list("  ", allow_empty=True) == []
        assert parse_string_list([], allow_empty=True) == []


class TestStringListEnvSettingsSource:
    def test_csv_env_value_reaches_validator(self, monkeypatch):
        monkeypatch.setenv("TEST_HOSTS", "a.local,b.local")
        assert _ListSettings().hosts == ["a.local", "b.local"]

    def test_other_list_fields_are_json_decoded(self, monkeypatch):
        monkeypatch.setenv("TEST_PORTS", "[80, 443]")
        assert _ListSettings().ports == [80, 443]

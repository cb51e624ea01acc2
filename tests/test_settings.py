from typing import Any

import pytest
from pydantic import ValidationError

from chat_ai_gateway.settings import DEFAULT_API_ENDPOINT, Settings, get_settings


def _clear_env(monkeypatch: Any) -> None:
    for name in ("API_ENDPOINT", "API_KEY", "PORT", "SERVICE_NAME", "SERVCE_NAME", "DEVELOPMENT"):
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clear_env(monkeypatch)
    settings = Settings(_env_file=None)
    assert settings.api_endpoint == DEFAULT_API_ENDPOINT
    assert settings.api_key is None
    assert settings.port == 8081
    assert settings.service_name == "Custom Chat AI"
    assert settings.development is False
    assert settings.log_level == "info"


def test_reads_environment(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("API_ENDPOINT", "https://inference.example/v1/")
    monkeypatch.setenv("API_KEY", "secret")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("SERVICE_NAME", "My Portal")
    monkeypatch.setenv("DEVELOPMENT", "true")
    settings = Settings(_env_file=None)
    assert settings.api_endpoint == "https://inference.example/v1"
    assert settings.api_key == "secret"
    assert settings.port == 9000
    assert settings.service_name == "My Portal"
    assert settings.log_level == "debug"


def test_accepts_legacy_service_name_variable(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("SERVCE_NAME", "Legacy Portal")
    assert Settings(_env_file=None).service_name == "Legacy Portal"


def test_blank_api_key_is_treated_as_missing(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("API_KEY", "   ")
    assert Settings(_env_file=None).api_key is None


@pytest.mark.parametrize("endpoint", ["not-a-url", "ftp://host/v1", "https://"])
def test_malformed_endpoint_is_fatal(monkeypatch, endpoint):
    _clear_env(monkeypatch)
    monkeypatch.setenv("API_ENDPOINT", endpoint)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_malformed_port_is_fatal(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_settings_are_immutable(monkeypatch):
    _clear_env(monkeypatch)
    settings = Settings(_env_file=None)
    with pytest.raises(ValidationError):
        settings.api_key = "changed"


def test_get_settings_is_cached(monkeypatch):
    _clear_env(monkeypatch)
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()

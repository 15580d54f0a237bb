"""Tests for application settings parsing."""

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


def test_defaults_enable_legacy_sentinel_and_openai():
    settings = _settings()

    assert settings.LLM_PROVIDER == "openai"
    assert settings.ACCEPT_LEGACY_ANALYSIS_SENTINEL is True
    assert settings.STREAM_IDLE_TIMEOUT_SECONDS == 60.0
    assert settings.RETRIEVAL_NUM_RESULTS == 5


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("http://a.test, http://b.test", ["http://a.test", "http://b.test"]),
        ('["http://a.test"]', ["http://a.test"]),
        ("", []),
    ],
)
def test_cors_origins_accepts_csv_and_json(raw, expected):
    assert _settings(CORS_ORIGINS=raw).CORS_ORIGINS == expected


def test_wildcard_origin_with_credentials_is_rejected():
    with pytest.raises(ValidationError, match="ALLOW_CREDENTIALS"):
        _settings(CORS_ORIGINS=["*"], ALLOW_CREDENTIALS=True)


def test_wildcard_origin_without_credentials_is_allowed():
    settings = _settings(CORS_ORIGINS=["*"], ALLOW_CREDENTIALS=False)
    assert settings.CORS_ORIGINS == ["*"]


def test_idle_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        _settings(STREAM_IDLE_TIMEOUT_SECONDS=0)


def test_unknown_provider_is_rejected():
    with pytest.raises(ValidationError):
        _settings(LLM_PROVIDER="anthropic")


def test_get_settings_rejects_unknown_environment(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "staging")
    get_settings.cache_clear()

    with pytest.raises(ValueError, match="ENVIRONMENT"):
        get_settings()


def test_get_settings_reads_environment_variables(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("ACCEPT_LEGACY_ANALYSIS_SENTINEL", "false")
    monkeypatch.setenv("RATE_LIMIT_REQUESTS", "3")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.ACCEPT_LEGACY_ANALYSIS_SENTINEL is False
    assert settings.RATE_LIMIT_REQUESTS == 3

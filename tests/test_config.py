import pytest
from pydantic import ValidationError

from storeops.core.config import Settings


def test_breaker_overrides_parsed_from_json(monkeypatch):
    monkeypatch.setenv("CIRCUIT_BREAKER_OVERRIDES", '{"database": {"timeout_ms": 2500}}')
    settings = Settings()
    assert settings.CIRCUIT_BREAKER_OVERRIDES == {"database": {"timeout_ms": 2500}}


def test_unknown_breaker_option_rejected():
    with pytest.raises(ValidationError):
        Settings(CIRCUIT_BREAKER_OVERRIDES={"database": {"retries": 3}})


def test_error_threshold_out_of_range_rejected():
    with pytest.raises(ValidationError):
        Settings(CIRCUIT_BREAKER_OVERRIDES={"database": {"error_threshold_percentage": 150}})


def test_jitter_ratio_bounds():
    with pytest.raises(ValidationError):
        Settings(RETRY_JITTER_RATIO=1.0)
    assert Settings(RETRY_JITTER_RATIO=0).RETRY_JITTER_RATIO == 0


def test_database_url_falls_back_to_postgres_parts(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = Settings(_env_file=None, POSTGRES_SERVER="pg", POSTGRES_DB="ops")
    assert settings.database_url.startswith("postgresql+psycopg2://")
    assert settings.database_url.endswith("@pg:5432/ops")


def test_origins_split_from_string():
    settings = Settings(CORS_ALLOW_ORIGINS="https://a.example, https://b.example")
    assert settings.CORS_ALLOW_ORIGINS == ["https://a.example", "https://b.example"]

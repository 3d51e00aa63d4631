"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from autodata.config import Settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run each test away from any real .env and provider keys."""
    (tmp_path / ".env").write_text("")
    monkeypatch.chdir(tmp_path)
    for var in (
        "DVLA_API_KEY", "CHECKCARDETAILS_API_KEY", "LOG_LEVEL", "CACHE_BACKEND",
        "PROVIDER_COSTS", "PROVIDER_TRUST", "CACHE_TTL_DAYS",
    ):
        monkeypatch.delenv(var, raising=False)


def test_settings_loads_from_env(monkeypatch):
    """Settings should load API keys from environment variables."""
    monkeypatch.setenv("DVLA_API_KEY", "test_dvla_key")
    monkeypatch.setenv("CHECKCARDETAILS_API_KEY", "test_ccd_key")

    settings = Settings()

    assert settings.dvla_api_key == "test_dvla_key"
    assert settings.checkcardetails_api_key == "test_ccd_key"


def test_settings_has_defaults():
    """Settings should have sensible defaults and need no keys."""
    settings = Settings()

    assert settings.dvla_api_key is None
    assert settings.checkcardetails_api_key is None
    assert settings.log_level == "INFO"
    assert settings.cache_dir == "data"
    assert settings.cache_backend == "parquet"
    assert settings.cache_ttl_days == 30
    assert settings.provider_timeout == 10.0
    assert settings.lookup_timeout == 30.0
    assert settings.default_mileage == 50_000
    assert settings.provider_costs == {}


def test_settings_reads_dotenv(tmp_path):
    (tmp_path / ".env").write_text("DVLA_API_KEY=from_dotenv\nCACHE_TTL_DAYS=7\n")

    settings = Settings()

    assert settings.dvla_api_key == "from_dotenv"
    assert settings.cache_ttl_days == 7


def test_settings_validates_log_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "INVALID")

    with pytest.raises(ValidationError) as exc_info:
        Settings()

    assert "log_level must be one of" in str(exc_info.value)


def test_log_level_is_uppercased(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert Settings().log_level == "DEBUG"


def test_cache_backend_validated(monkeypatch):
    monkeypatch.setenv("CACHE_BACKEND", "redis")

    with pytest.raises(ValidationError, match="cache_backend"):
        Settings()


def test_cache_backend_case_insensitive(monkeypatch):
    monkeypatch.setenv("CACHE_BACKEND", "MEMORY")
    assert Settings().cache_backend == "memory"


def test_provider_overrides_parse_json(monkeypatch):
    monkeypatch.setenv("PROVIDER_COSTS", '{"valuation": 0.2}')
    monkeypatch.setenv("PROVIDER_TRUST", '{"vehicle_specs": 4}')

    settings = Settings()

    assert settings.provider_costs == {"valuation": 0.2}
    assert settings.provider_trust == {"vehicle_specs": 4}


def test_negative_provider_cost_rejected(monkeypatch):
    monkeypatch.setenv("PROVIDER_COSTS", '{"valuation": -1}')

    with pytest.raises(ValidationError, match="provider_costs"):
        Settings()


def test_ttl_must_be_positive(monkeypatch):
    monkeypatch.setenv("CACHE_TTL_DAYS", "0")

    with pytest.raises(ValidationError):
        Settings()

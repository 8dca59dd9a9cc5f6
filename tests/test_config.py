"""Unit tests for configuration management."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from campusfeed.config import DEFAULT_API_BASE_URL, Environment, Settings


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


class TestEnvironmentProfiles:
    """Tests for environment-specific defaults."""

    def test_testing_profile(self):
        """Test testing profile pins in-memory state and zero latency."""
        settings = _settings(environment="testing", mock_latency_ms=400)

        assert settings.is_testing
        assert settings.state_db_url == "sqlite://"
        assert settings.mock_latency == 0
        assert settings.log_level == "ERROR"
        assert settings.log_to_file is False

    def test_production_profile(self):
        """Test production profile switches to JSON logs."""
        settings = _settings(environment="production", log_level="DEBUG")

        assert settings.is_production
        assert settings.log_json is True
        assert settings.log_level == "INFO"

    def test_development_profile(self, tmp_path):
        """Test development profile and default state path."""
        settings = _settings(environment=Environment.DEVELOPMENT, data_dir=tmp_path)

        assert settings.is_development
        assert settings.log_level == "DEBUG"
        assert settings.state_db_path == tmp_path.resolve() / "campusfeed.db"
        assert settings.state_db_url == f"sqlite:///{tmp_path.resolve() / 'campusfeed.db'}"

    def test_explicit_state_path_kept(self, tmp_path):
        """Test explicit state path is not replaced."""
        path = tmp_path / "state.db"
        settings = _settings(environment="staging", state_db_path=path)
        assert settings.state_db_path == path
        assert settings.log_json is True


class TestApiSettings:
    """Tests for backend connection settings."""

    def test_default_url(self):
        settings = _settings(environment="testing")
        assert settings.api_base_url == DEFAULT_API_BASE_URL
        assert settings.has_default_api_url

    def test_trailing_slash_stripped(self):
        settings = _settings(environment="testing", api_base_url="https://api.campus.test/v1/")
        assert settings.api_base_url == "https://api.campus.test/v1"
        assert not settings.has_default_api_url

    def test_url_scheme_required(self):
        with pytest.raises(ValidationError, match="http"):
            _settings(environment="testing", api_base_url="ftp://api.campus.test")

    def test_env_alias(self, monkeypatch):
        monkeypatch.setenv("API_BASE_URL", "http://localhost:8000/api")
        monkeypatch.setenv("USE_MOCK", "false")
        settings = _settings(environment="testing")
        assert settings.api_base_url == "http://localhost:8000/api"
        assert settings.use_mock is False

    def test_timeout_in_seconds(self):
        assert _settings(environment="testing", request_timeout_ms=2500).request_timeout == 2.5

    def test_timeout_bounds(self):
        with pytest.raises(ValidationError):
            _settings(environment="testing", request_timeout_ms=10)


class TestWaterfallBounds:
    """Tests for card height clamping."""

    @pytest.mark.parametrize(
        "min_height,max_height,expected",
        [
            (80, 220, (80, 220)),
            (10, 1000, (40, 600)),
            (300, 305, (300, 310)),
            (595, 600, (590, 600)),
        ],
    )
    def test_clamping(self, min_height, max_height, expected):
        settings = _settings(
            environment="testing",
            waterfall_min_height=min_height,
            waterfall_max_height=max_height,
        )
        assert (settings.waterfall_min_height, settings.waterfall_max_height) == expected


def test_data_dir_is_expanded():
    settings = _settings(environment="testing", data_dir="~/campusfeed-data")
    assert settings.data_dir == Path("~/campusfeed-data").expanduser().resolve()

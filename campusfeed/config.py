"""Configuration management for CampusFeed.

This module provides centralized configuration using Pydantic Settings,
read from environment variables and an optional ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, human-readable output
    - PRODUCTION: Structured JSON logs, conservative defaults
    - TESTING: In-memory state store, no simulated latency, minimal logging

Example:
    >>> from campusfeed.config import settings, Environment
    >>> print(settings.api_base_url)
    https://example.invalid
    >>> if settings.use_mock:
    ...     print("Using in-memory repositories")
"""

from enum import StrEnum
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE_URL = "https://example.invalid"


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, safe defaults
        PRODUCTION: Structured logging, optimized for stability
        TESTING: In-memory state, zero latency, minimal logging
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        use_mock: Select in-memory repositories instead of the HTTP backend
        api_base_url: Base URL of the backend REST API
        request_timeout_ms: Per-request timeout for the HTTP client
        mock_latency_ms: Simulated latency of the in-memory repositories
        default_page_size: Page size used when a list call omits ``limit``
        max_page_size: Upper bound applied to every ``limit``
        data_dir: Base directory for local files (state database, logs)
        state_db_path: SQLite file holding the persisted client state
        waterfall_min_height: Lower clamp for estimated card heights
        waterfall_max_height: Upper clamp for estimated card heights
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Repository Selection
    use_mock: bool = Field(
        default=True,
        alias="USE_MOCK",
        description="Use the in-memory repositories (read once at startup)",
    )

    # API Configuration
    api_base_url: str = Field(
        DEFAULT_API_BASE_URL,
        alias="API_BASE_URL",
        description="Backend REST API base URL",
    )
    request_timeout_ms: int = Field(
        10_000,
        ge=100,
        le=120_000,
        description="HTTP request timeout in milliseconds",
    )

    # In-memory Repositories
    mock_latency_ms: int = Field(
        200,
        ge=0,
        le=5_000,
        description="Artificial latency applied to each in-memory repository call",
    )

    # Pagination
    default_page_size: int = Field(20, ge=1, le=50)
    max_page_size: int = Field(50, ge=1, le=50)

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for local files (state database, logs)",
    )
    state_db_path: Path = Field(
        Path("campusfeed.db"),  # Will be updated to data_dir/campusfeed.db by validator
        description="Path to the SQLite client state file (defaults to data_dir/campusfeed.db)",
    )

    # Waterfall Layout
    waterfall_min_height: int = Field(80, description="Minimum estimated card height")
    waterfall_max_height: int = Field(220, description="Maximum estimated card height")

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_to_file: bool = Field(
        default=False,
        description="Enable file logging in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        return Path(v).expanduser().resolve()

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Require an http(s) base URL and strip the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("API base URL must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def set_state_db_path_default(self) -> "Settings":
        """Set state_db_path to data_dir/campusfeed.db if not explicitly provided."""
        if self.state_db_path == Path("campusfeed.db"):
            self.state_db_path = self.data_dir / "campusfeed.db"
        return self

    @model_validator(mode="after")
    def clamp_waterfall_heights(self) -> "Settings":
        """Keep the waterfall height bounds inside their usable window."""
        min_height = max(40, self.waterfall_min_height)
        max_height = min(600, max(self.waterfall_max_height, min_height + 10))
        self.waterfall_min_height = min(min_height, max_height - 10)
        self.waterfall_max_height = max_height
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging, JSON output
            - DEVELOPMENT: DEBUG logging, human-readable output
            - TESTING: In-memory state store, zero latency, ERROR logging, no file logging
            - STAGING: INFO logging, JSON output

        Returns:
            Modified settings instance with environment-specific adjustments
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False

        elif self.environment == Environment.TESTING:
            self.state_db_path = Path(":memory:")
            self.mock_latency_ms = 0
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True

        return self

    @property
    def state_db_url(self) -> str:
        """Get SQLAlchemy URL for the client state database."""
        if str(self.state_db_path) == ":memory:":
            return "sqlite://"
        return f"sqlite:///{self.state_db_path}"

    @property
    def request_timeout(self) -> float:
        """Request timeout in seconds."""
        return self.request_timeout_ms / 1000

    @property
    def mock_latency(self) -> float:
        """In-memory repository latency in seconds."""
        return self.mock_latency_ms / 1000

    @property
    def has_default_api_url(self) -> bool:
        """Check if the API base URL was never configured."""
        return self.api_base_url == DEFAULT_API_BASE_URL

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING


def get_settings() -> Settings:
    """Get a settings instance read from the environment.

    Returns:
        Configured Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()

"""Configuration management for the dashboard.

Provides:
- Config: base class with dict/JSON round-tripping
- AppConfig: application settings loaded from environment variables
- Domain constants shared by the module dashboards (current year, UIT)
"""

from pathlib import Path
from typing import Dict, Any
import json
import os as _os


# ── Fiscal / domain constants ────────────────────────────────────────────────

ANIO_ACTUAL = 2026

# Unidad Impositiva Tributaria for fiscal year 2026 (S/ 5,500).
UIT_2026 = 5_500
# Contratos menores ceiling: 8 UIT = S/ 44,000.
UMBRAL_8_UIT = 8 * UIT_2026


class Config:
    """Base configuration class for organizing application settings."""

    def __init__(self):
        """Initialize configuration with default values."""
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary.

        Returns:
            Dictionary of all config attributes
        """
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Config instance with values from dictionary
        """
        config = cls()
        for key, value in data.items():
            setattr(config, key, value)
        return config

    def save_json(self, path: Path) -> None:
        """Save configuration to JSON file.

        Args:
            path: Path to save configuration file
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_json(cls, path: Path) -> "Config":
        """Load configuration from JSON file.

        Args:
            path: Path to configuration file

        Returns:
            Config instance loaded from file

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


def _env_int(name: str, default: int) -> int:
    raw = _os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    All env vars have sensible defaults so the dashboard works out of the
    box against a local backend.

    Environment variables:
        APP_API_BASE_URL: Remote API root (default: http://127.0.0.1:8000/api)
        APP_API_TOKEN: Bearer token sent with every request (default: none)
        APP_API_TIMEOUT: Request timeout in seconds (default: 30)
        APP_HOST: Dashboard service bind address (default: 127.0.0.1)
        APP_PORT: Dashboard service port (default: 8050)
        APP_LOG_FORMAT: Logging format — "text" or "json" (default: text)
        APP_LOG_LEVEL: Root log level name (default: INFO)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        APP_STALE_TIME_MS: Default freshness window in ms (default: 180000)
        APP_MAX_RETRIES: Default retry budget per fetch (default: 1)
        APP_TABLE_PAGE_SIZE: Rows requested per server page (default: 20)
        APP_VIEW_PAGE_SIZE: Rows shown per table page (default: 10)
    """

    def __init__(self) -> None:
        super().__init__()
        self.api_base_url = _os.getenv("APP_API_BASE_URL", "http://127.0.0.1:8000/api").rstrip("/")
        self.api_token = _os.getenv("APP_API_TOKEN", "")
        self.api_timeout = _env_int("APP_API_TIMEOUT", 30)
        self.host = _os.getenv("APP_HOST", "127.0.0.1")
        self.port = _env_int("APP_PORT", 8050)
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text").lower()
        self.log_level = _os.getenv("APP_LOG_LEVEL", "INFO").upper()
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.stale_time_ms = _env_int("APP_STALE_TIME_MS", 180_000)
        self.max_retries = _env_int("APP_MAX_RETRIES", 1)
        self.table_page_size = _env_int("APP_TABLE_PAGE_SIZE", 20)
        self.view_page_size = _env_int("APP_VIEW_PAGE_SIZE", 10)
        self.validate()

    def validate(self) -> None:
        """Reject settings the orchestrator and table engine cannot honour."""
        if self.log_format not in ("text", "json"):
            raise ValueError(f"APP_LOG_FORMAT must be 'text' or 'json', got {self.log_format!r}")
        if self.max_retries < 0:
            raise ValueError("APP_MAX_RETRIES must be >= 0")
        if self.stale_time_ms < 0:
            raise ValueError("APP_STALE_TIME_MS must be >= 0")
        if self.table_page_size < 1 or self.view_page_size < 1:
            raise ValueError("page sizes must be >= 1")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()

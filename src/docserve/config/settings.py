"""
Configuration management for docserve.

Handles environment variables and .env loading, and provides default
settings with validation for the index, the watcher, the change bus and
logging.
"""

import fnmatch
from enum import Enum
from pathlib import Path, PurePath
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docserve.models.exceptions import ConfigurationError


class LogLevel(str, Enum):
    """Logging level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DocserveConfig(BaseSettings):
    """
    Central configuration class for docserve.

    Every component receives the instance explicitly; values can be
    overridden with ``DOCSERVE_*`` environment variables or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCSERVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        use_enum_values=True,
    )

    # === Document Tracking ===
    document_extensions: list[str] = Field(
        default=[".md", ".markdown"], description="Extensions of files tracked as documents"
    )
    asset_extensions: list[str] = Field(
        default=[".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".bmp", ".ico"],
        description="Extensions of files served as static assets",
    )
    ignored_patterns: list[str] = Field(
        default=["*.tmp", "*.swp", "*~", ".git/*", "*/.git/*"], description="Patterns of raw events to ignore"
    )

    # === Change Detection ===
    rescan_delay_seconds: float = Field(
        default=0.2, ge=0.01, le=5.0, description="Quiet window before a debounced rescan runs"
    )
    event_queue_size: int = Field(default=100, ge=1, le=10000, description="Bounded raw event hand-off queue")
    bus_capacity: int = Field(default=16, ge=1, le=1024, description="Buffered messages per subscriber")
    observer_join_timeout: float = Field(default=5.0, ge=0.1, le=60.0, description="Watch thread join timeout")

    # === Logging Configuration ===
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: Path | None = Field(default=None, description="Log file path (stderr if None)")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log message format"
    )

    @field_validator("document_extensions", "asset_extensions")
    @classmethod
    def validate_extensions(cls, v):
        """Ensure extensions start with a dot and compare case-insensitively."""
        validated = []
        for ext in v:
            if not ext.startswith("."):
                ext = f".{ext}"
            validated.append(ext.lower())
        return validated

    @model_validator(mode="after")
    def validate_extension_sets(self):
        """A file type is either a document or an asset, never both."""
        overlap = set(self.document_extensions) & set(self.asset_extensions)
        if overlap:
            raise ConfigurationError(
                "document_extensions and asset_extensions must not overlap",
                config_key="asset_extensions",
                expected_type="disjoint extension sets",
                actual_value=sorted(overlap),
            )
        if not self.document_extensions:
            raise ConfigurationError(
                "At least one document extension is required",
                config_key="document_extensions",
                expected_type="non-empty list",
                actual_value=self.document_extensions,
            )
        return self

    def is_document(self, file_path: str | PurePath) -> bool:
        """Check if a path has a document extension."""
        return PurePath(file_path).suffix.lower() in self.document_extensions

    def is_asset(self, file_path: str | PurePath) -> bool:
        """Check if a path has a static asset extension."""
        return PurePath(file_path).suffix.lower() in self.asset_extensions

    def should_ignore(self, file_path: str | PurePath) -> bool:
        """Check a path (relative or absolute) against the ignore patterns."""
        path = PurePath(file_path)
        path_str = path.as_posix()
        return any(
            fnmatch.fnmatch(path_str, pattern) or fnmatch.fnmatch(path.name, pattern)
            for pattern in self.ignored_patterns
        )

    def get_log_config(self) -> dict[str, Any]:
        """Get a ``logging.config.dictConfig`` dictionary."""
        level = LogLevel(self.log_level).value
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": self.log_format}},
            "handlers": {
                "default": {
                    "level": level,
                    "formatter": "standard",
                    "class": "logging.StreamHandler" if not self.log_file else "logging.FileHandler",
                }
            },
            "loggers": {"docserve": {"handlers": ["default"], "level": level, "propagate": False}},
        }

        if self.log_file:
            config["handlers"]["default"]["filename"] = str(self.log_file)

        return config


# Process-wide instance for entry points; library code takes config explicitly
_config: DocserveConfig | None = None


def get_config() -> DocserveConfig:
    """
    Get the global configuration instance.

    Creates a new instance on first call and reuses it for subsequent calls.
    """
    global _config
    if _config is None:
        _config = DocserveConfig()
    return _config


def reload_config() -> DocserveConfig:
    """Force reload the configuration from environment/files."""
    global _config
    _config = DocserveConfig()
    return _config


def set_config(config: DocserveConfig) -> None:
    """Set a custom configuration instance, mostly for tests."""
    global _config
    _config = config

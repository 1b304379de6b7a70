"""Configuration management and settings."""

from docserve.config.settings import DocserveConfig, LogLevel, get_config, reload_config, set_config

__all__ = ["DocserveConfig", "LogLevel", "get_config", "reload_config", "set_config"]

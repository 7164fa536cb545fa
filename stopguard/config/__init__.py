"""Configuration package for application settings."""

from stopguard.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]

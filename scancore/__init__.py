"""Scene geometry and offsite annotation engine for room scans."""

from __future__ import annotations

from pathlib import Path

from scancore.logging_config import configure_logging
from scancore.settings import Settings, get_settings

__version__ = "0.1.0"


def bootstrap(config_path: Path | str | None = None) -> Settings:
    """Load settings and configure logging; returns the loaded settings."""
    settings = get_settings(str(config_path) if config_path else None)
    configure_logging(settings.logging)
    return settings


__all__ = ["Settings", "bootstrap", "configure_logging", "get_settings"]

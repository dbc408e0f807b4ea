"""Application configuration.

Settings are read from the environment, with an optional `.env` file at the
repository root loaded first.
"""

from core.config.settings import (
    PaceSettings,
    load_settings,
    get_settings,
    reset_settings,
)

__all__ = [
    "PaceSettings",
    "load_settings",
    "get_settings",
    "reset_settings",
]

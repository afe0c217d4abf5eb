"""Configuration package for wayback-autosave.

Re-exports the settings symbols so that callers can write::

    from wayback_autosave.config import get_settings
"""

from __future__ import annotations

from wayback_autosave.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]

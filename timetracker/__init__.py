"""Time tracker backend: users, task timers and work summaries."""

from __future__ import annotations

from typing import Any

from .cache import TrackerCache
from .database import Database, resolve_database_path


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the tracker API application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


def create_userinfo_app(*args: Any, **kwargs: Any):
    """Factory function for the user info service."""

    from .userinfo import create_app as _create_userinfo_app

    return _create_userinfo_app(*args, **kwargs)


__all__ = [
    "Database",
    "TrackerCache",
    "resolve_database_path",
    "create_app",
    "create_userinfo_app",
]

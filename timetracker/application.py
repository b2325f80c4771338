"""Composition root wiring configuration, database, cache and HTTP apps."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from .config import TrackerConfig, load_config
from .database import Database, resolve_database_path
from .service import create_app as create_tracker_app
from .service import warm_cache
from .userinfo import create_app as create_userinfo_app
from .userinfo_client import UserInfoClient

logger = logging.getLogger("timetracker.application")


def open_database(config: TrackerConfig) -> Database:
    path = config.database.path or resolve_database_path(None)
    database = Database(path)
    database.initialize()
    logger.info("Database ready at %s", path)
    return database


def create_application(config: Optional[TrackerConfig] = None) -> FastAPI:
    """Build the tracker API with a warmed cache.

    Database and warm-load failures propagate; the caller must not start
    serving when this raises.
    """

    config = config or load_config()
    database = open_database(config)

    cache = warm_cache(database)
    identity = UserInfoClient(config.user_info.base_url, timeout=config.user_info.timeout)

    app = create_tracker_app(database=database, cache=cache, identity=identity)
    app.state.config = config
    return app


def create_userinfo_application(config: Optional[TrackerConfig] = None) -> FastAPI:
    app = create_userinfo_app()
    app.state.config = config or load_config()
    return app


__all__ = ["create_application", "create_userinfo_application", "open_database"]

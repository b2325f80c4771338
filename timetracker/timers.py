"""Start and stop task timers for users.

Each operation writes the database first and then applies the matching
change to the cache under the cache's exclusive lock. There is no rollback
across the pair: when the cache step fails the database keeps the write and
the two stay apart until the next :meth:`TrackerCache.load_all`.

Behaviours kept as they are pending a product decision:

* ``start`` does not refuse a second running instance of the same task.
* ``end`` stamps every database row of the (user, task) pair.
* ``end`` only updates the first cached instance of the task.
* the cached end time is taken from a second clock reading, so it can differ
  slightly from the stored one.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from .cache import TrackerCache
from .errors import UserNotCachedError
from .models import TaskInstance, elapsed_minutes
from .store import TrackerStore

logger = logging.getLogger("timetracker.timers")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskTimer:
    """Write-through timer workflow over a store and its cache."""

    def __init__(
        self,
        store: TrackerStore,
        cache: TrackerCache,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._cache = cache
        self._clock = clock

    def start(self, user_id: int, task_id: int) -> TaskInstance:
        """Record a new running instance of ``task_id`` for the user."""

        task_name = self._store.get_task_name(task_id)
        instance = self._store.insert_task_instance(
            user_id,
            task_id,
            task_name,
            self._clock(),
            None,
            0,
        )
        logger.debug("Stored start of task %s for user %s", task_id, user_id)

        if not self._cache.append_task_instance(user_id, instance):
            logger.warning(
                "User %s missing from cache after starting task %s; cache is behind the database",
                user_id,
                task_id,
            )
            raise UserNotCachedError(user_id)

        logger.info("Started task %s (%s) for user %s", task_id, task_name, user_id)
        return instance

    def end(self, user_id: int, task_id: int) -> TaskInstance:
        """Stop the timer of ``task_id`` for the user and return the stored row."""

        self._store.update_task_instance_end_time(user_id, task_id, self._clock())
        instance = self._store.get_task_instance(user_id, task_id)

        if instance.end_time is not None:
            minutes = elapsed_minutes(instance.start_time, instance.end_time)
            self._store.update_task_instance_total_minutes(user_id, task_id, minutes)
            instance = replace(instance, total_minutes=minutes)
            logger.debug("Task %s for user %s took %d minute(s)", task_id, user_id, minutes)

        if not self._cache.finish_task_instance(
            user_id,
            task_id,
            end_time=self._clock(),
            total_minutes=instance.total_minutes,
        ):
            logger.warning(
                "User %s missing from cache after ending task %s; cache is behind the database",
                user_id,
                task_id,
            )
            raise UserNotCachedError(user_id)

        logger.info("Ended task %s for user %s", task_id, user_id)
        return instance


__all__ = ["TaskTimer"]

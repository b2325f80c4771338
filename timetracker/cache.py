"""In-memory mirror of the users and task catalog held in the database.

The cache keeps two mappings, each behind its own :class:`ReadWriteLock`:

* user id -> :class:`~timetracker.models.User` (with its task instances)
* task id -> :class:`~timetracker.models.Task`

The two locks are never held at the same time. No operation may assume that
a user and a catalog task were read atomically together; task names are
copied into each instance when its timer starts, so nothing re-joins them
later. If joint atomicity is ever required, merge the two mappings under a
single lock instead of introducing a lock order.

The database stays authoritative. Every mutation performed through the
workflows writes the database first and the cache second, and the cache can
be rebuilt with :meth:`TrackerCache.load_all` at any time.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from .models import Task, TaskInstance, User, UserProfile
from .rwlock import ReadWriteLock
from .store import TrackerStore

logger = logging.getLogger("timetracker.cache")


class TrackerCache:
    """Concurrent cache of users and catalog tasks."""

    def __init__(self) -> None:
        self._users: Dict[int, User] = {}
        self._users_lock = ReadWriteLock()
        self._tasks: Dict[int, Task] = {}
        self._tasks_lock = ReadWriteLock()

    def __len__(self) -> int:
        with self._users_lock.read():
            return len(self._users)

    def initialize(self) -> None:
        """Reset both mappings to empty."""

        with self._users_lock.write():
            self._users = {}
        with self._tasks_lock.write():
            self._tasks = {}

    def load_all(self, store: TrackerStore) -> None:
        """Replace the cache contents with a full scan of ``store``.

        Meant to run once before the HTTP listener accepts requests. Store
        errors propagate and leave the previous contents untouched.
        """

        users: List[User] = []
        for profile in store.list_users():
            instances = store.list_task_instances_for_user(profile.id)
            users.append(User.from_profile(profile, tuple(instances)))
        tasks = list(store.list_tasks())

        self.initialize()
        for user in users:
            self.put_user(user)
        for task in tasks:
            self.put_task(task)

        logger.info("Cache warmed with %d user(s) and %d catalog task(s)", len(users), len(tasks))

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def put_user(self, user: User) -> None:
        with self._users_lock.write():
            self._users[user.id] = user

    def get_user(self, user_id: int) -> Optional[User]:
        with self._users_lock.read():
            return self._users.get(user_id)

    def user_ids(self) -> List[int]:
        with self._users_lock.read():
            return sorted(self._users)

    def remove_user(self, user_id: int) -> bool:
        with self._users_lock.write():
            return self._users.pop(user_id, None) is not None

    def update_profile(self, profile: UserProfile) -> bool:
        """Overwrite the profile fields of a cached user, keeping its tasks.

        Returns ``False`` without touching anything when the user is absent.
        """

        with self._users_lock.write():
            existing = self._users.get(profile.id)
            if existing is None:
                return False
            self._users[profile.id] = User.from_profile(profile, existing.tasks)
            return True

    def get_user_tasks_sorted(self, user_id: int) -> Optional[List[TaskInstance]]:
        """Return the user's task instances ordered by ``total_minutes`` descending.

        ``None`` means the user is not cached. Ties keep no meaningful order.
        """

        with self._users_lock.read():
            user = self._users.get(user_id)
            if user is None:
                return None
            tasks = list(user.tasks)
        return sorted(tasks, key=lambda task: task.total_minutes, reverse=True)

    def append_task_instance(self, user_id: int, instance: TaskInstance) -> bool:
        with self._users_lock.write():
            user = self._users.get(user_id)
            if user is None:
                return False
            self._users[user_id] = replace(user, tasks=user.tasks + (instance,))
            return True

    def finish_task_instance(
        self,
        user_id: int,
        task_id: int,
        *,
        end_time: datetime,
        total_minutes: int,
    ) -> bool:
        """Stamp the first cached instance of ``task_id`` for the user.

        Later instances of the same task are left as they are. Returns
        ``False`` when the user is not cached.
        """

        with self._users_lock.write():
            user = self._users.get(user_id)
            if user is None:
                return False
            tasks = list(user.tasks)
            for index, instance in enumerate(tasks):
                if instance.task_id == task_id:
                    tasks[index] = replace(instance, end_time=end_time, total_minutes=total_minutes)
                    break
            else:
                logger.debug("No cached instance of task %s for user %s", task_id, user_id)
                return True
            self._users[user_id] = replace(user, tasks=tuple(tasks))
            return True

    # ------------------------------------------------------------------
    # Task catalog
    # ------------------------------------------------------------------
    def put_task(self, task: Task) -> None:
        with self._tasks_lock.write():
            self._tasks[task.id] = task

    def get_task(self, task_id: int) -> Optional[Task]:
        with self._tasks_lock.read():
            return self._tasks.get(task_id)

    def list_tasks(self) -> List[Task]:
        with self._tasks_lock.read():
            tasks = list(self._tasks.values())
        return sorted(tasks, key=lambda task: task.id)


__all__ = ["TrackerCache"]

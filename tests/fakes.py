"""Test doubles for the store, the user info service and the clock."""

from __future__ import annotations

import threading
import time
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from timetracker.errors import NotFoundError, UpstreamError
from timetracker.models import PersonalInfo, Task, TaskInstance, UserProfile


class ManualClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeIdentity:
    def __init__(self) -> None:
        self.people: Dict[Tuple[int, int], PersonalInfo] = {
            (1234, 567890): PersonalInfo("Vadimov", "Vadim", "Vadimovich", "Moscow, Lenina 5"),
            (1111, 111111): PersonalInfo("Sergeev", "Sergey", "Sergeevich", "Moscow, Lenina 7"),
        }
        self.fail = False
        self.calls: List[Tuple[int, int]] = []

    def lookup(self, passport_serie: int, passport_number: int) -> PersonalInfo:
        self.calls.append((passport_serie, passport_number))
        if self.fail:
            raise UpstreamError("User info service unavailable")
        info = self.people.get((passport_serie, passport_number))
        if info is None:
            raise NotFoundError("No person registered with that passport")
        return info


class InMemoryStore:
    """Minimal store used where the test controls user ids or latency."""

    def __init__(self, *, delay: float = 0.0) -> None:
        self.delay = delay
        self.users: Dict[int, UserProfile] = {}
        self.tasks: Dict[int, Task] = {}
        self.rows: List[TaskInstance] = []
        self.fail_listing = False
        self._lock = threading.Lock()

    def add_user(self, user_id: int, serie: int = 1000, number: int = 100000) -> UserProfile:
        profile = UserProfile(id=user_id, passport_serie=serie, passport_number=number + user_id)
        self.users[user_id] = profile
        return profile

    def add_task(self, task_id: int, name: str) -> Task:
        task = Task(id=task_id, name=name)
        self.tasks[task_id] = task
        return task

    def list_users(self) -> List[UserProfile]:
        return list(self.users.values())

    def list_tasks(self) -> List[Task]:
        return list(self.tasks.values())

    def list_task_instances_for_user(self, user_id: int) -> List[TaskInstance]:
        if self.fail_listing:
            raise UpstreamError("database went away")
        with self._lock:
            return [row for row in self.rows if row.user_id == user_id]

    def get_task_name(self, task_id: int) -> str:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        return task.name

    def insert_task_instance(
        self,
        user_id: int,
        task_id: int,
        task_name: str,
        start_time: datetime,
        end_time: Optional[datetime],
        total_minutes: int,
    ) -> TaskInstance:
        if self.delay:
            time.sleep(self.delay)
        row = TaskInstance(user_id, task_id, task_name, start_time, end_time, total_minutes)
        with self._lock:
            self.rows.append(row)
        return row

    def update_task_instance_end_time(self, user_id: int, task_id: int, now: datetime) -> int:
        return self._update(user_id, task_id, end_time=now)

    def update_task_instance_total_minutes(self, user_id: int, task_id: int, minutes: int) -> int:
        return self._update(user_id, task_id, total_minutes=minutes)

    def get_task_instance(self, user_id: int, task_id: int) -> TaskInstance:
        with self._lock:
            matches = [row for row in self.rows if row.user_id == user_id and row.task_id == task_id]
        if not matches:
            raise NotFoundError(f"No task {task_id} recorded for user {user_id}")
        return matches[-1]

    def _update(self, user_id: int, task_id: int, **changes: object) -> int:
        count = 0
        with self._lock:
            for index, row in enumerate(self.rows):
                if row.user_id == user_id and row.task_id == task_id:
                    self.rows[index] = replace(row, **changes)
                    count += 1
        return count

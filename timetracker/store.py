"""Persistence contract consumed by the cache and the workflows."""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional, Protocol, Sequence

from .models import Task, TaskInstance, UserProfile


class TrackerStore(Protocol):
    """Source of truth for users, catalog tasks and task instances.

    Lookups that find nothing raise :class:`~timetracker.errors.NotFoundError`;
    backend failures raise :class:`~timetracker.errors.UpstreamError`.
    """

    def insert_user(
        self,
        *,
        passport_serie: int,
        passport_number: int,
        surname: str,
        name: str,
        patronymic: str,
        address: str,
    ) -> int:
        raise NotImplementedError

    def get_user(self, user_id: int) -> Optional[UserProfile]:
        raise NotImplementedError

    def list_users(self) -> Sequence[UserProfile]:
        raise NotImplementedError

    def search_users(
        self,
        filters: Mapping[str, object],
        *,
        page: int = 1,
        limit: int = 10,
    ) -> Sequence[UserProfile]:
        raise NotImplementedError

    def update_user_profile(self, profile: UserProfile) -> int:
        """Overwrite the profile columns and return the number of rows changed."""

        raise NotImplementedError

    def delete_user_and_instances(self, user_id: int) -> bool:
        raise NotImplementedError

    def create_task(self, name: str) -> Task:
        raise NotImplementedError

    def list_tasks(self) -> Sequence[Task]:
        raise NotImplementedError

    def get_task_name(self, task_id: int) -> str:
        raise NotImplementedError

    def insert_task_instance(
        self,
        user_id: int,
        task_id: int,
        task_name: str,
        start_time: datetime,
        end_time: Optional[datetime],
        total_minutes: int,
    ) -> TaskInstance:
        raise NotImplementedError

    def update_task_instance_end_time(self, user_id: int, task_id: int, now: datetime) -> int:
        raise NotImplementedError

    def update_task_instance_total_minutes(self, user_id: int, task_id: int, minutes: int) -> int:
        raise NotImplementedError

    def get_task_instance(self, user_id: int, task_id: int) -> TaskInstance:
        raise NotImplementedError

    def list_task_instances_for_user(self, user_id: int) -> Sequence[TaskInstance]:
        raise NotImplementedError

    def list_task_instances_filtered(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
    ) -> Sequence[TaskInstance]:
        """Rows started at or after ``start`` and ended by ``end`` (or still running)."""

        raise NotImplementedError


__all__ = ["TrackerStore"]

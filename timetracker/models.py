"""Domain models for users, catalog tasks and timed task instances."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class Task:
    """Catalog entry naming a kind of work."""

    id: int
    name: str


@dataclass(frozen=True)
class TaskInstance:
    """One user's timed occurrence of a catalog task.

    ``end_time`` is ``None`` while the timer is running and ``total_minutes``
    stays at zero until the end time has been recorded.
    """

    user_id: int
    task_id: int
    task_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    total_minutes: int = 0

    @property
    def running(self) -> bool:
        return self.end_time is None


@dataclass(frozen=True)
class PersonalInfo:
    """Biographic data returned by the user info service."""

    surname: str
    name: str
    patronymic: str
    address: str


@dataclass(frozen=True)
class UserProfile:
    """A row of the users table."""

    id: int
    passport_serie: int
    passport_number: int
    surname: str = ""
    name: str = ""
    patronymic: str = ""
    address: str = ""


@dataclass(frozen=True)
class User:
    """A cached user record embedding its task instances."""

    id: int
    passport_serie: int
    passport_number: int
    surname: str = ""
    name: str = ""
    patronymic: str = ""
    address: str = ""
    tasks: Tuple[TaskInstance, ...] = ()

    @classmethod
    def from_profile(cls, profile: UserProfile, tasks: Tuple[TaskInstance, ...] = ()) -> "User":
        return cls(
            id=profile.id,
            passport_serie=profile.passport_serie,
            passport_number=profile.passport_number,
            surname=profile.surname,
            name=profile.name,
            patronymic=profile.patronymic,
            address=profile.address,
            tasks=tuple(tasks),
        )

    def profile(self) -> UserProfile:
        return UserProfile(
            id=self.id,
            passport_serie=self.passport_serie,
            passport_number=self.passport_number,
            surname=self.surname,
            name=self.name,
            patronymic=self.patronymic,
            address=self.address,
        )


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between ``start`` and ``end``, rounded down."""

    return int((end - start).total_seconds() // 60)


__all__ = ["PersonalInfo", "Task", "TaskInstance", "User", "UserProfile", "elapsed_minutes"]

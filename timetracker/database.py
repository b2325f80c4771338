"""SQLite-backed persistence for users, catalog tasks and task instances."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Mapping, Optional

from .errors import InvalidInputError, NotFoundError, StorageError
from .models import Task, TaskInstance, UserProfile

logger = logging.getLogger("timetracker.database")

_EXACT_FILTERS = ("passport_serie", "passport_number")
_SUBSTRING_FILTERS = ("surname", "name", "patronymic", "address")

_INSTANCE_COLUMNS = "user_id, task_id, task_name, start_time, end_time, total_minutes"


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the tracker database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "tracker.sqlite3").resolve(strict=False)


def _serialize_datetime(value: datetime) -> str:
    # Stored as fixed-width UTC text so that string comparison orders correctly.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _casefold(value: object) -> object:
    # SQLite LIKE only folds ASCII; Cyrillic names and addresses need Unicode folding.
    return value.casefold() if isinstance(value, str) else value


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class Database:
    """Simple wrapper around SQLite for the tracker tables."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open database {self._path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.create_function("casefold", 1, _casefold, deterministic=True)
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Database operation failed: %s", exc)
            raise StorageError(f"Database operation failed: {exc}") from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    passport_serie INTEGER NOT NULL,
                    passport_number INTEGER NOT NULL,
                    surname TEXT NOT NULL DEFAULT '',
                    name TEXT NOT NULL DEFAULT '',
                    patronymic TEXT NOT NULL DEFAULT '',
                    address TEXT NOT NULL DEFAULT '',
                    UNIQUE (passport_serie, passport_number)
                );

                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS users_tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    task_id INTEGER NOT NULL REFERENCES tasks(id),
                    task_name TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    total_minutes INTEGER NOT NULL DEFAULT 0
                );

                CREATE INDEX IF NOT EXISTS idx_users_tasks_user_task ON users_tasks(user_id, task_id);
                """
            )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
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
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (passport_serie, passport_number, surname, name, patronymic, address)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (passport_serie, passport_number, surname, name, patronymic, address),
                )
            except sqlite3.IntegrityError as exc:
                raise InvalidInputError("A user with that passport is already registered") from exc
            user_id = int(cursor.lastrowid)

        logger.debug("Inserted user %s", user_id)
        return user_id

    def get_user(self, user_id: int) -> Optional[UserProfile]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_profile(row)

    def list_users(self) -> List[UserProfile]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_profile(row) for row in rows]

    def search_users(
        self,
        filters: Mapping[str, object],
        *,
        page: int = 1,
        limit: int = 10,
    ) -> List[UserProfile]:
        """Return a page of users matching the given column filters.

        Passport filters match exactly; the name and address filters are
        case-insensitive substring matches.
        """

        if page < 1:
            raise InvalidInputError("Page number must be at least 1")
        if limit < 1:
            raise InvalidInputError("Limit must be at least 1")

        clauses: List[str] = []
        values: List[object] = []
        for column in _EXACT_FILTERS:
            value = filters.get(column)
            if value is None:
                continue
            clauses.append(f"{column} = ?")
            values.append(value)
        for column in _SUBSTRING_FILTERS:
            value = filters.get(column)
            if not value:
                continue
            clauses.append(f"casefold({column}) LIKE ?")
            values.append(f"%{str(value).casefold()}%")

        query = "SELECT * FROM users"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id LIMIT ? OFFSET ?"
        values.extend([limit, (page - 1) * limit])

        logger.debug("Searching users: %s %s", query, values)
        with self._connect() as conn:
            rows = conn.execute(query, values).fetchall()
        return [self._row_to_profile(row) for row in rows]

    def update_user_profile(self, profile: UserProfile) -> int:
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    UPDATE users
                       SET passport_serie = ?, passport_number = ?, surname = ?, name = ?,
                           patronymic = ?, address = ?
                     WHERE id = ?
                    """,
                    (
                        profile.passport_serie,
                        profile.passport_number,
                        profile.surname,
                        profile.name,
                        profile.patronymic,
                        profile.address,
                        profile.id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise InvalidInputError("A user with that passport is already registered") from exc
            return cursor.rowcount

    def delete_user_and_instances(self, user_id: int) -> bool:
        with self._connect() as conn:
            conn.execute("DELETE FROM users_tasks WHERE user_id = ?", (user_id,))
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Task catalog
    # ------------------------------------------------------------------
    def create_task(self, name: str) -> Task:
        normalized = name.strip()
        if not normalized:
            raise InvalidInputError("Task name must not be empty")
        with self._connect() as conn:
            cursor = conn.execute("INSERT INTO tasks (name) VALUES (?)", (normalized,))
            task_id = int(cursor.lastrowid)
        return Task(id=task_id, name=normalized)

    def list_tasks(self) -> List[Task]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id, name FROM tasks ORDER BY id").fetchall()
        return [Task(id=int(row["id"]), name=str(row["name"])) for row in rows]

    def get_task_name(self, task_id: int) -> str:
        with self._connect() as conn:
            row = conn.execute("SELECT name FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Task {task_id} not found")
        return str(row["name"])

    # ------------------------------------------------------------------
    # Task instances
    # ------------------------------------------------------------------
    def insert_task_instance(
        self,
        user_id: int,
        task_id: int,
        task_name: str,
        start_time: datetime,
        end_time: Optional[datetime],
        total_minutes: int,
    ) -> TaskInstance:
        with self._connect() as conn:
            try:
                row = conn.execute(
                    f"""
                    INSERT INTO users_tasks ({_INSTANCE_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?)
                    RETURNING {_INSTANCE_COLUMNS}
                    """,
                    (
                        user_id,
                        task_id,
                        task_name,
                        _serialize_datetime(start_time),
                        _serialize_datetime(end_time) if end_time is not None else None,
                        total_minutes,
                    ),
                ).fetchone()
            except sqlite3.IntegrityError as exc:
                raise NotFoundError(f"User {user_id} or task {task_id} does not exist") from exc
        return self._row_to_instance(row)

    def update_task_instance_end_time(self, user_id: int, task_id: int, now: datetime) -> int:
        # Every row for the pair is stamped, not only the running one.
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users_tasks SET end_time = ? WHERE user_id = ? AND task_id = ?",
                (_serialize_datetime(now), user_id, task_id),
            )
            return cursor.rowcount

    def update_task_instance_total_minutes(self, user_id: int, task_id: int, minutes: int) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users_tasks SET total_minutes = ? WHERE user_id = ? AND task_id = ?",
                (minutes, user_id, task_id),
            )
            return cursor.rowcount

    def get_task_instance(self, user_id: int, task_id: int) -> TaskInstance:
        """Return the most recently started row for the pair."""

        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT {_INSTANCE_COLUMNS}
                  FROM users_tasks
                 WHERE user_id = ? AND task_id = ?
                 ORDER BY start_time DESC, id DESC
                 LIMIT 1
                """,
                (user_id, task_id),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"No task {task_id} recorded for user {user_id}")
        return self._row_to_instance(row)

    def list_task_instances_for_user(self, user_id: int) -> List[TaskInstance]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_INSTANCE_COLUMNS} FROM users_tasks WHERE user_id = ? ORDER BY id",
                (user_id,),
            ).fetchall()
        return [self._row_to_instance(row) for row in rows]

    def list_task_instances_filtered(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
    ) -> List[TaskInstance]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_INSTANCE_COLUMNS}
                  FROM users_tasks
                 WHERE user_id = ?
                   AND start_time >= ?
                   AND (end_time <= ? OR end_time IS NULL)
                 ORDER BY total_minutes DESC, id
                """,
                (user_id, _serialize_datetime(start), _serialize_datetime(end)),
            ).fetchall()
        return [self._row_to_instance(row) for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_profile(self, row: sqlite3.Row) -> UserProfile:
        return UserProfile(
            id=int(row["id"]),
            passport_serie=int(row["passport_serie"]),
            passport_number=int(row["passport_number"]),
            surname=str(row["surname"]),
            name=str(row["name"]),
            patronymic=str(row["patronymic"]),
            address=str(row["address"]),
        )

    def _row_to_instance(self, row: sqlite3.Row) -> TaskInstance:
        return TaskInstance(
            user_id=int(row["user_id"]),
            task_id=int(row["task_id"]),
            task_name=str(row["task_name"]),
            start_time=_parse_datetime(str(row["start_time"])),
            end_time=_parse_datetime(row["end_time"]),
            total_minutes=int(row["total_minutes"]),
        )


__all__ = ["Database", "resolve_database_path"]

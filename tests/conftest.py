from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from timetracker.database import Database
from timetracker.models import Task

from fakes import FakeIdentity, ManualClock


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "tracker.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def catalog(database: Database) -> Dict[str, Task]:
    tasks = [database.create_task(name) for name in ("Design Review", "Coding", "Standup")]
    return {task.name: task for task in tasks}


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture()
def identity() -> FakeIdentity:
    return FakeIdentity()

"""Work summaries read straight from the database."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import List

from .errors import InvalidInputError
from .models import TaskInstance
from .store import TrackerStore

REPORT_DATE_FORMAT = "%Y-%m-%d"


def parse_report_date(value: str) -> date:
    try:
        return datetime.strptime(value.strip(), REPORT_DATE_FORMAT).date()
    except (AttributeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid date {value!r}; expected YYYY-MM-DD") from exc


def _midnight_utc(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def summarize(
    store: TrackerStore,
    user_id: int,
    start_date: date,
    end_date: date,
) -> List[TaskInstance]:
    """Return the user's task instances in the window, longest first.

    Instances must start on or after ``start_date`` and end no later than
    midnight (UTC) of ``end_date``; running instances are always included.
    The cache is not consulted.
    """

    return list(
        store.list_task_instances_filtered(
            user_id,
            _midnight_utc(start_date),
            _midnight_utc(end_date),
        )
    )


__all__ = ["REPORT_DATE_FORMAT", "parse_report_date", "summarize"]

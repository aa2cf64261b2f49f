"""Planning horizon and daily study slots.

All dates are plain ``datetime.date`` values anchored on one "today" so the
horizon, the per-day loop and the exam cutoffs share the same day boundaries.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Iterable

from studyplan.normalization.config_resolver import DEFAULT_ENGINE_CONFIG, weekday_name

from .scoring import days_until


def _to_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def _iter_days(start: date, count: int) -> list[date]:
    return [start + timedelta(days=offset) for offset in range(max(0, count))]


def resolve_horizon_days(
    courses: Iterable[dict[str, Any]],
    today: str | date,
    *,
    default_days: int = DEFAULT_ENGINE_CONFIG["default_horizon_days"],
    max_days: int = DEFAULT_ENGINE_CONFIG["max_horizon_days"],
) -> int:
    """Number of days to plan: the latest future exam, within [default, max]."""
    horizon = default_days
    for course in courses:
        d = days_until(course.get("exam_date"), today)
        if d is not None and d > horizon:
            horizon = d
    return min(horizon, max_days)


def build_daily_slots(
    *,
    start_date: str | date,
    horizon_days: int,
    daily_study_hours: float,
    days_off: Iterable[str],
) -> list[dict[str, Any]]:
    """Build one slot per horizon day, in ascending date order."""

    start = _to_date(start_date)
    off = set(days_off)

    slots: list[dict[str, Any]] = []
    for day in _iter_days(start, horizon_days):
        weekday = weekday_name(day)
        is_day_off = weekday in off
        slots.append(
            {
                "slot_id": f"slot-{day.isoformat()}",
                "date": day.isoformat(),
                "weekday": weekday,
                "is_day_off": is_day_off,
                "capacity_hours": 0.0 if is_day_off else float(daily_study_hours),
            }
        )

    return slots

"""Plan replacement modes and stability against the previous plan."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any


@dataclass(frozen=True)
class ReplanWindow:
    mode: str
    # Records dated before this day survive; None replaces everything.
    from_date: date | None


def read_replan_window(mode: str, today: date) -> ReplanWindow:
    """``recreate`` keeps history before today, ``full`` replaces everything."""
    if mode == "recreate":
        return ReplanWindow(mode=mode, from_date=today)
    return ReplanWindow(mode="full", from_date=None)


def extract_previous_plan(payload: dict[str, Any]) -> dict[str, Any]:
    previous = payload.get("previous_plan")
    if not isinstance(previous, dict):
        return {"plan_version": 0, "days": [], "items": []}
    days = previous.get("days") if isinstance(previous.get("days"), list) else []
    items = previous.get("items") if isinstance(previous.get("items"), list) else []
    return {
        "plan_version": int(previous.get("plan_version", 0) or 0),
        "days": [day for day in days if isinstance(day, dict)],
        "items": [item for item in items if isinstance(item, dict)],
    }


def split_previous_plan(
    previous_records: list[dict[str, Any]],
    from_date: date | None,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Split previous days/items in preserved (< from_date) and replaced (>= from_date)."""
    if from_date is None:
        return [], previous_records

    preserved: list[dict[str, Any]] = []
    replaced: list[dict[str, Any]] = []
    for record in previous_records:
        raw = record.get("date")
        if not isinstance(raw, str):
            replaced.append(record)
            continue
        try:
            day = date.fromisoformat(raw)
        except ValueError:
            replaced.append(record)
            continue

        if day < from_date:
            preserved.append(record)
        else:
            replaced.append(record)

    return preserved, replaced


def compute_reallocation_metrics(
    previous_horizon: list[dict[str, Any]],
    new_horizon: list[dict[str, Any]],
) -> dict[str, float]:
    """Compare old/new items and compute reallocated_ratio + stability_score."""

    def _key(item: dict[str, Any]) -> tuple[str, str, float]:
        return (
            str(item.get("date", "")),
            str(item.get("topic_id", "")),
            round(float(item.get("hours", 0.0) or 0.0), 2),
        )

    old_counter = Counter(_key(item) for item in previous_horizon)
    new_counter = Counter(_key(item) for item in new_horizon)

    unchanged = sum((old_counter & new_counter).values())
    old_total = sum(old_counter.values())

    if old_total <= 0:
        return {"reallocated_ratio": 0.0, "stability_score": 1.0}

    reallocated_ratio = max(0.0, min(1.0, 1.0 - (unchanged / old_total)))
    return {
        "reallocated_ratio": reallocated_ratio,
        "stability_score": max(0.0, min(1.0, 1.0 - reallocated_ratio)),
    }

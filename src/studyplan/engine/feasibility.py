"""Feasibility check and uniform time compression.

Formulas:
- available_hours = usable study days * daily_study_hours
- coverage_ratio = min(1, available_hours / required_hours), 1 when nothing is required
- compressed_hours = max(min_topic_hours, estimated_hours * coverage_ratio) in priority mode
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from studyplan.normalization.config_resolver import DEFAULT_ENGINE_CONFIG


@dataclass(frozen=True)
class FeasibilityReport:
    coverage_ratio: float
    total_required_hours: float
    total_available_hours: float
    available_study_days: int
    is_priority_mode: bool
    min_required_hours: float
    compressed_hours: dict[str, float] = field(default_factory=dict)

    @property
    def coverage_percent(self) -> int:
        return int(round(self.coverage_ratio * 100))

    def as_dict(self) -> dict[str, Any]:
        return {
            "coverage_ratio": self.coverage_ratio,
            "coverage_percent": self.coverage_percent,
            "total_required_hours": round(self.total_required_hours, 2),
            "total_available_hours": round(self.total_available_hours, 2),
            "available_study_days": self.available_study_days,
            "is_priority_mode": self.is_priority_mode,
            "min_required_hours": round(self.min_required_hours, 2),
        }


def count_available_study_days(slots: list[dict[str, Any]], courses: list[dict[str, Any]]) -> int:
    """Count non-off slots on which at least one course can still be studied."""
    exam_dates = [course.get("exam_date") for course in courses]
    open_ended = any(not raw for raw in exam_dates)
    latest_exam = max((date.fromisoformat(str(raw)) for raw in exam_dates if raw), default=None)

    count = 0
    for slot in slots:
        if slot.get("is_day_off"):
            continue
        if open_ended or (latest_exam is not None and date.fromisoformat(str(slot["date"])) < latest_exam):
            count += 1
    return count


def analyze_feasibility(
    *,
    courses: list[dict[str, Any]],
    slots: list[dict[str, Any]],
    daily_study_hours: float,
    min_topic_hours: float = DEFAULT_ENGINE_CONFIG["min_topic_hours"],
) -> FeasibilityReport:
    """Compare required effort with available time and compress if short."""
    topics = [topic for course in courses for topic in course.get("topics", [])]

    study_days = count_available_study_days(slots, courses)
    required = sum(float(topic["estimated_hours"]) for topic in topics)
    available = study_days * float(daily_study_hours)
    coverage_ratio = min(1.0, available / required) if required > 0 else 1.0
    is_priority_mode = coverage_ratio < 1.0

    compressed: dict[str, float] = {}
    for topic in topics:
        hours = float(topic["estimated_hours"])
        compressed[str(topic["topic_id"])] = max(min_topic_hours, hours * coverage_ratio) if is_priority_mode else hours

    return FeasibilityReport(
        coverage_ratio=coverage_ratio,
        total_required_hours=required,
        total_available_hours=available,
        available_study_days=study_days,
        is_priority_mode=is_priority_mode,
        min_required_hours=len(topics) * min_topic_hours,
        compressed_hours=compressed,
    )

"""Course priority scoring and deterministic tie-breakers."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

DEFAULT_SCORE_WEIGHTS: dict[str, float] = {
    "w_urgency": 40.0,
    "w_workload": 25.0,
    "w_importance": 20.0,
    "w_difficulty": 10.0,
    "w_volume": 15.0,
}

# Urgency is 0.5 at ``midpoint_days`` and rises towards 1 as the exam nears.
DEFAULT_URGENCY_CURVE: dict[str, float] = {
    "steepness": 0.15,
    "midpoint_days": 10.0,
}

# Normalization references for the sub-scores.
REFERENCE_HOURS_PER_DAY = 3.0
REFERENCE_TOPIC_COUNT = 15.0

_NO_EXAM_DAYS = 10**9


def _to_date(value: str | date | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def days_until(exam_date: str | date | None, reference_day: str | date) -> int | None:
    """Whole days from ``reference_day`` to ``exam_date``; None without a date."""
    exam_day = _to_date(exam_date)
    if exam_day is None:
        return None
    ref_day = _to_date(reference_day)
    if ref_day is None:
        raise ValueError("reference_day is required")
    return (exam_day - ref_day).days


def urgency_score(days_until_exam: float, curve: dict[str, float] | None = None) -> float:
    """Logistic urgency in [0, 1]; 1 once the exam is due."""
    c = DEFAULT_URGENCY_CURVE if curve is None else {**DEFAULT_URGENCY_CURVE, **curve}
    if days_until_exam <= 0:
        return 1.0
    exponent = float(c["steepness"]) * (days_until_exam - float(c["midpoint_days"]))
    if exponent > 700:
        return 0.0
    return 1.0 / (1.0 + math.exp(exponent))


def compute_score(
    features: dict[str, float],
    weights: dict[str, float] | None = None,
) -> float:
    """Weighted sum of the priority sub-scores, floored at zero."""

    w = DEFAULT_SCORE_WEIGHTS if weights is None else {**DEFAULT_SCORE_WEIGHTS, **weights}
    urgency = float(features.get("urgency", 0.0))
    workload_density = float(features.get("workload_density", 0.0))
    importance = float(features.get("importance", 0.0))
    difficulty = float(features.get("difficulty", 0.0))
    volume = float(features.get("volume", 0.0))

    score = (
        float(w.get("w_urgency", 0.0)) * urgency
        + float(w.get("w_workload", 0.0)) * workload_density
        + float(w.get("w_importance", 0.0)) * importance
        + float(w.get("w_difficulty", 0.0)) * difficulty
        + float(w.get("w_volume", 0.0)) * volume
    )
    return max(0.0, score)


def course_priority_features(
    course: dict[str, Any],
    reference_day: str | date,
    curve: dict[str, float] | None = None,
) -> dict[str, float] | None:
    """Sub-scores for a course, or None when it carries no deadline pressure.

    - urgency = 1 / (1 + e^(k * (d - m)))
    - workload_density = min(1, (hours / d) / 3)
    - importance = (mean importance - 1) / 4
    - difficulty = (mean difficulty - 3) * 0.1, signed and unbounded
    - volume = min(1, topic count / 15)
    """
    d = days_until(course.get("exam_date"), reference_day)
    if d is None or d <= 0:
        return None

    pending = [topic for topic in course.get("topics", []) if topic.get("status") != "done"]
    if not pending:
        return None

    count = len(pending)
    total_hours = sum(float(topic.get("estimated_hours") or 1.0) for topic in pending)
    avg_difficulty = sum(float(topic.get("difficulty_weight") or 3) for topic in pending) / count
    avg_importance = sum(float(topic.get("exam_importance") or 3) for topic in pending) / count

    return {
        "urgency": urgency_score(d, curve),
        "workload_density": min(1.0, (total_hours / max(1, d)) / REFERENCE_HOURS_PER_DAY),
        "importance": (avg_importance - 1.0) / 4.0,
        "difficulty": (avg_difficulty - 3.0) * 0.1,
        "volume": min(1.0, count / REFERENCE_TOPIC_COUNT),
    }


def compute_course_priority(
    course: dict[str, Any],
    reference_day: str | date,
    weights: dict[str, float] | None = None,
    curve: dict[str, float] | None = None,
) -> float:
    """Priority score of a course; 0 without a future exam or pending topics."""
    features = course_priority_features(course, reference_day, curve)
    if features is None:
        return 0.0
    return compute_score(features, weights)


def deterministic_tie_breaker_key(
    course: dict[str, Any], *,
    reference_day: str | date,
) -> tuple[int, float, int]:
    """Return deterministic course order key for a given day.

    Order:
    1) nearest exam date (ascending), courses without exam date last
    2) higher priority score first
    3) position in the input snapshot
    """

    d = days_until(course.get("exam_date"), reference_day)
    days_to_exam = _NO_EXAM_DAYS if d is None else d
    priority = float(course.get("priority_score", 0.0))
    position = int(course.get("position", 0))
    return (days_to_exam, -priority, position)

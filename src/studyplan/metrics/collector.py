"""Schedule summaries and plan quality metrics."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from statistics import mean, pstdev
from typing import Any

# Share of the daily budget used on an average study day.
LIGHT_WORKLOAD_SHARE = 0.5
HEAVY_WORKLOAD_SHARE = 0.9

HIGH_URGENCY_DAYS = 7
MEDIUM_URGENCY_DAYS = 14


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def urgency_tier(days_left: int | None) -> str:
    if days_left is None:
        return "low"
    if days_left <= HIGH_URGENCY_DAYS:
        return "high"
    if days_left <= MEDIUM_URGENCY_DAYS:
        return "medium"
    return "low"


def classify_workload_intensity(avg_hours_per_study_day: float, daily_study_hours: float, is_priority_mode: bool) -> str:
    """light / moderate / heavy / overloaded, relative to the daily budget."""
    if avg_hours_per_study_day < daily_study_hours * LIGHT_WORKLOAD_SHARE:
        return "light"
    if avg_hours_per_study_day > daily_study_hours * HEAVY_WORKLOAD_SHARE:
        return "overloaded" if is_priority_mode else "heavy"
    return "moderate"


def compute_course_summaries(
    *,
    courses: list[dict[str, Any]],
    items: list[dict[str, Any]],
    scheduled_topic_ids: list[str],
    today: date,
    study_days_created: int,
) -> list[dict[str, Any]]:
    scheduled = set(scheduled_topic_ids)
    hours_by_course: dict[str, float] = defaultdict(float)
    items_by_course: dict[str, int] = defaultdict(int)
    for item in items:
        cid = str(item.get("course_id", ""))
        hours_by_course[cid] += float(item.get("hours", 0.0) or 0.0)
        items_by_course[cid] += 1

    summaries: list[dict[str, Any]] = []
    for course in courses:
        cid = str(course["course_id"])
        exam_date = course.get("exam_date")
        days_left = (date.fromisoformat(str(exam_date)) - today).days if exam_date else None
        topic_ids = [str(topic["topic_id"]) for topic in course["topics"]]
        done_in_plan = sum(1 for tid in topic_ids if tid in scheduled)
        hours = hours_by_course.get(cid, 0.0)
        if days_left is not None and days_left > 0:
            daily_hours = hours / min(days_left, study_days_created or 1)
        else:
            daily_hours = hours
        summaries.append(
            {
                "course_id": cid,
                "title": course.get("title", ""),
                "days_left": days_left,
                "active_topics": len(topic_ids),
                "remaining_topics": len(topic_ids) - done_in_plan,
                "topics_scheduled": done_in_plan,
                "items_scheduled": items_by_course.get(cid, 0),
                "hours_scheduled": round(hours, 2),
                "daily_hours": round(daily_hours, 1),
                "urgency": urgency_tier(days_left),
                "has_exam_date": bool(exam_date),
                "priority_score": round(float(course.get("priority_score", 0.0)), 4),
            }
        )
    return summaries


def summarize_schedule(
    *,
    courses: list[dict[str, Any]],
    items: list[dict[str, Any]],
    hours_by_date: dict[str, float],
    scheduled_topic_ids: list[str],
    today: date,
    daily_study_hours: float,
    is_priority_mode: bool,
) -> dict[str, Any]:
    """Summary figures reported with every generated plan."""
    topics_total = sum(len(course["topics"]) for course in courses)
    study_days_created = len(hours_by_date)
    total_hours = sum(hours_by_date.values())
    avg_hours = total_hours / study_days_created if study_days_created else 0.0

    estimated_completion_date = None
    if study_days_created > 0 and len(scheduled_topic_ids) == topics_total:
        estimated_completion_date = max(hours_by_date)

    course_summaries = compute_course_summaries(
        courses=courses,
        items=items,
        scheduled_topic_ids=scheduled_topic_ids,
        today=today,
        study_days_created=study_days_created,
    )

    return {
        "topics_scheduled": len(scheduled_topic_ids),
        "topics_total": topics_total,
        "study_days_created": study_days_created,
        "total_hours": round(total_hours, 2),
        "avg_hours_per_study_day": round(avg_hours, 1),
        "workload_intensity": classify_workload_intensity(avg_hours, daily_study_hours, is_priority_mode),
        "estimated_completion_date": estimated_completion_date,
        "course_summaries": course_summaries,
        "urgent_courses_count": sum(1 for summary in course_summaries if summary["urgency"] == "high"),
    }


def collect_metrics(result: dict[str, Any]) -> dict[str, Any]:
    """Compute normalized plan quality metrics with clamp in [0,1]."""
    items = [item for item in result.get("items", []) if isinstance(item, dict)]
    slots = [slot for slot in result.get("slots", []) if isinstance(slot, dict)]
    topic_hours = result.get("topic_hours", {}) if isinstance(result.get("topic_hours"), dict) else {}
    summary = result.get("summary", {}) if isinstance(result.get("summary"), dict) else {}

    used_by_day: dict[str, float] = defaultdict(float)
    courses_by_day: dict[str, set[str]] = defaultdict(set)
    for item in items:
        day = str(item.get("date", ""))
        used_by_day[day] += float(item.get("hours", 0.0) or 0.0)
        courses_by_day[day].add(str(item.get("course_id", "")))

    capacity = sum(float(slot.get("capacity_hours", 0.0) or 0.0) for slot in slots)
    used_total = sum(used_by_day.values())
    required_total = sum(float(hours) for hours in topic_hours.values())

    daily_hours = list(used_by_day.values())
    avg_daily = mean(daily_hours) if daily_hours else 0.0
    cv = (pstdev(daily_hours) / max(1e-9, avg_daily)) if len(daily_hours) > 1 else 0.0

    topics_total = int(summary.get("topics_total", 0) or 0)
    topics_scheduled = int(summary.get("topics_scheduled", 0) or 0)

    return {
        "utilization": _clamp01(used_total / capacity) if capacity > 0 else 0.0,
        "hours_coverage": _clamp01(used_total / required_total) if required_total > 0 else 1.0,
        "topic_coverage": _clamp01(topics_scheduled / topics_total) if topics_total > 0 else 1.0,
        "coverage_ratio": _clamp01(float(result.get("feasibility", {}).get("coverage_ratio", 1.0))),
        "cv": _clamp01(cv),
        "balance_score": _clamp01(1.0 - min(1.0, cv)),
        "avg_courses_per_study_day": round(mean(len(ids) for ids in courses_by_day.values()), 2) if courses_by_day else 0.0,
        "stability_score": _clamp01(float(result.get("stability_score", 1.0))),
        "plan_size": len(items),
    }

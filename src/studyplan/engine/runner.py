"""Planning engine runner."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from studyplan.metrics.collector import summarize_schedule
from studyplan.normalization.config_resolver import resolve_effective_config
from studyplan.normalization.request import normalize_courses
from studyplan.reporting.decision_trace import DecisionTraceCollector
from studyplan.reporting.warnings import build_terminal_suggestions, build_warnings_and_suggestions
from studyplan.validation.errors import PlanningInputError, ValidationReport

from .allocator import allocate_plan
from .dependency_sort import sort_topics_by_dependencies
from .feasibility import analyze_feasibility
from .replan import compute_reallocation_metrics, extract_previous_plan, read_replan_window, split_previous_plan
from .scoring import compute_course_priority
from .slot_builder import build_daily_slots, resolve_horizon_days

logger = logging.getLogger(__name__)


def _parse_today(raw: Any) -> date:
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str) and raw:
        return date.fromisoformat(raw)
    return datetime.now(timezone.utc).date()


def _extract_courses(payload: dict[str, Any], report: ValidationReport) -> list[dict[str, Any]]:
    root = payload.get("courses")
    items = root.get("courses") if isinstance(root, dict) else root
    if not isinstance(items, list):
        report.add_error(
            code="MALFORMED_SNAPSHOT",
            message="courses must be a list (or an object with a 'courses' list)",
            field_path="$.courses",
        )
        return []
    return [item for item in items if isinstance(item, dict)]


_NUMERIC_TOPIC_FIELDS = (
    ("estimated_hours", float),
    ("difficulty_weight", int),
    ("exam_importance", int),
    ("order_index", int),
)


def _converts(value: Any, convert: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        convert(value)
    except (TypeError, ValueError):
        return False
    return True


def _is_iso_date(raw: Any) -> bool:
    if isinstance(raw, date):
        return True
    try:
        datetime.strptime(str(raw), "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _check_snapshot_fields(courses: list[dict[str, Any]], report: ValidationReport) -> None:
    """Flag values the normalizer and the engine cannot convert."""
    for c_idx, course in enumerate(courses):
        exam_date = course.get("exam_date")
        if exam_date and not _is_iso_date(exam_date):
            report.add_error(
                code="INVALID_DATE_FORMAT",
                message=f"exam_date {exam_date!r} is not a YYYY-MM-DD date",
                field_path=f"$.courses[{c_idx}].exam_date",
            )
        topics = course.get("topics") or []
        if not isinstance(topics, list):
            report.add_error(
                code="MALFORMED_SNAPSHOT",
                message="topics must be a list",
                field_path=f"$.courses[{c_idx}].topics",
            )
            continue
        for t_idx, topic in enumerate(topics):
            if not isinstance(topic, dict):
                continue
            for name, convert in _NUMERIC_TOPIC_FIELDS:
                value = topic.get(name)
                if value is not None and not _converts(value, convert):
                    report.add_error(
                        code="INVALID_TYPE",
                        message=f"{name} must be a number, got {value!r}",
                        field_path=f"$.courses[{c_idx}].topics[{t_idx}].{name}",
                    )
            prerequisites = topic.get("prerequisite_ids")
            if prerequisites is not None and not isinstance(prerequisites, list):
                report.add_error(
                    code="INVALID_TYPE",
                    message="prerequisite_ids must be a list",
                    field_path=f"$.courses[{c_idx}].topics[{t_idx}].prerequisite_ids",
                )


def _check_inputs(payload: dict[str, Any]) -> list[dict[str, Any]]:
    report = ValidationReport()
    if not isinstance(payload.get("preferences"), dict):
        report.add_error(
            code="MISSING_PREFERENCES",
            message="student preferences are required",
            field_path="$.preferences",
            suggested_fix="Pass an object; an empty one applies the defaults.",
        )
    else:
        for name, convert in (("daily_study_hours", float), ("study_days_per_week", int)):
            value = payload["preferences"].get(name)
            if value is not None and not _converts(value, convert):
                report.add_error(
                    code="INVALID_TYPE",
                    message=f"{name} must be a number, got {value!r}",
                    field_path=f"$.preferences.{name}",
                )
    today = payload.get("today")
    if today and not _is_iso_date(today):
        report.add_error(
            code="INVALID_DATE_FORMAT",
            message=f"today {today!r} is not a YYYY-MM-DD date",
            field_path="$.today",
        )
    courses = _extract_courses(payload, report)
    _check_snapshot_fields(courses, report)
    if report.errors:
        raise PlanningInputError(report)
    return courses


def _empty_result(
    *,
    status_code: str,
    mode: str,
    today: date,
    previous: dict[str, Any],
    effective_config: dict[str, Any],
) -> dict[str, Any]:
    return {
        "status": "ok",
        "status_code": status_code,
        "mode": mode,
        "today": today.isoformat(),
        "plan_version": previous["plan_version"] + 1,
        "plan_days": [],
        "items": [],
        "slots": [],
        "courses": [],
        "topic_hours": {},
        "feasibility": {
            "coverage_ratio": 1.0,
            "coverage_percent": 100,
            "total_required_hours": 0.0,
            "total_available_hours": 0.0,
            "available_study_days": 0,
            "is_priority_mode": False,
            "min_required_hours": 0.0,
        },
        "summary": {
            "coverage_ratio": 1.0,
            "is_priority_mode": False,
            "has_circular_dependencies": False,
            "topics_scheduled": 0,
            "topics_total": 0,
            "horizon_start": None,
            "horizon_days": 0,
        },
        "diagnostics": {"course_summaries": [], "courses_without_exam_date": [], "cyclic_topic_ids": []},
        "warnings": [],
        "suggestions": build_terminal_suggestions(status_code),
        "scheduled_topic_ids": [],
        "remaining_hours_by_topic": {},
        "preserved_days": [],
        "preserved_items": [],
        "reallocated_ratio": 0.0,
        "stability_score": 1.0,
        "effective_config": effective_config,
        "decision_trace": [],
    }


def run_planner(payload: dict[str, Any]) -> dict[str, Any]:
    """Build a day-by-day study plan from preferences and a course snapshot.

    ``payload`` keys: ``preferences`` (required, may be empty), ``courses``
    (list or ``{"courses": [...]}``), optional ``effective_config``, ``today``,
    ``mode`` and ``previous_plan``. Raises ``PlanningInputError`` when the
    preferences or the course list are missing, or when a date or a numeric
    topic field cannot be read.
    """
    raw_courses = _check_inputs(payload)

    effective_config = payload.get("effective_config")
    if not isinstance(effective_config, dict):
        effective_config = resolve_effective_config(payload, ValidationReport())
    preferences = effective_config["preferences"]
    engine = effective_config["engine"]
    daily_study_hours = float(preferences["daily_study_hours"])

    today = _parse_today(payload.get("today"))
    mode = str(payload.get("mode") or "full")
    window = read_replan_window(mode, today)
    previous = extract_previous_plan(payload)

    active_count = sum(1 for course in raw_courses if str(course.get("status", "active")) == "active")
    courses = normalize_courses(raw_courses, engine)
    if not courses:
        status_code = "NO_ACTIVE_COURSES" if active_count == 0 else "ALL_COMPLETED"
        logger.info("Nothing to plan: %s", status_code)
        return _empty_result(
            status_code=status_code,
            mode=window.mode,
            today=today,
            previous=previous,
            effective_config=effective_config,
        )

    has_cycles = False
    cyclic_topic_ids: list[str] = []
    relaxed_edges: set[tuple[str, str]] = set()
    for position, course in enumerate(courses):
        order = sort_topics_by_dependencies(course["topics"])
        course["topics"] = order.topics
        has_cycles = has_cycles or order.has_cycles
        cyclic_topic_ids.extend(order.cyclic_topic_ids)
        relaxed_edges |= order.relaxed_edges
        course["priority_score"] = compute_course_priority(
            course,
            today,
            weights=engine.get("score_weights") or None,
            curve=engine.get("urgency_curve") or None,
        )
        course["position"] = position

    # Stable: equal scores keep snapshot order.
    courses.sort(key=lambda c: -float(c["priority_score"]))

    horizon_days = resolve_horizon_days(
        courses,
        today,
        default_days=int(engine["default_horizon_days"]),
        max_days=int(engine["max_horizon_days"]),
    )
    slots = build_daily_slots(
        start_date=today,
        horizon_days=horizon_days,
        daily_study_hours=daily_study_hours,
        days_off=preferences["days_off"],
    )
    logger.info("Planning horizon: %d days from %s", horizon_days, today.isoformat())

    feasibility = analyze_feasibility(
        courses=courses,
        slots=slots,
        daily_study_hours=daily_study_hours,
        min_topic_hours=float(engine["min_topic_hours"]),
    )
    logger.info(
        "Feasibility: required=%.2fh available=%.2fh coverage=%.2f priority_mode=%s",
        feasibility.total_required_hours,
        feasibility.total_available_hours,
        feasibility.coverage_ratio,
        feasibility.is_priority_mode,
    )

    decision_trace = DecisionTraceCollector(start_timestamp=datetime.now(timezone.utc))
    allocation = allocate_plan(
        slots=slots,
        courses=courses,
        topic_hours=feasibility.compressed_hours,
        daily_study_hours=daily_study_hours,
        relaxed_edges=relaxed_edges,
        day_stop_threshold=float(engine["day_stop_threshold_hours"]),
        complete_threshold=float(engine["topic_complete_threshold_hours"]),
        decision_trace=decision_trace,
    )
    items = allocation["items"]

    items_by_date: dict[str, list[dict[str, Any]]] = {}
    for item in items:
        items_by_date.setdefault(item["date"], []).append(item)
    plan_days = [
        {
            "date": slot["date"],
            "total_hours": round(allocation["hours_by_date"].get(slot["date"], 0.0), 2),
            "is_day_off": bool(slot["is_day_off"]),
            "items": items_by_date.get(slot["date"], []),
        }
        for slot in slots
    ]

    preserved_days, _ = split_previous_plan(previous["days"], window.from_date)
    preserved_items, replaced_items = split_previous_plan(previous["items"], window.from_date)
    stability = compute_reallocation_metrics(replaced_items, items)

    courses_without_exam_date = [str(course["course_id"]) for course in courses if not course.get("exam_date")]
    summary = summarize_schedule(
        courses=courses,
        items=items,
        hours_by_date=allocation["hours_by_date"],
        scheduled_topic_ids=allocation["scheduled_topic_ids"],
        today=today,
        daily_study_hours=daily_study_hours,
        is_priority_mode=feasibility.is_priority_mode,
    )
    warnings, suggestions = build_warnings_and_suggestions(
        feasibility=feasibility,
        has_cycles=has_cycles,
        cyclic_topic_ids=cyclic_topic_ids,
        courses_without_exam_date=courses_without_exam_date,
        summary=summary,
        daily_study_hours=daily_study_hours,
    )

    logger.info(
        "Generated %d items over %d study days (%d/%d topics)",
        len(items),
        summary["study_days_created"],
        summary["topics_scheduled"],
        summary["topics_total"],
    )

    return {
        "status": "ok",
        "status_code": "PLAN_GENERATED",
        "mode": window.mode,
        "today": today.isoformat(),
        "plan_version": previous["plan_version"] + 1,
        "plan_days": plan_days,
        "items": items,
        "slots": slots,
        "courses": courses,
        "topic_hours": feasibility.compressed_hours,
        "feasibility": feasibility.as_dict(),
        "summary": {
            "coverage_ratio": feasibility.coverage_ratio,
            "is_priority_mode": feasibility.is_priority_mode,
            "has_circular_dependencies": has_cycles,
            "topics_scheduled": summary["topics_scheduled"],
            "topics_total": summary["topics_total"],
            "horizon_start": today.isoformat(),
            "horizon_days": horizon_days,
        },
        "diagnostics": {
            **feasibility.as_dict(),
            **summary,
            "has_circular_dependencies": has_cycles,
            "cyclic_topic_ids": cyclic_topic_ids,
            "courses_without_exam_date": courses_without_exam_date,
        },
        "warnings": warnings,
        "suggestions": suggestions,
        "scheduled_topic_ids": allocation["scheduled_topic_ids"],
        "remaining_hours_by_topic": allocation["remaining_hours_by_topic"],
        "preserved_days": preserved_days,
        "preserved_items": preserved_items,
        "reallocated_ratio": stability["reallocated_ratio"],
        "stability_score": stability["stability_score"],
        "effective_config": effective_config,
        "decision_trace": decision_trace.as_list(),
    }

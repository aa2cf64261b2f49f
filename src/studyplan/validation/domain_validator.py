"""Domain-level cross-file validation rules."""

from __future__ import annotations

from typing import Any

from studyplan.normalization.config_resolver import normalize_weekday

from .errors import ValidationReport


def validate_domain_inputs(loaded_payload: dict[str, Any]) -> ValidationReport:
    """Validate cross-file coherence and non-schema rules."""
    report = ValidationReport()

    preferences = loaded_payload.get("preferences")
    if not isinstance(preferences, dict):
        report.add_error(
            code="MISSING_PREFERENCES",
            message="Student preferences are required to plan",
            field_path="$.preferences",
            suggested_fix="Provide a preferences object (an empty object applies defaults).",
        )
    else:
        _validate_days_off(preferences, report)

    courses_payload = loaded_payload.get("courses", {})
    courses = courses_payload.get("courses") if isinstance(courses_payload, dict) else None
    if not isinstance(courses, list):
        report.add_error(
            code="MALFORMED_SNAPSHOT",
            message="Course snapshot must contain a 'courses' list",
            field_path="$.courses.courses",
        )
        return report

    course_ids: set[str] = set()
    topic_owner: dict[str, str] = {}
    for idx, course in enumerate(courses):
        if not isinstance(course, dict):
            continue
        course_id = course.get("course_id")
        if isinstance(course_id, str):
            if course_id in course_ids:
                report.add_error(
                    code="DUPLICATE_COURSE_ID",
                    message=f"Duplicate course_id: {course_id}",
                    field_path=f"$.courses.courses[{idx}].course_id",
                )
            course_ids.add(course_id)

        for t_idx, topic in enumerate(course.get("topics") or []):
            if not isinstance(topic, dict):
                continue
            path = f"$.courses.courses[{idx}].topics[{t_idx}]"
            topic_id = topic.get("topic_id")
            if isinstance(topic_id, str):
                if topic_id in topic_owner:
                    report.add_error(
                        code="DUPLICATE_TOPIC_ID",
                        message=f"Duplicate topic_id: {topic_id}",
                        field_path=f"{path}.topic_id",
                    )
                else:
                    topic_owner[topic_id] = str(course_id)
            owner = topic.get("course_id")
            if owner is not None and owner != course_id:
                report.add_error(
                    code="TOPIC_COURSE_MISMATCH",
                    message=f"Topic {topic_id} declares course_id {owner!r} but belongs to {course_id!r}",
                    field_path=f"{path}.course_id",
                    suggested_fix="Move the topic under its course or fix its course_id.",
                )

    for idx, course in enumerate(courses):
        if not isinstance(course, dict):
            continue
        for t_idx, topic in enumerate(course.get("topics") or []):
            if isinstance(topic, dict):
                _validate_prerequisites(
                    topic,
                    str(course.get("course_id")),
                    topic_owner,
                    f"$.courses.courses[{idx}].topics[{t_idx}]",
                    report,
                )

    return report


def _validate_days_off(preferences: dict[str, Any], report: ValidationReport) -> None:
    days_off = preferences.get("days_off")
    if not isinstance(days_off, list):
        return

    resolved: set[str] = set()
    for idx, raw in enumerate(days_off):
        weekday = normalize_weekday(raw)
        if weekday is None:
            report.add_error(
                code="INVALID_WEEKDAY",
                message=f"Unknown weekday name: {raw!r}",
                field_path=f"$.preferences.days_off[{idx}]",
                suggested_fix="Use full (monday) or short (mon) English weekday names.",
            )
            continue
        resolved.add(weekday)

    if len(resolved) == 7:
        report.add_error(
            code="ALL_DAYS_OFF",
            message="Every weekday is marked as a day off; no study time is available",
            field_path="$.preferences.days_off",
            suggested_fix="Keep at least one study day per week.",
        )


def _validate_prerequisites(
    topic: dict[str, Any],
    course_id: str,
    topic_owner: dict[str, str],
    path: str,
    report: ValidationReport,
) -> None:
    topic_id = topic.get("topic_id")
    for p_idx, prereq in enumerate(topic.get("prerequisite_ids") or []):
        field_path = f"{path}.prerequisite_ids[{p_idx}]"
        if prereq == topic_id:
            report.add_info(
                code="INFO_SELF_PREREQUISITE",
                message=f"Topic {topic_id} lists itself as a prerequisite; ignored",
                field_path=field_path,
            )
        elif prereq not in topic_owner:
            report.add_info(
                code="INFO_UNKNOWN_PREREQUISITE",
                message=f"Prerequisite {prereq} is not in the snapshot; treated as satisfied",
                field_path=field_path,
            )
        elif topic_owner[prereq] != course_id:
            report.add_info(
                code="INFO_CROSS_COURSE_PREREQUISITE",
                message=f"Prerequisite {prereq} belongs to course {topic_owner[prereq]}",
                field_path=field_path,
                extra={"prerequisite_course_id": topic_owner[prereq]},
            )

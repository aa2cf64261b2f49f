"""Normalization for incoming request and snapshot payloads."""

from __future__ import annotations

from typing import Any

from .config_resolver import DEFAULT_ENGINE_CONFIG


def normalize_request(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a normalized copy of input request."""
    normalized = dict(payload)
    if "schema_version" not in normalized:
        normalized["schema_version"] = "1.0"
    if "mode" not in normalized:
        normalized["mode"] = "full"
    return normalized


def normalize_courses(
    courses: list[dict[str, Any]],
    engine_config: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Apply topic defaults and drop everything that cannot be studied.

    Archived courses, done topics and courses left without active topics are
    removed. Missing or zero numeric fields fall back to the engine defaults,
    and ``course_id`` on each topic is forced to the owning course.
    """
    cfg = {**DEFAULT_ENGINE_CONFIG, **(engine_config or {})}
    normalized: list[dict[str, Any]] = []

    for course in courses:
        if not isinstance(course, dict):
            continue
        if str(course.get("status", "active")) != "active":
            continue
        course_id = str(course.get("course_id", ""))
        topics: list[dict[str, Any]] = []
        for position, topic in enumerate(course.get("topics") or []):
            if not isinstance(topic, dict) or topic.get("status") == "done":
                continue
            prerequisites = topic.get("prerequisite_ids") or []
            topics.append(
                {
                    **topic,
                    "topic_id": str(topic.get("topic_id", "")),
                    "course_id": course_id,
                    "title": str(topic.get("title", "")),
                    "difficulty_weight": int(topic.get("difficulty_weight") or cfg["default_difficulty_weight"]),
                    "exam_importance": int(topic.get("exam_importance") or cfg["default_exam_importance"]),
                    "estimated_hours": float(topic.get("estimated_hours") or cfg["default_estimated_hours"]),
                    "prerequisite_ids": [str(item) for item in prerequisites],
                    "status": str(topic.get("status") or "not_started"),
                    "order_index": int(topic.get("order_index") or 0),
                    "position": position,
                }
            )
        if not topics:
            continue
        normalized.append(
            {
                "course_id": course_id,
                "title": str(course.get("title", "")),
                "exam_date": course.get("exam_date") or None,
                "topics": topics,
            }
        )

    return normalized

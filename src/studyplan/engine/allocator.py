"""Greedy day-by-day allocation of topics to study days.

For every study day the scheduler walks the open courses (nearest exam first)
and hands the cursor topic of each one as many hours as the day has left.
A topic is only eligible once all its prerequisites are fully scheduled, on
an earlier day or earlier the same day. The pass repeats until the day is
full, nothing is left, or a run of passes makes no progress.

Rules preserved:
- never schedule a topic on or after its course's exam date,
- never give a topic more than its (compressed) required hours,
- a course cursor only advances once its topic is fully allocated.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterable

from studyplan.normalization.config_resolver import DEFAULT_ENGINE_CONFIG
from studyplan.reporting.decision_trace import DecisionTraceCollector

from .scoring import deterministic_tie_breaker_key

logger = logging.getLogger(__name__)


def _to_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def effective_prerequisites(
    courses: list[dict[str, Any]],
    relaxed_edges: Iterable[tuple[str, str]] = (),
) -> dict[str, list[str]]:
    """Prerequisites the scheduler must wait for, per topic id.

    Dropped: ids that are not active topics (done or unknown), self
    references, duplicates, and cycle edges relaxed by the dependency sorter.
    Cross-course prerequisites are kept.
    """
    active_ids = {str(topic["topic_id"]) for course in courses for topic in course["topics"]}
    relaxed = set(relaxed_edges)

    result: dict[str, list[str]] = {}
    for course in courses:
        for topic in course["topics"]:
            topic_id = str(topic["topic_id"])
            waits: list[str] = []
            for prereq in topic.get("prerequisite_ids") or []:
                if prereq == topic_id or prereq not in active_ids or prereq in waits:
                    continue
                if (topic_id, prereq) in relaxed:
                    continue
                waits.append(prereq)
            result[topic_id] = waits
    return result


def _scheduled_item(*, day: date, topic_id: str, course_id: str, hours: float, order_index: int) -> dict[str, Any]:
    return {
        "date": day.isoformat(),
        "topic_id": topic_id,
        "course_id": course_id,
        "hours": round(hours, 2),
        "order_index": order_index,
        "is_review": False,
    }


def allocate_plan(
    *,
    slots: list[dict[str, Any]],
    courses: list[dict[str, Any]],
    topic_hours: dict[str, float],
    daily_study_hours: float,
    relaxed_edges: Iterable[tuple[str, str]] = (),
    day_stop_threshold: float = DEFAULT_ENGINE_CONFIG["day_stop_threshold_hours"],
    complete_threshold: float = DEFAULT_ENGINE_CONFIG["topic_complete_threshold_hours"],
    decision_trace: DecisionTraceCollector | None = None,
) -> dict[str, Any]:
    """Allocate topic hours to study days.

    ``courses`` must carry their topics already in dependency order, plus
    ``priority_score`` and ``position`` for the deterministic tie-break.
    ``topic_hours`` maps topic id to the hours it still needs.
    """

    ordered_slots = sorted(slots, key=lambda s: str(s.get("date", "")))
    waits_for = effective_prerequisites(courses, relaxed_edges)
    relaxed_topics = {dependent for dependent, _ in relaxed_edges}
    exam_day_by_course = {
        str(course["course_id"]): _to_date(course["exam_date"]) if course.get("exam_date") else None
        for course in courses
    }
    scores_by_course = {str(course["course_id"]): float(course.get("priority_score", 0.0)) for course in courses}

    remaining_by_topic: dict[str, float] = {
        str(topic["topic_id"]): float(topic_hours.get(str(topic["topic_id"]), topic["estimated_hours"]))
        for course in courses
        for topic in course["topics"]
    }
    cursors: dict[str, int] = {str(course["course_id"]): 0 for course in courses}
    total_topics = len(remaining_by_topic)
    max_stalled_passes = 2 * (len(courses) + 1)

    scheduled_before_today: set[str] = set()
    completion_order: list[str] = []
    items: list[dict[str, Any]] = []
    hours_by_date: dict[str, float] = {}

    for slot in ordered_slots:
        if len(scheduled_before_today) >= total_topics:
            break
        if slot.get("is_day_off"):
            continue

        day = _to_date(slot["date"])
        remaining_today = float(daily_study_hours)
        day_items: list[dict[str, Any]] = []
        scheduled_today: set[str] = set()
        stalled_passes = 0

        while remaining_today > day_stop_threshold and stalled_passes < max_stalled_passes:
            made_progress = False
            candidates = [
                course
                for course in courses
                if cursors[str(course["course_id"])] < len(course["topics"])
                and (exam_day_by_course[str(course["course_id"])] is None or day < exam_day_by_course[str(course["course_id"])])
            ]
            candidates.sort(key=lambda c: deterministic_tie_breaker_key(c, reference_day=day))
            if not candidates:
                break

            blocked: list[str] = []
            for course in candidates:
                if remaining_today <= day_stop_threshold:
                    break
                course_id = str(course["course_id"])
                topic = course["topics"][cursors[course_id]]
                topic_id = str(topic["topic_id"])

                pending = [p for p in waits_for[topic_id] if p not in scheduled_before_today and p not in scheduled_today]
                if pending:
                    blocked.append(topic_id)
                    continue

                topic_left = remaining_by_topic[topic_id]
                hours = min(topic_left, remaining_today)
                if hours <= 0:
                    continue

                day_items.append(
                    _scheduled_item(
                        day=day,
                        topic_id=topic_id,
                        course_id=course_id,
                        hours=hours,
                        order_index=len(day_items),
                    )
                )
                remaining_today -= hours
                remaining_by_topic[topic_id] = topic_left - hours
                completed = remaining_by_topic[topic_id] <= complete_threshold
                if completed:
                    scheduled_today.add(topic_id)
                    completion_order.append(topic_id)
                    cursors[course_id] += 1
                made_progress = True

                if decision_trace is not None:
                    applied_rules = ["RULE_DAYS_TO_EXAM_ORDER", "RULE_PREREQUISITES_MET"]
                    if any(p in scheduled_today for p in waits_for[topic_id]):
                        applied_rules.append("RULE_SAME_DAY_UNLOCK")
                    if not completed or topic_left < float(topic_hours.get(topic_id, topic_left)):
                        applied_rules.append("RULE_TOPIC_SPLIT")
                    if topic_id in relaxed_topics:
                        applied_rules.append("RULE_CYCLE_RELAXED")
                    decision_trace.record(
                        slot_id=str(slot.get("slot_id", f"slot-{day.isoformat()}")),
                        candidate_courses=[str(c["course_id"]) for c in candidates],
                        scores_by_course={str(c["course_id"]): scores_by_course[str(c["course_id"])] for c in candidates},
                        selected_course_id=course_id,
                        selected_topic_id=topic_id,
                        hours=hours,
                        applied_rules=applied_rules,
                        blocked_topics=blocked,
                        tradeoff_note=(
                            "Topic fully allocated." if completed else "Topic split: remaining hours carried to a later day."
                        ),
                    )

            stalled_passes = 0 if made_progress else stalled_passes + 1

        if day_items:
            hours_by_date[day.isoformat()] = float(daily_study_hours) - remaining_today
            items.extend(day_items)
        scheduled_before_today |= scheduled_today

    logger.debug(
        "Allocated %d items, %d/%d topics fully scheduled",
        len(items),
        len(scheduled_before_today),
        total_topics,
    )
    return {
        "items": items,
        "hours_by_date": hours_by_date,
        "scheduled_topic_ids": completion_order,
        "remaining_hours_by_topic": {tid: max(0.0, round(hours, 4)) for tid, hours in remaining_by_topic.items()},
    }

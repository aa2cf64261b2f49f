from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timezone

from studyplan.engine.allocator import allocate_plan, effective_prerequisites
from studyplan.engine.slot_builder import build_daily_slots
from studyplan.reporting.decision_trace import DecisionTraceCollector

TODAY = date(2026, 3, 2)


def _topic(topic_id: str, hours: float, prerequisites: list[str] | None = None) -> dict:
    return {"topic_id": topic_id, "estimated_hours": float(hours), "prerequisite_ids": prerequisites or []}


def _course(course_id: str, topics: list[dict], *, exam_date: str | None = None, priority: float = 0.0, position: int = 0) -> dict:
    return {
        "course_id": course_id,
        "exam_date": exam_date,
        "topics": topics,
        "priority_score": priority,
        "position": position,
    }


def _slots(days: int = 10, hours: float = 3.0, days_off: tuple[str, ...] = ()) -> list[dict]:
    return build_daily_slots(start_date=TODAY, horizon_days=days, daily_study_hours=hours, days_off=days_off)


def _hours(courses: list[dict]) -> dict[str, float]:
    return {topic["topic_id"]: topic["estimated_hours"] for course in courses for topic in course["topics"]}


def _run(courses: list[dict], *, days: int = 10, hours: float = 3.0, **kwargs) -> dict:
    return allocate_plan(
        slots=_slots(days=days, hours=hours, days_off=kwargs.pop("days_off", ())),
        courses=courses,
        topic_hours=kwargs.pop("topic_hours", None) or _hours(courses),
        daily_study_hours=hours,
        **kwargs,
    )


def test_prerequisite_completed_earlier_same_day_unlocks_dependent() -> None:
    courses = [_course("c1", [_topic("A", 1), _topic("B", 1, ["A"])])]
    trace = DecisionTraceCollector(start_timestamp=datetime(2026, 3, 2, tzinfo=timezone.utc))

    result = _run(courses, decision_trace=trace)

    assert [(item["date"], item["topic_id"], item["order_index"]) for item in result["items"]] == [
        ("2026-03-02", "A", 0),
        ("2026-03-02", "B", 1),
    ]
    assert result["scheduled_topic_ids"] == ["A", "B"]
    entry_b = next(entry for entry in trace.as_list() if entry["selected_topic_id"] == "B")
    assert "RULE_SAME_DAY_UNLOCK" in entry_b["applied_rules"]
    assert len(trace) == 2


def test_topic_split_across_days_until_complete() -> None:
    courses = [_course("c1", [_topic("T", 5)])]

    result = _run(courses, hours=2.0)

    assert [(item["date"], item["hours"]) for item in result["items"]] == [
        ("2026-03-02", 2.0),
        ("2026-03-03", 2.0),
        ("2026-03-04", 1.0),
    ]
    assert result["hours_by_date"]["2026-03-04"] == 1.0
    assert result["remaining_hours_by_topic"] == {"T": 0.0}


def test_nothing_scheduled_on_or_after_exam_date() -> None:
    courses = [_course("c1", [_topic("T", 10)], exam_date="2026-03-04")]

    result = _run(courses)

    assert {item["date"] for item in result["items"]} == {"2026-03-02", "2026-03-03"}
    assert result["scheduled_topic_ids"] == []
    assert result["remaining_hours_by_topic"]["T"] == 4.0


def test_days_off_are_skipped() -> None:
    courses = [_course("c1", [_topic("T", 15)])]

    result = _run(courses, days=7, days_off=("tuesday",))

    assert "2026-03-03" not in {item["date"] for item in result["items"]}
    assert len(result["hours_by_date"]) == 5


def test_nearest_exam_course_goes_first_each_day() -> None:
    courses = [
        _course("late", [_topic("L1", 2)], exam_date="2026-03-20", priority=90, position=0),
        _course("soon", [_topic("S1", 2)], exam_date="2026-03-05", priority=10, position=1),
    ]

    result = _run(courses)

    assert [(item["date"], item["topic_id"], item["hours"]) for item in result["items"]] == [
        ("2026-03-02", "S1", 2.0),
        ("2026-03-02", "L1", 1.0),
        ("2026-03-03", "L1", 1.0),
    ]


def test_cross_course_prerequisite_blocks_until_scheduled() -> None:
    courses = [
        _course("x", [_topic("X1", 1, ["Y1"])], exam_date="2026-03-05", position=0),
        _course("y", [_topic("Y1", 1)], exam_date="2026-03-12", position=1),
    ]

    result = _run(courses)

    assert [(item["topic_id"], item["order_index"]) for item in result["items"]] == [("Y1", 0), ("X1", 1)]


def test_unsatisfiable_prerequisite_stalls_without_looping_forever() -> None:
    courses = [
        _course("x", [_topic("X1", 3)], exam_date="2026-03-03", position=0),
        _course("y", [_topic("Y1", 1, ["X1"])], position=1),
    ]

    result = _run(courses, hours=2.0)

    assert [(item["date"], item["topic_id"], item["hours"]) for item in result["items"]] == [("2026-03-02", "X1", 2.0)]
    assert result["remaining_hours_by_topic"] == {"X1": 1.0, "Y1": 1.0}


def test_relaxed_cycle_edges_are_not_waited_on() -> None:
    courses = [_course("c1", [_topic("A", 1, ["B"]), _topic("B", 1, ["A"])])]

    assert effective_prerequisites(courses, {("A", "B")}) == {"A": [], "B": ["A"]}

    result = _run(courses, relaxed_edges={("A", "B")})
    assert result["scheduled_topic_ids"] == ["A", "B"]

    stuck = _run(courses)
    assert stuck["items"] == []


def test_done_unknown_and_self_prerequisites_are_satisfied() -> None:
    courses = [_course("c1", [_topic("A", 1, ["A", "already-done"])])]

    assert effective_prerequisites(courses) == {"A": []}
    assert _run(courses)["scheduled_topic_ids"] == ["A"]


def test_daily_budget_and_topic_cap_hold() -> None:
    courses = [
        _course("a", [_topic("a1", 2.5), _topic("a2", 1.25, ["a1"])], exam_date="2026-03-09", position=0),
        _course("b", [_topic("b1", 4), _topic("b2", 0.5)], exam_date="2026-03-06", position=1),
        _course("c", [_topic("c1", 3)], position=2),
    ]

    result = _run(courses, hours=2.5)

    per_day: dict[str, float] = defaultdict(float)
    per_topic: dict[str, float] = defaultdict(float)
    for item in result["items"]:
        per_day[item["date"]] += item["hours"]
        per_topic[item["topic_id"]] += item["hours"]

    assert all(hours <= 2.5 + 0.25 for hours in per_day.values())
    assert all(per_topic[tid] <= hours + 1e-9 for tid, hours in _hours(courses).items())
    assert sorted(result["scheduled_topic_ids"]) == ["a1", "a2", "b1", "b2", "c1"]

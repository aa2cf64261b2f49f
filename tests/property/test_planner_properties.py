from __future__ import annotations

import random
from collections import defaultdict
from copy import deepcopy
from datetime import date, timedelta

import pytest

from studyplan.engine import run_planner
from studyplan.metrics import collect_metrics
from studyplan.normalization import resolve_effective_config
from studyplan.normalization.config_resolver import WEEKDAY_NAMES
from studyplan.validation import ValidationReport, validate_domain_inputs

TODAY = date(2026, 3, 2)
SEEDS = list(range(30))


def _payload(seed: int) -> dict:
    """Random acyclic snapshot: prerequisites always point to earlier topics."""
    rng = random.Random(seed)
    courses = []
    for c_idx in range(rng.randint(1, 4)):
        course_id = f"c{c_idx}"
        topics = []
        for t_idx in range(rng.randint(1, 7)):
            earlier = [topic["topic_id"] for topic in topics]
            topics.append(
                {
                    "topic_id": f"{course_id}-t{t_idx}",
                    "estimated_hours": rng.choice([0.5, 1, 1.5, 2, 3, 4, 6]),
                    "difficulty_weight": rng.randint(1, 5),
                    "exam_importance": rng.randint(1, 5),
                    "order_index": rng.randint(0, 5),
                    "status": "done" if rng.random() < 0.1 else "not_started",
                    "prerequisite_ids": rng.sample(earlier, k=min(len(earlier), rng.randint(0, 2))),
                }
            )
        exam_date = None if rng.random() < 0.2 else (TODAY + timedelta(days=rng.randint(1, 60))).isoformat()
        courses.append({"course_id": course_id, "exam_date": exam_date, "topics": topics})

    loaded = {
        "today": TODAY.isoformat(),
        "preferences": {
            "daily_study_hours": rng.choice([1, 1.5, 2, 3, 4]),
            "days_off": rng.sample(list(WEEKDAY_NAMES), k=rng.randint(0, 2)),
        },
        "courses": {"courses": courses},
    }
    loaded["effective_config"] = resolve_effective_config(loaded, ValidationReport())
    return loaded


def _topics_by_id(payload: dict) -> dict[str, dict]:
    return {topic["topic_id"]: topic for course in payload["courses"]["courses"] for topic in course["topics"]}


def test_generated_snapshots_are_valid() -> None:
    for seed in SEEDS:
        assert validate_domain_inputs(_payload(seed)).errors == []


def test_determinism_same_input_same_output() -> None:
    for seed in SEEDS:
        payload = _payload(seed)
        result1 = run_planner(deepcopy(payload))
        result2 = run_planner(deepcopy(payload))
        assert result1["items"] == result2["items"]
        assert result1["plan_days"] == result2["plan_days"]
        assert result1["warnings"] == result2["warnings"]


@pytest.mark.parametrize("seed", SEEDS)
def test_hard_constraints_hold(seed: int) -> None:
    payload = _payload(seed)
    result = run_planner(payload)
    budget = float(payload["effective_config"]["preferences"]["daily_study_hours"])
    exam_by_course = {c["course_id"]: c["exam_date"] for c in payload["courses"]["courses"]}
    done = {tid for tid, topic in _topics_by_id(payload).items() if topic["status"] == "done"}

    by_day: dict[str, float] = defaultdict(float)
    by_topic: dict[str, float] = defaultdict(float)
    items_by_topic: dict[str, int] = defaultdict(int)
    for item in result["items"]:
        by_day[item["date"]] += item["hours"]
        by_topic[item["topic_id"]] += item["hours"]
        items_by_topic[item["topic_id"]] += 1
        assert item["hours"] > 0
        assert item["topic_id"] not in done
        exam = exam_by_course[item["course_id"]]
        assert exam is None or item["date"] < exam

    off = set(payload["effective_config"]["preferences"]["days_off"])
    for day in result["plan_days"]:
        if day["is_day_off"]:
            assert day["items"] == []
            assert WEEKDAY_NAMES[date.fromisoformat(day["date"]).weekday()] in off

    assert all(hours <= budget + 0.25 for hours in by_day.values())
    for topic_id, hours in by_topic.items():
        assert hours <= result["topic_hours"][topic_id] + 0.01 * items_by_topic[topic_id]

    assert len(result["scheduled_topic_ids"]) == len(set(result["scheduled_topic_ids"]))


@pytest.mark.parametrize("seed", SEEDS)
def test_prerequisites_precede_dependents(seed: int) -> None:
    payload = _payload(seed)
    result = run_planner(payload)
    topics = _topics_by_id(payload)
    scheduled = set(result["scheduled_topic_ids"])

    first: dict[str, tuple[str, int]] = {}
    last: dict[str, tuple[str, int]] = {}
    for item in result["items"]:
        key = (item["date"], item["order_index"])
        first.setdefault(item["topic_id"], key)
        last[item["topic_id"]] = key

    for topic_id, start in first.items():
        for prereq in topics[topic_id]["prerequisite_ids"]:
            if topics[prereq]["status"] == "done":
                continue
            assert prereq in scheduled
            assert last[prereq] < start


def test_metrics_are_clipped_in_0_1() -> None:
    for seed in SEEDS:
        metrics = collect_metrics(run_planner(_payload(seed)))
        for key, value in metrics.items():
            if isinstance(value, float) and key != "avg_courses_per_study_day":
                assert 0.0 <= value <= 1.0


def test_coverage_matches_priority_mode() -> None:
    for seed in SEEDS:
        result = run_planner(_payload(seed))
        if result["status_code"] != "PLAN_GENERATED":
            continue
        feasibility = result["feasibility"]
        assert 0.0 <= feasibility["coverage_ratio"] <= 1.0
        assert feasibility["is_priority_mode"] == (feasibility["coverage_ratio"] < 1.0)
        codes = {w["code"] for w in result["warnings"]}
        assert ("WARN_TIME_COMPRESSED" in codes) == feasibility["is_priority_mode"]

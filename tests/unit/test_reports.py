from __future__ import annotations

from datetime import datetime, timedelta, timezone

from studyplan.reporting import build_error_report, build_error_report_with_validation, build_success_report
from studyplan.reporting.decision_trace import DecisionTraceCollector
from studyplan.reporting.reports import build_plan_output
from studyplan.validation import ValidationError, ValidationReport, validate_plan_output_with_schema


def _result() -> dict:
    item = {"date": "2026-03-02", "topic_id": "t1", "course_id": "c1", "hours": 1.5, "order_index": 0, "is_review": False}
    return {
        "status": "ok",
        "status_code": "PLAN_GENERATED",
        "mode": "full",
        "plan_version": 3,
        "plan_days": [
            {"date": "2026-03-02", "total_hours": 1.5, "is_day_off": False, "items": [item]},
            {"date": "2026-03-03", "total_hours": 0.0, "is_day_off": True, "items": []},
        ],
        "items": [item],
        "slots": [{"slot_id": "slot-2026-03-02"}],
        "courses": [{"course_id": "c1"}],
        "topic_hours": {"t1": 1.5},
        "summary": {
            "coverage_ratio": 1.0,
            "is_priority_mode": False,
            "has_circular_dependencies": False,
            "topics_scheduled": 1,
            "topics_total": 1,
            "horizon_start": "2026-03-02",
            "horizon_days": 2,
        },
        "warnings": [],
        "suggestions": [],
        "decision_trace": [],
        "effective_config": {},
    }


def test_error_report_shape() -> None:
    errors = [ValidationError(code="missing_field", message="Missing required field: courses_path", path="$.courses_path")]

    payload = build_error_report(errors)

    assert payload["status"] == "error"
    assert payload["error"] == {
        "code": "validation_error",
        "count": 1,
        "details": [{"code": "missing_field", "message": "Missing required field: courses_path", "path": "$.courses_path"}],
    }

    report = ValidationReport()
    report.add_error(code="ALL_DAYS_OFF", message="no study day", field_path="$.preferences.days_off")
    with_validation = build_error_report_with_validation([issue.as_error() for issue in report.errors], report)
    assert with_validation["validation_report"]["errors"][0]["code"] == "ALL_DAYS_OFF"


def test_success_report_keeps_internal_data_out_of_result() -> None:
    payload = build_success_report(_result(), {"utilization": 0.5}, ValidationReport())

    assert payload["status"] == "ok"
    assert "slots" not in payload["result"]
    assert "courses" not in payload["result"]
    assert payload["result"]["plan_days"][0]["items"][0]["topic_id"] == "t1"
    assert payload["plan_output"]["metrics"] == {"utilization": 0.5}
    assert validate_plan_output_with_schema(payload["plan_output"]).errors == []


def test_plan_output_identity_fields() -> None:
    output = build_plan_output(
        _result(),
        {},
        ValidationReport(),
        generated_at=datetime(2026, 3, 2, 7, 30, tzinfo=timezone.utc),
    )

    assert output["generated_at"] == "2026-03-02T07:30:00Z"
    assert output["plan_id"] == "plan-20260302-073000-v3"
    assert output["status_code"] == "PLAN_GENERATED"
    assert output["daily_plan"][1]["is_day_off"] is True


def test_plan_output_schema_rejects_bad_items() -> None:
    output = build_plan_output(_result(), {}, ValidationReport())
    output["daily_plan"][0]["items"][0]["hours"] = 0
    del output["plan_summary"]["topics_total"]

    codes = {err.code for err in validate_plan_output_with_schema(output).errors}

    assert codes == {"OUT_OF_RANGE", "MISSING_REQUIRED_FIELD"}


def test_decision_trace_is_sequenced() -> None:
    start = datetime(2026, 3, 2, 8, 0, 0)
    trace = DecisionTraceCollector(start_timestamp=start)
    for topic_id in ("t2", "t1"):
        trace.record(
            slot_id="slot-2026-03-02",
            candidate_courses=["c2", "c1"],
            scores_by_course={"c2": 1.23456, "c1": 7},
            selected_course_id="c1",
            selected_topic_id=topic_id,
            hours=1.005,
            applied_rules=["RULE_DAYS_TO_EXAM_ORDER"],
            blocked_topics=["z", "a"],
            tradeoff_note="Topic fully allocated.",
        )

    entries = trace.as_list()
    assert [entry["decision_id"] for entry in entries] == ["d-000001", "d-000002"]
    assert [entry["selected_topic_id"] for entry in entries] == ["t2", "t1"]
    assert entries[0]["timestamp"] == (start + timedelta(seconds=1)).isoformat() + "Z"
    assert entries[0]["candidate_courses"] == ["c2", "c1"]
    assert list(entries[0]["scores_by_course"]) == ["c1", "c2"]
    assert entries[0]["blocked_topics"] == ["a", "z"]

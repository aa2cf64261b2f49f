from __future__ import annotations

import json
from pathlib import Path

import pytest

from studyplan import cli
from studyplan.cli import main, run_plan_command
from studyplan.store import PlanStore
from studyplan.validation import ValidationReport, validate_plan_output_with_schema


def _write(path: Path, payload: dict) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


def _courses() -> dict:
    return {
        "schema_version": "1.0",
        "courses": [
            {
                "course_id": "math",
                "title": "Calculus",
                "exam_date": "2026-03-12",
                "topics": [
                    {"topic_id": "m1", "title": "Limits", "estimated_hours": 2, "order_index": 0},
                    {"topic_id": "m2", "title": "Derivatives", "estimated_hours": 3, "prerequisite_ids": ["m1"], "order_index": 1},
                    {"topic_id": "m3", "title": "Integrals", "estimated_hours": 3, "prerequisite_ids": ["m2"], "order_index": 2},
                ],
            },
            {
                "course_id": "hist",
                "title": "History",
                "exam_date": None,
                "topics": [{"topic_id": "h1", "title": "Rome", "estimated_hours": 1.5}],
            },
        ],
    }


def _base_files(tmp_path: Path, **request_extra: object) -> Path:
    request = tmp_path / "plan_request.json"
    preferences = tmp_path / "preferences.json"
    courses = tmp_path / "courses.json"

    _write(preferences, {"schema_version": "1.0", "daily_study_hours": 2, "study_days_per_week": 5})
    _write(courses, _courses())
    _write(
        request,
        {
            "schema_version": "1.0",
            "request_id": "req-1",
            "student_id": "stu-1",
            "today": "2026-03-02",
            "preferences_path": preferences.name,
            "courses_path": courses.name,
            **request_extra,
        },
    )
    return request


def _run(request: Path) -> tuple[int, dict]:
    output = request.parent / "plan_output.json"
    code = run_plan_command(str(request), str(output))
    return code, json.loads(output.read_text(encoding="utf-8"))


def test_end_to_end_pipeline_plan_request_to_plan_output(tmp_path: Path) -> None:
    code, payload = _run(_base_files(tmp_path))

    assert code == 0
    assert payload["status"] == "ok"
    plan_output = payload["plan_output"]
    assert validate_plan_output_with_schema(plan_output).errors == []
    assert plan_output["status_code"] == "PLAN_GENERATED"
    assert plan_output["plan_summary"]["horizon_days"] == 30
    assert len(plan_output["daily_plan"]) == 30
    assert [info["code"] for info in plan_output["validation_report"]["infos"]] == ["INFO_DAYS_OFF_DERIVED"]

    scheduled = [item["topic_id"] for day in plan_output["daily_plan"] for item in day["items"]]
    assert scheduled.index("m1") < scheduled.index("m2") < scheduled.index("m3")
    assert "h1" in scheduled
    for day in plan_output["daily_plan"]:
        if day["is_day_off"]:
            assert day["items"] == []
        assert day["total_hours"] <= 2.0
    assert {w["code"] for w in plan_output["warnings"]} == {"WARN_COURSES_WITHOUT_EXAM_DATE"}
    assert plan_output["decision_trace"]
    assert payload["result"]["diagnostics"]["estimated_completion_date"] is not None


def test_plan_store_versions_and_recreate_mode(tmp_path: Path) -> None:
    request = _base_files(tmp_path, plan_store_path="plans.json")

    code, first = _run(request)
    assert code == 0
    assert first["result"]["plan_version"] == 1

    payload = json.loads(request.read_text(encoding="utf-8"))
    payload.update({"mode": "recreate", "today": "2026-03-04"})
    _write(request, payload)

    code, second = _run(request)
    assert code == 0
    assert second["result"]["plan_version"] == 2
    assert second["result"]["mode"] == "recreate"
    assert 0.0 <= second["metrics"]["stability_score"] <= 1.0

    stored = PlanStore(tmp_path / "plans.json").load("stu-1")
    assert stored["plan_version"] == 2
    assert {item["date"] for item in stored["items"] if item["date"] < "2026-03-04"} == {"2026-03-02", "2026-03-03"}
    assert not PlanStore(tmp_path / "plans.json").lock_path("stu-1").exists()


def test_validation_errors_exit_2_with_aggregated_report(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    _write(tmp_path / "preferences.json", {"days_off": ["mon", "tue", "wed", "thu", "fri", "sat", "sun"], "mood": "ok"})

    code, payload = _run(request)

    assert code == 2
    assert payload["status"] == "error"
    assert payload["error"]["code"] == "validation_error"
    codes = {detail["code"] for detail in payload["error"]["details"]}
    assert codes == {"ALL_DAYS_OFF", "UNKNOWN_FIELD"}


def test_missing_referenced_file_is_input_load_error(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    (tmp_path / "courses.json").unlink()

    code, payload = _run(request)

    assert code == 2
    assert payload["error"]["code"] == "input_load_error"
    assert payload["error"]["details"][0]["path"] == "$.courses_path"


def test_invalid_request_is_rejected_before_loading(tmp_path: Path) -> None:
    request = tmp_path / "plan_request.json"
    _write(request, {"preferences_path": "p.json", "courses_path": "c.json", "mode": "merge"})

    code, payload = _run(request)

    assert code == 2
    assert {detail["path"] for detail in payload["error"]["details"]} == {"$.student_id", "$.mode"}


def test_unreadable_request_file(tmp_path: Path) -> None:
    request = tmp_path / "plan_request.json"
    request.write_text("[1, 2", encoding="utf-8")

    code, payload = _run(request)

    assert code == 2
    assert payload["error"]["code"] == "request_read_error"


def test_plan_in_progress_exits_3(tmp_path: Path) -> None:
    request = _base_files(tmp_path, plan_store_path="plans.json")
    lock = PlanStore(tmp_path / "plans.json").lock_path("stu-1")
    lock.write_text("123", encoding="utf-8")

    code, payload = _run(request)

    assert code == 3
    assert payload["error"]["code"] == "plan_in_progress"
    assert payload["error"]["retryable"] is True
    assert not (tmp_path / "plans.json").exists()


def test_all_completed_is_a_successful_empty_plan(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    courses = _courses()
    for course in courses["courses"]:
        for topic in course["topics"]:
            topic["status"] = "done"
    _write(tmp_path / "courses.json", courses)

    code, payload = _run(request)

    assert code == 0
    assert payload["plan_output"]["status_code"] == "ALL_COMPLETED"
    assert payload["plan_output"]["daily_plan"] == []
    assert validate_plan_output_with_schema(payload["plan_output"]).errors == []


def test_main_entrypoint_with_log_level(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    output = tmp_path / "out.json"

    code = main(["plan", "--request", str(request), "--output", str(output), "--log-level", "debug"])

    assert code == 0
    assert json.loads(output.read_text(encoding="utf-8"))["status"] == "ok"


def test_plan_output_failing_its_schema_is_not_persisted(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def reject(plan_output: dict) -> ValidationReport:
        report = ValidationReport()
        report.add_error(code="INVALID_TYPE", message="bad", field_path="$.plan_output.daily_plan")
        return report

    monkeypatch.setattr(cli, "validate_plan_output_with_schema", reject)
    request = _base_files(tmp_path, plan_store_path="plans.json")

    code, payload = _run(request)

    assert code == cli.EXIT_INTERNAL_ERROR
    assert payload["error"]["code"] == "invalid_plan_output"
    assert not (tmp_path / "plans.json").exists()
    assert not PlanStore(tmp_path / "plans.json").lock_path("stu-1").exists()

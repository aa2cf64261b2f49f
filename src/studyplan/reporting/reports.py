"""Build CLI reports."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from studyplan.validation import ValidationError, ValidationReport

PLAN_OUTPUT_SCHEMA_VERSION = "1.0.0"

# Heavy intermediate data kept out of the "result" block of the report.
_INTERNAL_RESULT_KEYS = ("slots", "courses", "topic_hours", "effective_config", "decision_trace")


def build_error_report(errors: list[ValidationError], code: str = "validation_error") -> dict[str, Any]:
    """Return a JSON-serializable error report."""
    return {
        "status": "error",
        "error": {
            "code": code,
            "count": len(errors),
            "details": [
                {"code": err.code, "message": err.message, "path": err.path}
                for err in errors
            ],
        },
    }


def build_error_report_with_validation(
    errors: list[ValidationError],
    validation_report: ValidationReport,
    code: str = "validation_error",
) -> dict[str, Any]:
    payload = build_error_report(errors, code=code)
    payload["validation_report"] = validation_report.as_dict()
    return payload


def build_plan_output(
    result: dict[str, Any],
    metrics: dict[str, Any],
    validation_report: ValidationReport,
    *,
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    """Assemble the plan_output contract block."""
    moment = (generated_at or datetime.now(timezone.utc)).astimezone(timezone.utc)
    generated = moment.isoformat(timespec="seconds").replace("+00:00", "Z")
    plan_id = f"plan-{moment.strftime('%Y%m%d-%H%M%S')}-v{int(result.get('plan_version', 1))}"
    return {
        "schema_version": PLAN_OUTPUT_SCHEMA_VERSION,
        "plan_id": plan_id,
        "generated_at": generated,
        "status_code": result.get("status_code", "PLAN_GENERATED"),
        "plan_version": result.get("plan_version", 1),
        "mode": result.get("mode", "full"),
        "plan_summary": result.get("summary", {}),
        "daily_plan": result.get("plan_days", []),
        "diagnostics": result.get("diagnostics", {}),
        "metrics": metrics,
        "warnings": result.get("warnings", []),
        "suggestions": result.get("suggestions", []),
        "decision_trace": result.get("decision_trace", []),
        "effective_config": result.get("effective_config", {}),
        "validation_report": validation_report.as_dict(),
    }


def build_success_report(
    result: dict[str, Any], metrics: dict[str, Any], validation_report: ValidationReport
) -> dict[str, Any]:
    """Return a JSON-serializable success report."""
    return {
        "status": "ok",
        "result": {key: value for key, value in result.items() if key not in _INTERNAL_RESULT_KEYS},
        "metrics": metrics,
        "plan_output": build_plan_output(result, metrics, validation_report),
    }

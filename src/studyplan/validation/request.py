"""Validation for plan request payload."""

from __future__ import annotations

from datetime import date
from typing import Any

from .errors import ValidationError

PLAN_MODES = ("full", "recreate")

_REQUIRED_PATH_FIELDS = (
    "preferences_path",
    "courses_path",
)

_OPTIONAL_PATH_FIELDS = ("plan_store_path",)


def validate_plan_request(payload: dict[str, Any]) -> list[ValidationError]:
    """Validate plan_request with basic shape checks."""
    errors: list[ValidationError] = []

    for field in _REQUIRED_PATH_FIELDS:
        value = payload.get(field)
        if value is None:
            errors.append(
                ValidationError(
                    code="missing_field",
                    message=f"Missing required field: {field}",
                    path=f"$.{field}",
                )
            )
        elif not _is_path(value):
            errors.append(_invalid_path(field))

    for field in _OPTIONAL_PATH_FIELDS:
        value = payload.get(field)
        if value is not None and not _is_path(value):
            errors.append(_invalid_path(field))

    student_id = payload.get("student_id")
    if not isinstance(student_id, str) or not student_id.strip():
        errors.append(
            ValidationError(
                code="missing_field",
                message="Field student_id must be a non-empty string",
                path="$.student_id",
            )
        )

    mode = payload.get("mode", "full")
    if mode not in PLAN_MODES:
        errors.append(
            ValidationError(
                code="invalid_mode",
                message=f"mode must be one of: {', '.join(PLAN_MODES)}",
                path="$.mode",
            )
        )

    today = payload.get("today")
    if today is not None:
        try:
            date.fromisoformat(str(today))
        except ValueError:
            errors.append(
                ValidationError(
                    code="invalid_date",
                    message=f"today must be an ISO date, got {today!r}",
                    path="$.today",
                )
            )

    return errors


def _is_path(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _invalid_path(field: str) -> ValidationError:
    return ValidationError(
        code="invalid_type",
        message=f"Field must be a non-empty string path: {field}",
        path=f"$.{field}",
    )

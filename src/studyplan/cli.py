"""CLI entrypoint for studyplan."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any

from studyplan.engine import run_planner
from studyplan.io import read_json, write_json
from studyplan.logging_config import configure_logging
from studyplan.metrics import collect_metrics
from studyplan.normalization import normalize_request, resolve_effective_config
from studyplan.reporting import (
    build_error_report,
    build_error_report_with_validation,
    build_success_report,
)
from studyplan.store import PlanInProgressError, PlanPersistenceError, PlanStore
from studyplan.validation import (
    PlanningInputError,
    ValidationError,
    ValidationReport,
    validate_domain_inputs,
    validate_inputs_with_schema,
    validate_plan_output_with_schema,
    validate_plan_request,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INTERNAL_ERROR = 1
EXIT_INVALID_INPUT = 2
EXIT_PERSISTENCE = 3


def _resolve_input_path(request_file: Path, value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return (request_file.parent / path).resolve()


def _load_referenced_inputs(request_file: Path, request: dict[str, Any]) -> tuple[dict[str, Any], list[ValidationError]]:
    loaded = dict(request)
    errors: list[ValidationError] = []

    mapping = {
        "preferences_path": "preferences",
        "courses_path": "courses",
    }

    for path_field, target_field in mapping.items():
        resolved = _resolve_input_path(request_file, request[path_field])
        try:
            loaded[target_field] = read_json(resolved)
        except FileNotFoundError:
            errors.append(
                ValidationError(
                    code="file_not_found",
                    message=f"Referenced file not found: {resolved}",
                    path=f"$.{path_field}",
                )
            )
        except ValueError as exc:
            errors.append(
                ValidationError(
                    code="invalid_json",
                    message=str(exc),
                    path=f"$.{path_field}",
                )
            )

    return loaded, errors


def _issues_as_errors(report: ValidationReport) -> list[ValidationError]:
    return [issue.as_error() for issue in report.errors]


def _persistence_error(code: str, message: str, *, retryable: bool) -> dict[str, Any]:
    payload = build_error_report(
        [ValidationError(code=code, message=message, path="$.plan_store_path")],
        code=code,
    )
    payload["error"]["retryable"] = retryable
    return payload


def _build_output(result: dict[str, Any], validation_report: ValidationReport) -> tuple[dict[str, Any], ValidationReport]:
    """Success payload plus the schema check of its plan_output; nothing is written."""
    payload = build_success_report(result, collect_metrics(result), validation_report)
    return payload, validate_plan_output_with_schema(payload["plan_output"])


def run_plan_command(request_path: str, output_path: str) -> int:
    validation_report = ValidationReport()

    try:
        request_payload = read_json(request_path)
    except (OSError, ValueError) as exc:
        error = build_error_report(
            [ValidationError(code="invalid_request", message=str(exc), path="$.request")],
            code="request_read_error",
        )
        write_json(output_path, error)
        return EXIT_INVALID_INPUT

    request_payload = normalize_request(request_payload)
    errors = validate_plan_request(request_payload)

    if errors:
        write_json(output_path, build_error_report(errors))
        return EXIT_INVALID_INPUT

    loaded_request, load_errors = _load_referenced_inputs(Path(request_path), request_payload)
    if load_errors:
        write_json(
            output_path,
            build_error_report_with_validation(
                load_errors,
                validation_report=validation_report,
                code="input_load_error",
            ),
        )
        return EXIT_INVALID_INPUT

    loaded_request["plan_request"] = request_payload
    loaded_request["effective_config"] = resolve_effective_config(loaded_request, validation_report)

    validation_report.extend(validate_domain_inputs(loaded_request))
    validation_report.extend(validate_inputs_with_schema(loaded_request))

    if validation_report.errors:
        write_json(
            output_path,
            build_error_report_with_validation(
                _issues_as_errors(validation_report),
                validation_report=validation_report,
                code="validation_error",
            ),
        )
        return EXIT_INVALID_INPUT

    student_id = str(request_payload["student_id"])
    store_field = request_payload.get("plan_store_path")
    try:
        if store_field:
            store = PlanStore(_resolve_input_path(Path(request_path), store_field))
            with store.lock(student_id):
                loaded_request["previous_plan"] = store.load(student_id)
                result = run_planner(loaded_request)
                output, output_report = _build_output(result, validation_report)
                if not output_report.errors:
                    store.persist(student_id, result)
        else:
            result = run_planner(loaded_request)
            output, output_report = _build_output(result, validation_report)
    except PlanningInputError as exc:
        validation_report.extend(exc.report)
        write_json(
            output_path,
            build_error_report_with_validation(
                _issues_as_errors(exc.report),
                validation_report=validation_report,
                code="validation_error",
            ),
        )
        return EXIT_INVALID_INPUT
    except PlanInProgressError as exc:
        logger.warning("%s", exc)
        write_json(output_path, _persistence_error("plan_in_progress", str(exc), retryable=True))
        return EXIT_PERSISTENCE
    except PlanPersistenceError as exc:
        logger.error("Plan not persisted: %s", exc)
        write_json(output_path, _persistence_error("persistence_error", str(exc), retryable=exc.retryable))
        return EXIT_PERSISTENCE

    if output_report.errors:
        logger.error("Generated plan violates the output schema: %d error(s)", len(output_report.errors))
        write_json(
            output_path,
            build_error_report_with_validation(
                _issues_as_errors(output_report),
                validation_report=output_report,
                code="invalid_plan_output",
            ),
        )
        return EXIT_INTERNAL_ERROR

    write_json(output_path, output)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="studyplan", description="Study plan scheduling CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan_parser = subparsers.add_parser("plan", help="Generate a study plan from plan_request JSON")
    plan_parser.add_argument("--request", required=True, help="Path to plan_request.json")
    plan_parser.add_argument("--output", required=True, help="Path to plan_output.json")
    plan_parser.add_argument("--log-level", default=None, help="Logging level (default: STUDYPLAN_LOG_LEVEL or INFO)")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "plan":
        configure_logging(args.log_level)
        return run_plan_command(args.request, args.output)

    parser.error("Unknown command")
    return EXIT_INVALID_INPUT


if __name__ == "__main__":
    raise SystemExit(main())

"""Validation helpers."""

from .errors import PlanningInputError, ValidationError, ValidationIssue, ValidationReport
from .domain_validator import validate_domain_inputs
from .request import PLAN_MODES, validate_plan_request
from .schema_validator import validate_inputs_with_schema, validate_plan_output_with_schema

__all__ = [
    "PLAN_MODES",
    "PlanningInputError",
    "ValidationError",
    "ValidationIssue",
    "ValidationReport",
    "validate_plan_request",
    "validate_inputs_with_schema",
    "validate_domain_inputs",
    "validate_plan_output_with_schema",
]

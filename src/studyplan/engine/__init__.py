"""Planning engine."""

from .allocator import allocate_plan
from .dependency_sort import DependencyOrder, sort_topics_by_dependencies
from .feasibility import FeasibilityReport, analyze_feasibility
from .runner import run_planner
from .scoring import (
    DEFAULT_SCORE_WEIGHTS,
    DEFAULT_URGENCY_CURVE,
    compute_course_priority,
    compute_score,
    deterministic_tie_breaker_key,
    urgency_score,
)
from .slot_builder import build_daily_slots, resolve_horizon_days

__all__ = [
    "DEFAULT_SCORE_WEIGHTS",
    "DEFAULT_URGENCY_CURVE",
    "DependencyOrder",
    "FeasibilityReport",
    "allocate_plan",
    "analyze_feasibility",
    "build_daily_slots",
    "compute_course_priority",
    "compute_score",
    "deterministic_tie_breaker_key",
    "resolve_horizon_days",
    "run_planner",
    "sort_topics_by_dependencies",
    "urgency_score",
]

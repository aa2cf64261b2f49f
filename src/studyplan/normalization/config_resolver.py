"""Resolve effective planner configuration from layered inputs."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from studyplan.validation import ValidationReport

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Days dropped first when fewer than seven study days are requested.
WEEKEND_DAYS = ("saturday", "sunday")

DEFAULT_PREFERENCES: dict[str, Any] = {
    "daily_study_hours": 3.0,
    "study_days_per_week": 7,
    "days_off": [],
}

DEFAULT_ENGINE_CONFIG: dict[str, Any] = {
    "default_horizon_days": 30,
    "max_horizon_days": 90,
    "min_topic_hours": 0.25,
    "day_stop_threshold_hours": 0.25,
    "topic_complete_threshold_hours": 0.1,
    "default_difficulty_weight": 3,
    "default_exam_importance": 3,
    "default_estimated_hours": 1.5,
    # Partial overrides, merged over the scoring module defaults.
    "score_weights": {},
    "urgency_curve": {},
}


def normalize_weekday(raw: Any) -> str | None:
    """Map ``Monday``/``mon``/``monday`` to ``monday``; None when unknown."""
    if not isinstance(raw, str):
        return None
    name = raw.strip().lower()
    for weekday in WEEKDAY_NAMES:
        if name == weekday or name == weekday[:3]:
            return weekday
    return None


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def derive_days_off(study_days_per_week: int) -> list[str]:
    """Default days off for a study-days-per-week preference.

    Only weekend days are ever derived: 6 days frees Saturday, 5 or fewer
    frees the whole weekend.
    """
    missing = max(0, 7 - int(study_days_per_week))
    return list(WEEKEND_DAYS[:missing])


def resolve_effective_config(loaded_payload: dict[str, Any], validation_report: ValidationReport) -> dict[str, Any]:
    """Build an ordered, engine-ready effective configuration payload.

    Precedence: built-in defaults < preferences file < preferences ``engine`` block.
    """
    source = loaded_payload.get("preferences", {})
    source = source if isinstance(source, dict) else {}

    preferences = _resolve_preferences(source, validation_report)

    engine = dict(DEFAULT_ENGINE_CONFIG)
    overrides = source.get("engine")
    if isinstance(overrides, dict):
        engine.update({key: value for key, value in overrides.items() if key in DEFAULT_ENGINE_CONFIG})

    return {
        "preferences": preferences,
        "engine": engine,
    }


def _resolve_preferences(source: dict[str, Any], validation_report: ValidationReport) -> dict[str, Any]:
    preferences = dict(DEFAULT_PREFERENCES)

    hours = source.get("daily_study_hours")
    if isinstance(hours, (int, float)) and not isinstance(hours, bool) and hours > 0:
        preferences["daily_study_hours"] = float(hours)

    days_per_week = source.get("study_days_per_week")
    if isinstance(days_per_week, int) and not isinstance(days_per_week, bool) and 1 <= days_per_week <= 7:
        preferences["study_days_per_week"] = days_per_week

    explicit: list[str] = []
    raw_days_off = source.get("days_off")
    if isinstance(raw_days_off, list):
        for raw in raw_days_off:
            weekday = normalize_weekday(raw)
            if weekday is not None and weekday not in explicit:
                explicit.append(weekday)

    if explicit:
        preferences["days_off"] = [day for day in WEEKDAY_NAMES if day in explicit]
    else:
        derived = derive_days_off(preferences["study_days_per_week"])
        preferences["days_off"] = derived
        if derived:
            validation_report.add_info(
                code="INFO_DAYS_OFF_DERIVED",
                message="days_off derived from study_days_per_week",
                field_path="$.preferences.days_off",
                extra={"applied_value": derived},
            )

    return preferences

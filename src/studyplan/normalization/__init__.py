"""Input normalization."""

from .config_resolver import (
    DEFAULT_ENGINE_CONFIG,
    DEFAULT_PREFERENCES,
    derive_days_off,
    normalize_weekday,
    resolve_effective_config,
    weekday_name,
)
from .request import normalize_courses, normalize_request

__all__ = [
    "DEFAULT_ENGINE_CONFIG",
    "DEFAULT_PREFERENCES",
    "derive_days_off",
    "normalize_courses",
    "normalize_request",
    "normalize_weekday",
    "resolve_effective_config",
    "weekday_name",
]

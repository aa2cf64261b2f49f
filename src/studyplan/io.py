"""I/O helpers for the studyplan CLI."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def read_json(path: str | Path) -> dict[str, Any]:
    """Read a JSON file and return a dictionary payload."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"JSON root must be an object: {path}")
    return payload


def dump_json(payload: dict[str, Any]) -> str:
    """Serialize with stable formatting; dates become ISO strings."""
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True, default=_json_default) + "\n"


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    """Write a JSON payload with stable formatting."""
    Path(path).write_text(dump_json(payload), encoding="utf-8")

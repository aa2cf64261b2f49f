"""JSON-file plan store.

One file holds the current plan of every student: its version, the plan days
and the scheduled items. Writes go to a temporary file in the same directory
that then atomically replaces the store, so a failed write leaves the
previous content untouched. A per-student lock file keeps a second planning
run for the same student out while one is in progress.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from studyplan.io import dump_json

logger = logging.getLogger(__name__)


class PlanInProgressError(RuntimeError):
    """Another planning run already holds the student's lock."""

    def __init__(self, student_id: str) -> None:
        self.student_id = student_id
        super().__init__(f"A plan is already being generated for student {student_id!r}")


class PlanPersistenceError(RuntimeError):
    """The plan could not be written; the stored plan is unchanged."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        self.retryable = retryable
        super().__init__(message)


def _safe_name(student_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", student_id) or "_"


def _strip_items(day: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in day.items() if key != "items"}


class PlanStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"students": {}}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PlanPersistenceError(f"Plan store is unreadable: {self.path}: {exc}", retryable=False) from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("students"), dict):
            raise PlanPersistenceError(f"Plan store has an unexpected layout: {self.path}", retryable=False)
        return payload

    def load(self, student_id: str) -> dict[str, Any]:
        """Current plan of ``student_id``; version 0 and no records when absent."""
        record = self._read_all()["students"].get(student_id)
        if not isinstance(record, dict):
            return {"plan_version": 0, "days": [], "items": []}
        return {
            "plan_version": int(record.get("plan_version", 0) or 0),
            "days": list(record.get("days") or []),
            "items": list(record.get("items") or []),
        }

    def lock_path(self, student_id: str) -> Path:
        return self.path.with_name(f"{self.path.name}.{_safe_name(student_id)}.lock")

    @contextmanager
    def lock(self, student_id: str) -> Iterator[None]:
        """Hold the student's exclusive lock for the duration of the block."""
        lock_file = self.lock_path(student_id)
        lock_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise PlanInProgressError(student_id) from exc
        try:
            try:
                os.write(fd, str(os.getpid()).encode("ascii"))
            finally:
                os.close(fd)
            yield
        finally:
            lock_file.unlink(missing_ok=True)

    def persist(self, student_id: str, result: dict[str, Any]) -> dict[str, Any]:
        """Replace the student's plan with ``result``.

        ``full`` mode stores only the new plan; ``recreate`` keeps the days
        and items the runner preserved from before today.
        """
        days = [_strip_items(day) for day in result.get("plan_days", [])]
        items = list(result.get("items", []))
        if result.get("mode") == "recreate":
            days = [*result.get("preserved_days", []), *days]
            items = [*result.get("preserved_items", []), *items]

        record = {
            "plan_version": int(result.get("plan_version", 1)),
            "mode": result.get("mode", "full"),
            "status_code": result.get("status_code", "PLAN_GENERATED"),
            "updated_at": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
            "days": sorted(days, key=lambda day: str(day.get("date", ""))),
            "items": sorted(items, key=lambda item: (str(item.get("date", "")), int(item.get("order_index", 0) or 0))),
        }

        payload = self._read_all()
        payload["students"][student_id] = record
        self._atomic_write(payload)
        logger.info(
            "Persisted plan v%d for %s: %d days, %d items",
            record["plan_version"],
            student_id,
            len(record["days"]),
            len(record["items"]),
        )
        return record

    def _atomic_write(self, payload: dict[str, Any]) -> None:
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                handle.write(dump_json(payload))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise PlanPersistenceError(f"Could not write plan store {self.path}: {exc}") from exc

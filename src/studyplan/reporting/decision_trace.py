"""Decision trace utilities for allocator runtime events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any


@dataclass(slots=True)
class DecisionTraceCollector:
    """Collect one entry per allocation made by the day-by-day scheduler."""

    start_timestamp: datetime
    _sequence: int = 0
    _items: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.start_timestamp.tzinfo is None:
            self.start_timestamp = self.start_timestamp.replace(tzinfo=timezone.utc)

    def record(
        self,
        *,
        slot_id: str,
        candidate_courses: list[str],
        scores_by_course: dict[str, float],
        selected_course_id: str,
        selected_topic_id: str,
        hours: float,
        applied_rules: list[str],
        blocked_topics: list[str],
        tradeoff_note: str,
    ) -> None:
        self._sequence += 1
        timestamp = self.start_timestamp + timedelta(seconds=self._sequence)
        self._items.append(
            {
                "decision_id": f"d-{self._sequence:06d}",
                "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
                "slot_id": slot_id,
                # Kept in evaluation order: it is the order the scheduler tried them.
                "candidate_courses": list(candidate_courses),
                "scores_by_course": {cid: round(float(scores_by_course[cid]), 4) for cid in sorted(scores_by_course)},
                "selected_course_id": selected_course_id,
                "selected_topic_id": selected_topic_id,
                "hours": round(float(hours), 2),
                "applied_rules": applied_rules,
                "blocked_topics": sorted(blocked_topics),
                "tradeoff_note": tradeoff_note,
            }
        )

    def __len__(self) -> int:
        return len(self._items)

    def as_list(self) -> list[dict[str, Any]]:
        """Return trace sorted in deterministic chronological order."""
        return sorted(self._items, key=lambda item: (str(item["timestamp"]), str(item["decision_id"])))

"""Warning and suggestion generation for planning output."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from studyplan.engine.feasibility import FeasibilityReport

# Below this coverage, compressing topics is not enough: ask for more time.
LOW_COVERAGE_RATIO = 0.7
# Average study day above this share of the budget leaves no slack.
SATURATED_DAY_SHARE = 0.95


def build_warnings_and_suggestions(
    *,
    feasibility: FeasibilityReport,
    has_cycles: bool,
    cyclic_topic_ids: list[str],
    courses_without_exam_date: list[str],
    summary: dict[str, Any],
    daily_study_hours: float,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Return warnings and deduplicated suggestions for a generated plan."""
    warnings: list[dict[str, Any]] = []
    suggestions: list[dict[str, Any]] = []

    if has_cycles:
        warnings.append(
            {
                "code": "WARN_CIRCULAR_DEPENDENCIES",
                "severity": "warning",
                "message": "Circular prerequisites detected; the topics involved were scheduled in order_index order.",
                "topic_ids": list(cyclic_topic_ids),
            }
        )
        suggestions.append(
            {
                "code": "SUGGEST_REVIEW_PREREQUISITES",
                "message": "Review the prerequisite links of the listed topics to remove the cycle.",
            }
        )

    if feasibility.is_priority_mode:
        warnings.append(
            {
                "code": "WARN_TIME_COMPRESSED",
                "severity": "warning",
                "message": (
                    f"Only {feasibility.coverage_percent}% of the estimated study time fits before the exams; "
                    "topic hours were compressed uniformly."
                ),
                "coverage_percent": feasibility.coverage_percent,
            }
        )
        if feasibility.coverage_ratio < LOW_COVERAGE_RATIO:
            suggestions.append(
                {
                    "code": "SUGGEST_EXTEND_DAILY_HOURS",
                    "message": "Increase the daily study hours to cover more of the material.",
                    "recommended_daily_hours": round(daily_study_hours / max(feasibility.coverage_ratio, 0.01), 1),
                }
            )
            suggestions.append(
                {
                    "code": "SUGGEST_ADD_STUDY_DAYS",
                    "message": "Study on some of your days off to gain more study time.",
                }
            )

    if courses_without_exam_date:
        warnings.append(
            {
                "code": "WARN_COURSES_WITHOUT_EXAM_DATE",
                "severity": "warning",
                "message": f"{len(courses_without_exam_date)} course(s) have no exam date and were scheduled last.",
                "course_ids": list(courses_without_exam_date),
            }
        )

    topics_total = int(summary.get("topics_total", 0))
    topics_scheduled = int(summary.get("topics_scheduled", 0))
    if topics_scheduled < topics_total:
        warnings.append(
            {
                "code": "WARN_TOPICS_NOT_SCHEDULED",
                "severity": "warning",
                "message": f"{topics_total - topics_scheduled} of {topics_total} topics could not be fully scheduled.",
                "unscheduled_count": topics_total - topics_scheduled,
            }
        )

    if float(summary.get("avg_hours_per_study_day", 0.0)) > daily_study_hours * SATURATED_DAY_SHARE:
        suggestions.append(
            {
                "code": "SUGGEST_TOPIC_SPLITTING",
                "message": "Study days are nearly full; split large topics into smaller ones for flexibility.",
            }
        )

    urgent = [item["course_id"] for item in summary.get("course_summaries", []) if item.get("urgency") == "high"]
    if urgent:
        suggestions.append(
            {
                "code": "SUGGEST_FOCUS_URGENT_COURSES",
                "message": f"{len(urgent)} course(s) have an exam within a week; focus on them first.",
                "course_ids": urgent,
            }
        )

    unique_suggestions: list[dict[str, Any]] = []
    seen: set[str] = set()
    for item in suggestions:
        code = str(item.get("code", ""))
        if code in seen:
            continue
        seen.add(code)
        unique_suggestions.append(item)

    return warnings, unique_suggestions


def build_terminal_suggestions(status_code: str) -> list[dict[str, Any]]:
    """Suggestions attached to the empty plans of terminal states."""
    if status_code == "NO_ACTIVE_COURSES":
        return [
            {
                "code": "SUGGEST_ADD_COURSES",
                "message": "Add an active course with topics and an exam date to generate a plan.",
            }
        ]
    if status_code == "ALL_COMPLETED":
        return [
            {
                "code": "SUGGEST_SCHEDULE_REVIEW",
                "message": "Every topic is done; add review topics to keep the material fresh before the exams.",
            }
        ]
    return []

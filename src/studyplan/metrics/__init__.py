"""Plan summaries and metrics."""

from .collector import classify_workload_intensity, collect_metrics, summarize_schedule, urgency_tier

__all__ = ["classify_workload_intensity", "collect_metrics", "summarize_schedule", "urgency_tier"]

"""
Telemetry: Prometheus metrics and Sentry error tracking.
"""

from fifarank.telemetry.metrics import (
    ranking_recompute_seconds,
    results_processed_total,
    results_rejected_total,
    observe_ranking_recompute,
    record_result_processed,
    record_result_rejected,
    get_metrics_text,
)

__all__ = [
    "ranking_recompute_seconds",
    "results_processed_total",
    "results_rejected_total",
    "observe_ranking_recompute",
    "record_result_processed",
    "record_result_rejected",
    "get_metrics_text",
]

"""
Prometheus metrics for the ranking engine.

Labels are restricted to LOW-CARDINALITY values only:
- mode:   "simulated", "manual"
- reason: "already_finished", "not_found", "invalid"

Never use match_id, team ids or names as labels; use logs for those.
Recording is best-effort and never blocks the main flow.
"""

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# =============================================================================
# RESULT PROCESSING
# =============================================================================

results_processed_total = Counter(
    "fifarank_results_processed_total",
    "Matches finalized by the result processor",
    ["mode"],
)

results_rejected_total = Counter(
    "fifarank_results_rejected_total",
    "Finalization attempts rejected before any state change",
    ["reason"],
)

# =============================================================================
# RANKING
# =============================================================================

ranking_recompute_seconds = Histogram(
    "fifarank_ranking_recompute_seconds",
    "Wall time of a full ranking recomputation",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)


def record_result_processed(mode: str) -> None:
    """Record a finalized match."""
    try:
        results_processed_total.labels(mode=mode).inc()
    except Exception as e:
        logger.warning(f"Failed to record result metric: {e}")


def record_result_rejected(reason: str) -> None:
    """Record a rejected finalization."""
    try:
        results_rejected_total.labels(reason=reason).inc()
    except Exception as e:
        logger.warning(f"Failed to record rejection metric: {e}")


def observe_ranking_recompute(seconds: float) -> None:
    try:
        ranking_recompute_seconds.observe(seconds)
    except Exception as e:
        logger.warning(f"Failed to record recompute latency: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST

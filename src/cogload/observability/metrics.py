"""
Defines Prometheus metrics for the recomputation pipeline.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

import structlog
from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import start_http_server

if TYPE_CHECKING:
    from cogload.config.config import MonitoringConfig

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Importing this module more than once (test collection, reloads) must not
# register the same collector twice.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "recomputations": Counter(
            "cogload_recomputations_total",
            "Total number of completed recomputations by trigger source",
            ["source"],
        ),
        "recompute_duration_seconds": Histogram(
            "cogload_recompute_duration_seconds",
            "Time taken by the synchronous extract/score/assemble phase",
            buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
        ),
        "load_score": Histogram(
            "cogload_load_score",
            "Distribution of published cognitive load scores",
            buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
        ),
        "store_errors": Counter(
            "cogload_store_errors_total",
            "Total number of failed reads or writes against the shared store",
            ["operation"],
        ),
        "refused_requests": Counter(
            "cogload_refused_requests_total",
            "Total number of recomputations refused for unsupported resources",
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def start_metrics_server(config: MonitoringConfig) -> bool:
    """Start the Prometheus exporter if a port is configured."""
    if not config.enabled or config.prometheus_port is None:
        return False
    start_http_server(config.prometheus_port)
    logger.info("Prometheus exporter started", port=config.prometheus_port)
    return True

"""
Prometheus metrics for the sync process

Engine modules declare their own counters and gauges at import time
through ``get_or_create_metric``; the CLI starts the exporter with
``initialize_metrics`` when ``METRICS_PORT`` is set.

Usage:
    from utils.metrics import get_or_create_metric

    BATCHES = get_or_create_metric(
        lambda: Counter("mirror_batches_total", "Batches written", ["mode"]),
        "mirror_batches_total",
    )
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from prometheus_client import REGISTRY, CollectorRegistry

from .publisher import ApplicationInfo, MetricsPublisher

logger = logging.getLogger(__name__)

M = TypeVar("M")


def get_or_create_metric(
    metric_factory: Callable[[], M],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> M:
    """
    Build a metric, or return the collector already registered as ``metric_name``.

    Re-importing a module that declares metrics (test reloads, mutmut
    runs) would otherwise fail with a duplicated-timeseries ValueError.
    Any other ValueError from the factory is re-raised.
    """
    try:
        return metric_factory()
    except ValueError:
        existing = registry._names_to_collectors.get(metric_name)
        if existing is None:
            raise
        return existing


def initialize_metrics(
    port: int,
    version: str,
    registry: CollectorRegistry | None = None,
) -> dict[str, Any]:
    """
    Start the exporter and publish application info.

    Returns:
        ``{"publisher": MetricsPublisher, "app_info": ApplicationInfo}``
    """
    publisher = MetricsPublisher(port=port, registry=registry)
    publisher.start()

    return {
        "publisher": publisher,
        "app_info": ApplicationInfo(version=version, registry=registry),
    }


__all__ = [
    "get_or_create_metric",
    "initialize_metrics",
    "MetricsPublisher",
    "ApplicationInfo",
]

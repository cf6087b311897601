"""
Export functionality for the cost exporter.

Holds the cost gauges and renders them in the Prometheus exposition format.
"""

from .prometheus import (
    CostGauge,
    CostMetricsCollector,
    GaugeDefinition,
    create_registry,
    render_metrics,
)

__all__ = [
    "CostGauge",
    "CostMetricsCollector",
    "GaugeDefinition",
    "create_registry",
    "render_metrics",
]

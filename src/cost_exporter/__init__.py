"""
AWS Cost Exporter

Periodically pulls AWS Cost Explorer data for several billing windows and
exposes it as Prometheus gauges labelled by service and region.
"""

__version__ = "1.0.0"
__author__ = "Cost Monitor Team"

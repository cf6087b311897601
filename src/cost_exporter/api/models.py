"""
API data models for the cost exporter.

Contains Pydantic models used across the API layer.
"""

from datetime import datetime

from pydantic import BaseModel


class GaugeInfo(BaseModel):
    window: str
    name: str
    series: int
    last_updated: datetime | None = None


class ServiceInfo(BaseModel):
    service: str
    version: str
    refresh_interval_seconds: float
    gauges: list[GaugeInfo]

"""
Abstract billing data source for the cost exporter.

Defines the query contract every cost data fetcher must follow, the date
range model shared by the fetchers and the window calculator, and the
error taxonomy raised by fetchers.
"""

from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, model_validator


class TimeGranularity(Enum):
    """Supported time granularities for cost queries."""

    DAILY = "daily"
    MONTHLY = "monthly"


class TimeRange(BaseModel):
    """Half-open ``[start, end)`` calendar date range for a cost query."""

    model_config = {"frozen": True}

    start: date
    end: date

    @model_validator(mode="after")
    def validate_date_range(self):
        """Validate that the range is not empty."""
        if self.start >= self.end:
            raise ValueError(f"Start date {self.start} must be before end date {self.end}")
        return self

    @property
    def days(self) -> int:
        """Number of whole days covered by the range."""
        return (self.end - self.start).days

    def as_time_period(self) -> dict[str, str]:
        """Render the range as a Cost Explorer ``TimePeriod`` payload."""
        return {"Start": self.start.isoformat(), "End": self.end.isoformat()}

    def __str__(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


class CloudProviderError(Exception):
    """Base exception for cloud provider errors."""

    pass


class FetchError(CloudProviderError):
    """A cost query could not be completed."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class AuthenticationError(FetchError):
    """Authentication-related errors."""

    pass


class APIError(FetchError):
    """API-related errors."""

    def __init__(self, message: str, status_code: int | None = None, provider: str | None = None):
        super().__init__(message, provider=provider)
        self.status_code = status_code


class RateLimitError(APIError):
    """Rate limiting errors."""

    def __init__(self, message: str, retry_after: int | None = None, provider: str | None = None):
        super().__init__(message, status_code=429, provider=provider)
        self.retry_after = retry_after


class ConfigurationError(CloudProviderError):
    """Configuration-related errors."""

    pass


class CostDataFetcher(ABC):
    """Abstract base class for grouped cost data sources."""

    def __init__(self, config: dict[str, Any]):
        """
        Initialize the fetcher with configuration.

        Args:
            config: Provider-specific configuration dictionary
        """
        self.config = config
        self.provider_name = self._get_provider_name()

    @abstractmethod
    def _get_provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    def fetch(self, time_range: TimeRange, granularity: TimeGranularity) -> list[dict[str, Any]]:
        """
        Retrieve cost groups for the specified range.

        Every group is a mapping shaped like a Cost Explorer group::

            {"Keys": ["AmazonEC2", "us-east-1"],
             "Metrics": {"UnblendedCost": {"Amount": "12.34", "Unit": "USD"}}}

        Groups from all result periods and pages are returned in order.
        Groups are passed through unvalidated; the aggregator decides what
        to keep.

        Args:
            time_range: Half-open date range to query
            granularity: Time granularity for the query

        Returns:
            List of raw cost groups (possibly empty)

        Raises:
            FetchError: If the query fails for any reason
        """
        pass


class ProviderFactory:
    """Factory class for creating cost data fetchers."""

    _providers: dict[str, type] = {}

    @classmethod
    def register_provider(cls, name: str, provider_class: type):
        """Register a fetcher class with the factory."""
        cls._providers[name.lower()] = provider_class

    @classmethod
    def create_provider(cls, name: str, config: dict[str, Any]) -> CostDataFetcher:
        """
        Create a fetcher instance.

        Raises:
            ConfigurationError: If no fetcher is registered under ``name``
        """
        name = name.lower()
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys()) or "none"
            raise ConfigurationError(
                f"Unknown provider '{name}'. Available providers: {available}"
            )

        provider_class = cls._providers[name]
        return provider_class(config)

    @classmethod
    def get_available_providers(cls) -> list[str]:
        """Get list of available provider names."""
        return list(cls._providers.keys())

"""Billing data providers for the cost exporter."""

# Import provider implementations to register them with ProviderFactory
from . import aws

# Make key classes available at package level
from .base import (
    APIError,
    AuthenticationError,
    CloudProviderError,
    ConfigurationError,
    CostDataFetcher,
    FetchError,
    ProviderFactory,
    RateLimitError,
    TimeGranularity,
    TimeRange,
)

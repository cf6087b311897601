"""
AWS Cost Explorer fetcher.

Queries ``GetCostAndUsage`` grouped by service and region and returns the
raw groups of every result period and page.
"""

import logging
from typing import Any

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ..utils.auth import AWSAuthenticator
from .base import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    CostDataFetcher,
    ProviderFactory,
    RateLimitError,
    TimeGranularity,
    TimeRange,
)

logger = logging.getLogger(__name__)

GROUP_BY_DIMENSIONS = ("SERVICE", "REGION")

_AUTH_ERROR_CODES = {
    "UnauthorizedOperation",
    "AccessDeniedException",
    "UnrecognizedClientException",
    "ExpiredTokenException",
    "InvalidClientTokenId",
}


class CostExplorerFetcher(CostDataFetcher):
    """AWS Cost Explorer implementation of CostDataFetcher."""

    def __init__(self, config: dict[str, Any], client: Any = None):
        super().__init__(config)
        self.region = config.get("region", "us-east-1")
        self.metric = config.get("metric", "UnblendedCost")
        self.max_attempts = int(config.get("max_attempts", 3))
        self.granularity_mapping = {
            TimeGranularity.DAILY: "DAILY",
            TimeGranularity.MONTHLY: "MONTHLY",
        }
        self.authenticator = AWSAuthenticator(config)
        self.cost_explorer_client = client

    def _get_provider_name(self) -> str:
        return "aws"

    def _create_cost_explorer_client(self):
        """Create the Cost Explorer client from an authenticated session."""
        auth_result = self.authenticator.authenticate()
        if not auth_result.success:
            raise AuthenticationError(
                f"AWS authentication failed: {auth_result.error_message}",
                provider=self.provider_name,
            )

        config = Config(
            region_name=self.region,
            retries={"max_attempts": self.max_attempts, "mode": "standard"},
        )
        try:
            self.cost_explorer_client = auth_result.session.client("ce", config=config)
        except NoCredentialsError as e:
            raise AuthenticationError(
                f"AWS credentials not found: {e}", provider=self.provider_name
            ) from e
        except BotoCoreError as e:
            # Credential providers and config files are resolved here
            raise AuthenticationError(
                f"Could not create AWS Cost Explorer client: {e}", provider=self.provider_name
            ) from e

        logger.info(f"AWS Cost Explorer client created using {auth_result.method} in {self.region}")

    def _prepare_cost_request_params(
        self, time_range: TimeRange, granularity: TimeGranularity
    ) -> dict[str, Any]:
        if granularity not in self.granularity_mapping:
            raise ConfigurationError(f"Unsupported granularity: {granularity}")

        return {
            "TimePeriod": time_range.as_time_period(),
            "Granularity": self.granularity_mapping[granularity],
            "Metrics": [self.metric],
            "GroupBy": [{"Type": "DIMENSION", "Key": key} for key in GROUP_BY_DIMENSIONS],
        }

    def fetch(self, time_range: TimeRange, granularity: TimeGranularity) -> list[dict[str, Any]]:
        """Fetch all cost groups for the range, following pagination."""
        if self.cost_explorer_client is None:
            self._create_cost_explorer_client()

        params = self._prepare_cost_request_params(time_range, granularity)
        groups: list[dict[str, Any]] = []
        periods = 0

        while True:
            try:
                response = self.cost_explorer_client.get_cost_and_usage(**params)
            except ClientError as e:
                self._handle_client_error(e)
            except NoCredentialsError as e:
                raise AuthenticationError(
                    f"AWS credentials not found: {e}", provider=self.provider_name
                ) from e
            except BotoCoreError as e:
                raise APIError(
                    f"AWS Cost Explorer request failed: {e}", provider=self.provider_name
                ) from e

            for result in response.get("ResultsByTime", []):
                periods += 1
                groups.extend(result.get("Groups", []))

            next_token = response.get("NextPageToken")
            if not next_token:
                break
            params["NextPageToken"] = next_token

        logger.debug(f"Received {periods} result periods from AWS Cost Explorer for {time_range}")
        return groups

    def _handle_client_error(self, error: ClientError):
        """Translate AWS client errors into fetch errors."""
        error_code = error.response.get("Error", {}).get("Code", "Unknown")
        error_message = error.response.get("Error", {}).get("Message", str(error))

        if error_code in ("Throttling", "ThrottlingException", "LimitExceededException"):
            raise RateLimitError(
                f"AWS Cost Explorer API rate limit exceeded: {error_message}",
                provider=self.provider_name,
            ) from error
        elif error_code in _AUTH_ERROR_CODES:
            raise AuthenticationError(
                f"AWS unauthorized: {error_message}", provider=self.provider_name
            ) from error
        else:
            raise APIError(
                f"AWS Cost Explorer API error ({error_code}): {error_message}",
                status_code=error.response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
                provider=self.provider_name,
            ) from error


# Register the AWS fetcher with the factory
ProviderFactory.register_provider("aws", CostExplorerFetcher)

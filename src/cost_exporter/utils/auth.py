"""
AWS authentication utilities.

Resolves a boto3 session for the billing query from explicit access keys,
a named profile, or the default credential chain, in that order.
"""

import logging
from typing import Any, Literal

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

logger = logging.getLogger(__name__)

CredentialSource = Literal["access_keys", "profile", "default_chain"]


class AuthenticationResult(BaseModel):
    """Session resolved for one credential source, or why it could not be."""

    method: CredentialSource
    session: Any = None
    error_message: str | None = None

    @property
    def success(self) -> bool:
        return self.session is not None

    @classmethod
    def succeeded(cls, method: CredentialSource, session: Any) -> "AuthenticationResult":
        return cls(method=method, session=session)

    @classmethod
    def failed(cls, method: CredentialSource, error_message: str) -> "AuthenticationResult":
        return cls(method=method, error_message=error_message)


class AWSAuthenticator:
    """AWS authentication handler."""

    provider_name = "aws"

    def __init__(self, config: dict[str, Any]):
        self.config = config

    def credential_source(self) -> CredentialSource:
        if self.config.get("access_key_id") and self.config.get("secret_access_key"):
            return "access_keys"
        if self.config.get("profile"):
            return "profile"
        return "default_chain"

    def authenticate(self) -> AuthenticationResult:
        """
        Build a boto3 session.

        Sessions are created lazily by boto3, so bad credentials only
        surface on the first API call. Use ``test_credentials`` to check
        them eagerly.
        """
        region = self.config.get("region")
        method = self.credential_source()

        try:
            if method == "access_keys":
                logger.info("AWS: Using access keys from configuration")
                session = boto3.Session(
                    aws_access_key_id=self.config["access_key_id"],
                    aws_secret_access_key=self.config["secret_access_key"],
                    aws_session_token=self.config.get("session_token"),
                    region_name=region,
                )
            elif method == "profile":
                profile = self.config["profile"]
                logger.info(f"AWS: Using profile '{profile}'")
                session = boto3.Session(profile_name=profile, region_name=region)
            else:
                logger.info("AWS: Using default credential chain")
                session = boto3.Session(region_name=region)
        except BotoCoreError as e:
            logger.error(f"AWS: Could not create session: {e}")
            return AuthenticationResult.failed(method, str(e))

        return AuthenticationResult.succeeded(method, session)

    def test_credentials(self, session: boto3.Session) -> bool:
        """Test AWS credentials by making a simple API call."""
        try:
            sts_client = session.client("sts")
            identity = sts_client.get_caller_identity()
            logger.info(f"AWS: Authenticated as {identity.get('Arn')}")
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"AWS: Credential check failed: {e}")
            return False

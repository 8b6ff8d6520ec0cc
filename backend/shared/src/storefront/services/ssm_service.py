"""SSM Parameter Store service for secure secret retrieval.

Provides cached access to AWS SSM Parameter Store SecureString parameters.
Used for the provider webhook signing secrets.
"""

import logging
import os
from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from storefront.models.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SSMServiceError(Exception):
    """Raised when SSM parameter retrieval fails."""

    pass


class SSMService:
    """Service for retrieving secrets from AWS SSM Parameter Store.

    Features:
    - Retrieves SecureString parameters with automatic decryption
    - In-process caching to avoid repeated API calls
    - Environment-aware parameter paths

    Usage:
        ssm = get_ssm_service()
        secret = ssm.get_parameter("/storefront/dev/stripe/webhook_secret")
    """

    _instance: ClassVar["SSMService | None"] = None
    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        """Initialize the SSM client."""
        self._client = boto3.client("ssm")

    @classmethod
    def get_instance(cls) -> "SSMService":
        """Get singleton instance of SSMService."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve a parameter value from SSM Parameter Store.

        Args:
            name: Full parameter path (e.g., "/storefront/dev/coinbase/webhook_secret")
            use_cache: Whether to use cached value if available (default: True)

        Returns:
            The decrypted parameter value.

        Raises:
            SSMServiceError: If parameter cannot be retrieved.
        """
        if use_cache and name in self._cache:
            logger.debug("SSM cache hit for %s", name)
            return self._cache[name]

        try:
            logger.info("Fetching SSM parameter: %s", name)
            response = self._client.get_parameter(Name=name, WithDecryption=True)
            value: str = response["Parameter"]["Value"]

            self._cache[name] = value
            return value

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMServiceError(f"SSM parameter not found: {name}") from e
            if error_code == "AccessDeniedException":
                raise SSMServiceError(
                    f"Access denied to SSM parameter: {name}. "
                    "Check IAM permissions for ssm:GetParameter."
                ) from e
            raise SSMServiceError(
                f"Failed to retrieve SSM parameter {name}: {e}"
            ) from e
        except BotoCoreError as e:
            raise SSMServiceError(
                f"Failed to retrieve SSM parameter {name}: {e}"
            ) from e

    def clear_cache(self) -> None:
        """Clear all cached parameters."""
        self._cache.clear()
        logger.info("SSM parameter cache cleared")


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance (singleton pattern)."""
    return SSMService.get_instance()


def reset_ssm_service() -> None:
    """Drop the cached client and parameters (for testing only)."""
    SSMService._cache.clear()
    SSMService._instance = None
    get_ssm_service.cache_clear()


def get_webhook_secret(
    provider: str, env_var: str, environment: str | None = None
) -> str:
    """Resolve a provider webhook signing secret.

    The environment variable wins; otherwise the secret is read from
    /storefront/<env>/<provider>/webhook_secret.

    Args:
        provider: Provider path segment (stripe, coinbase)
        env_var: Environment variable that overrides SSM
        environment: Environment name. Defaults to ENVIRONMENT env var.

    Raises:
        ConfigurationError: If the secret is configured nowhere.
    """
    value = os.environ.get(env_var)
    if value:
        return value

    env = environment or os.environ.get("ENVIRONMENT", "dev")
    try:
        return get_ssm_service().get_parameter(
            f"/storefront/{env}/{provider}/webhook_secret"
        )
    except SSMServiceError as e:
        logger.error("%s webhook secret not configured: %s", provider, e)
        raise ConfigurationError(
            f"{provider.capitalize()} webhook secret not configured",
            details={"env_var": env_var},
        ) from e

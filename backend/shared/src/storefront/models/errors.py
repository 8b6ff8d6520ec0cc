"""Standard error codes and exceptions for the webhook pipeline.

Every failure the pipeline or the admin surface can report maps to one
ErrorCode. The API layer converts StorefrontError into an HTTP response
using the code, so services never deal with status codes directly.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Webhook ingestion
    INVALID_SIGNATURE = "ERR_WEBHOOK_001"
    MALFORMED_PAYLOAD = "ERR_WEBHOOK_002"
    MATERIALIZATION_FAILED = "ERR_WEBHOOK_003"

    # Infrastructure
    CONFIGURATION_ERROR = "ERR_CONFIG_001"
    STORE_UNAVAILABLE = "ERR_STORE_001"

    # Administrative retry
    INVALID_STATE_TRANSITION = "ERR_ADMIN_001"
    WEBHOOK_EVENT_NOT_FOUND = "ERR_ADMIN_002"
    MISSING_PARAMETER = "ERR_ADMIN_003"

    # Authentication / authorization
    AUTH_REQUIRED = "ERR_AUTH_001"
    ADMIN_REQUIRED = "ERR_AUTH_002"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_SIGNATURE: "Invalid webhook signature",
    ErrorCode.MALFORMED_PAYLOAD: "Invalid payload structure",
    ErrorCode.MATERIALIZATION_FAILED: "Error processing payment event",
    ErrorCode.CONFIGURATION_ERROR: "Webhook secret not configured",
    ErrorCode.STORE_UNAVAILABLE: "Document store unavailable",
    ErrorCode.INVALID_STATE_TRANSITION: "Only failed or abandoned webhooks can be retried",
    ErrorCode.WEBHOOK_EVENT_NOT_FOUND: "Webhook event not found",
    ErrorCode.MISSING_PARAMETER: "Missing required parameter",
    ErrorCode.AUTH_REQUIRED: "Unauthorized: Please sign in",
    ErrorCode.ADMIN_REQUIRED: "Forbidden: Admin access required",
}

ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.INVALID_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.MALFORMED_PAYLOAD: "Check the provider webhook API version",
    ErrorCode.MATERIALIZATION_FAILED: "Provider will redeliver; or retry from the admin dashboard",
    ErrorCode.CONFIGURATION_ERROR: "Set the webhook secret in the environment or SSM",
    ErrorCode.STORE_UNAVAILABLE: "Check DynamoDB availability and IAM permissions",
    ErrorCode.INVALID_STATE_TRANSITION: "Wait for the event to fail before retrying",
    ErrorCode.WEBHOOK_EVENT_NOT_FOUND: "Verify the webhook event ID",
    ErrorCode.MISSING_PARAMETER: "Include webhookEventId in the request body",
    ErrorCode.AUTH_REQUIRED: "Sign in and try again",
    ErrorCode.ADMIN_REQUIRED: "Ask an administrator for access",
}


class ErrorResponse(BaseModel):
    """JSON body returned for every handled error."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error: str
    error_code: ErrorCode
    recovery: str
    details: Optional[dict[str, Any]] = None


class StorefrontError(Exception):
    """Base exception for pipeline and admin failures.

    Can be caught and converted to an ErrorResponse for HTTP replies.
    """

    code: ErrorCode = ErrorCode.MATERIALIZATION_FAILED

    def __init__(
        self,
        message: str | None = None,
        *,
        code: ErrorCode | None = None,
        details: Optional[dict[str, Any]] = None,
    ):
        if code is not None:
            self.code = code
        self.message = message or ERROR_MESSAGES[self.code]
        self.recovery = ERROR_RECOVERY[self.code]
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse."""
        return ErrorResponse(
            error=self.message,
            error_code=self.code,
            recovery=self.recovery,
            details=self.details,
        )


class InvalidSignature(StorefrontError):
    """Webhook body did not originate from the claimed provider."""

    code = ErrorCode.INVALID_SIGNATURE


class MalformedPayload(StorefrontError):
    """Verified body does not have the provider's envelope shape."""

    code = ErrorCode.MALFORMED_PAYLOAD


class ConfigurationError(StorefrontError):
    """A required secret or credential is missing."""

    code = ErrorCode.CONFIGURATION_ERROR


class MaterializationFailure(StorefrontError):
    """Extraction or transactional write failed after checks passed."""

    code = ErrorCode.MATERIALIZATION_FAILED


class StoreUnavailable(StorefrontError):
    """The document store rejected or could not serve a request."""

    code = ErrorCode.STORE_UNAVAILABLE


class InvalidStateTransition(StorefrontError):
    """Administrative retry requested for a non-retryable event."""

    code = ErrorCode.INVALID_STATE_TRANSITION


class WebhookEventNotFound(StorefrontError):
    """No ledger entry with the requested ID."""

    code = ErrorCode.WEBHOOK_EVENT_NOT_FOUND


class MissingParameter(StorefrontError):
    """Request body lacked a required field."""

    code = ErrorCode.MISSING_PARAMETER


class AuthRequired(StorefrontError):
    """No authenticated identity on the request."""

    code = ErrorCode.AUTH_REQUIRED


class AdminRequired(StorefrontError):
    """Authenticated identity lacks the admin role."""

    code = ErrorCode.ADMIN_REQUIRED

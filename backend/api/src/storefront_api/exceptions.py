"""FastAPI exception handlers for converting StorefrontError to HTTP responses.

This module provides exception handlers that convert domain errors
(StorefrontError) to HTTP responses with a consistent ErrorResponse body.

The ErrorCode-to-HTTP status mapping follows REST conventions:
- 400 Bad Request: Bad signature, malformed payload, invalid retry request
- 401 Unauthorized: Authentication required
- 403 Forbidden: Admin role required
- 404 Not Found: Unknown webhook event
- 500 Internal Server Error: Configuration, store, or materialization failures

Usage:
    from storefront_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from storefront.models.errors import ErrorCode, StorefrontError

logger = logging.getLogger(__name__)

# Map ErrorCode to HTTP status codes
ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Webhook ingestion
    ErrorCode.INVALID_SIGNATURE: HTTP_400_BAD_REQUEST,
    ErrorCode.MALFORMED_PAYLOAD: HTTP_400_BAD_REQUEST,
    ErrorCode.MATERIALIZATION_FAILED: HTTP_500_INTERNAL_SERVER_ERROR,
    # Infrastructure -> 500 so providers redeliver
    ErrorCode.CONFIGURATION_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.STORE_UNAVAILABLE: HTTP_500_INTERNAL_SERVER_ERROR,
    # Administrative retry
    ErrorCode.INVALID_STATE_TRANSITION: HTTP_400_BAD_REQUEST,
    ErrorCode.WEBHOOK_EVENT_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.MISSING_PARAMETER: HTTP_400_BAD_REQUEST,
    # Authentication / authorization
    ErrorCode.AUTH_REQUIRED: HTTP_401_UNAUTHORIZED,
    ErrorCode.ADMIN_REQUIRED: HTTP_403_FORBIDDEN,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode.

    Args:
        code: The ErrorCode to map

    Returns:
        HTTP status code, defaults to 400 if not explicitly mapped.
    """
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Handle StorefrontError exceptions and convert to JSON response.

    Args:
        request: The incoming request (unused but required by FastAPI)
        exc: The StorefrontError exception

    Returns:
        JSONResponse with error details and appropriate status code.
    """
    status_code = get_http_status_for_error(exc.code)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)

    return JSONResponse(
        status_code=status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with a generic error response.

    Args:
        request: The incoming request
        exc: The uncaught exception

    Returns:
        JSONResponse with 500 status and generic error message.
    """
    logger.exception("Unhandled exception on %s: %s", request.url.path, exc)

    # Return generic error to client (don't expose internal details)
    error_response = {
        "success": False,
        "error": "An unexpected error occurred",
        "error_code": "ERR_INTERNAL",
        "recovery": "Please try again later or contact support",
        "details": None,
    }

    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(StorefrontError, storefront_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)

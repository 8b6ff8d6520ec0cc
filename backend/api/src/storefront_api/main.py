"""FastAPI application for storefront payment webhooks.

This package provides REST endpoints for:
- Health checks
- Stripe and Coinbase Commerce webhook ingestion
- Admin inspection and retry of the webhook ledger
"""

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from storefront.services.coinbase_service import WEBHOOK_SECRET_ENV as COINBASE_SECRET_ENV
from storefront.services.stripe_service import WEBHOOK_SECRET_ENV as STRIPE_SECRET_ENV
from storefront.utils.logging import configure_logging, get_logger
from storefront_api.exceptions import register_exception_handlers
from storefront_api.middleware.correlation import CorrelationIdMiddleware
from storefront_api.routes.admin_webhooks import router as admin_webhooks_router
from storefront_api.routes.webhooks import router as webhooks_router

configure_logging()
logger = get_logger(__name__)


def warn_missing_secrets() -> list[str]:
    """Log a warning for each provider secret absent from the environment.

    The secret may still be served from SSM; this only flags that the
    environment override is not set.
    """
    missing = [
        name for name in (STRIPE_SECRET_ENV, COINBASE_SECRET_ENV) if not os.environ.get(name)
    ]
    for name in missing:
        logger.warning("%s is not set; falling back to SSM Parameter Store", name)
    return missing


app = FastAPI(
    title="Storefront Webhooks API",
    description="Payment webhook ingestion and webhook ledger administration",
    version="0.1.0",
)

# Configure CORS for the admin dashboard in local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

# Register exception handlers for consistent error responses
register_exception_handlers(app)

# Provider webhooks and admin routes are served at the root;
# providers are configured with /webhooks/<provider> URLs
app.include_router(webhooks_router)
app.include_router(admin_webhooks_router)

warn_missing_secrets()


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    """Health check endpoint at /api/ping."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "storefront-webhooks",
    }


# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Run the FastAPI server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to listen on (default: 8080)
        reload: Enable hot reload for development (default: True)
    """
    import uvicorn

    if reload:
        # Use string reference for reload mode (uvicorn requirement)
        uvicorn.run(
            "storefront_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["api/src", "shared/src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()

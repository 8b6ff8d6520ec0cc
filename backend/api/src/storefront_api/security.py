"""Caller identity for admin endpoints.

Trust Model:
- API Gateway validates the JWT using the Cognito authorizer
- After validation it injects x-user-sub, x-user-email and x-user-groups
  headers (HTTP API), or Mangum exposes the claims under
  event.requestContext.authorizer.claims (REST API)
- Backend trusts these values since they come from API Gateway, not the client
"""

import logging
from typing import Any

from fastapi import Request
from pydantic import BaseModel, Field

from storefront.models.errors import AdminRequired, AuthRequired

logger = logging.getLogger(__name__)

ADMIN_GROUP = "admin"


class Principal(BaseModel):
    """Authenticated caller as asserted by the upstream authorizer."""

    sub: str
    email: str | None = None
    groups: list[str] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return ADMIN_GROUP in self.groups

    @property
    def display_name(self) -> str:
        return self.email or self.sub


def _parse_groups(value: Any) -> list[str]:
    """Normalize a groups claim.

    Cognito delivers cognito:groups as a list, a comma-separated string,
    or a bracketed string like "[admin staff]" depending on the API type.
    """
    if not value:
        return []
    if isinstance(value, list):
        return [str(group).strip() for group in value if str(group).strip()]
    text = str(value).strip().strip("[]")
    return [group for group in text.replace(",", " ").split() if group]


def _get_claims(request: Request) -> dict[str, Any]:
    event = request.scope.get("aws.event", {}) or {}
    claims: dict[str, Any] = (
        event.get("requestContext", {}).get("authorizer", {}).get("claims", {}) or {}
    )
    return claims


def get_principal(request: Request) -> Principal | None:
    """Extract the caller from API Gateway headers or authorizer claims.

    Returns:
        Principal, or None when the request carries no identity
    """
    # Headers first (HTTP API with claim mapping)
    sub = request.headers.get("x-user-sub")
    if sub:
        return Principal(
            sub=sub.strip(),
            email=request.headers.get("x-user-email"),
            groups=_parse_groups(request.headers.get("x-user-groups")),
        )

    # Fallback: REST API with Cognito User Pools authorizer
    claims = _get_claims(request)
    if claims.get("sub"):
        return Principal(
            sub=claims["sub"],
            email=claims.get("email"),
            groups=_parse_groups(claims.get("cognito:groups")),
        )

    return None


def require_admin(request: Request) -> Principal:
    """FastAPI dependency: the caller must be signed in and an admin.

    Raises:
        AuthRequired: No identity on the request (401).
        AdminRequired: Identity is not in the admin group (403).
    """
    principal = get_principal(request)
    if principal is None:
        logger.warning("Admin endpoint %s called without identity", request.url.path)
        raise AuthRequired()

    if not principal.is_admin:
        logger.warning(
            "Non-admin %s denied access to %s", principal.display_name, request.url.path
        )
        raise AdminRequired()

    return principal

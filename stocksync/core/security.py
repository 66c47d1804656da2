"""
Request authentication for the sync service.

Two schemes:
- Inbound webhooks are signed by the platform: base64(HMAC-SHA256(secret, raw body)).
- Billing/admin endpoints carry a shared service token in X-Service-Token.
"""

import base64
import hashlib
import hmac
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from stocksync.core.config import Settings, get_settings

SERVICE_TOKEN_HEADER = "X-Service-Token"


def compute_signature(body: bytes, secret: str) -> str:
    """Signature the platform would send for this exact body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Check a webhook signature against the raw request body.

    Verification is over the bytes as received, never a re-serialised payload.
    An empty secret or signature never verifies.
    """
    if not signature or not secret:
        return False
    expected = compute_signature(body, secret)
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def get_service_caller(
    x_service_token: Optional[str] = Header(default=None, alias=SERVICE_TOKEN_HEADER),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Shared-secret check for service-to-service calls (billing, admin tooling).
    Skipped when SERVICE_SECRET is not configured.
    """
    if not settings.SERVICE_SECRET:
        return "anonymous"

    if not x_service_token or not secrets.compare_digest(
        x_service_token.encode("utf8"),
        settings.SERVICE_SECRET.encode("utf8"),
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing service token",
        )

    return "service"


def require_service_auth():
    """
    Dependency to require the service token
    Usage: app.include_router(router, dependencies=[require_service_auth()])
    """
    return Depends(get_service_caller)

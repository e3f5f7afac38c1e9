"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer verification.

Two token sources are recognised:
  1. Authorization: Bearer <token> header -- the login flow's provisioning call.
  2. JWT cookie ("access_token") -- set by the web login after a successful flow.

Verification only happens when JWT_SECRET is configured (read from
app.state.settings, populated by the lifespan). Without a secret there is
nothing to verify against and the endpoint trusts its caller.

try_get_claims() is the soft variant (returns None on failure).
require_provisioning_token() raises HTTP 401 when a secret is configured and
the request does not carry a valid bearer token.

Layer rule: no imports from web/ or accounts/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.tokens import bearer_token, decode_access_token


def _jwt_secret(request: Request) -> str:
    settings = getattr(request.app.state, "settings", None)
    return settings.jwt_secret if settings is not None else ""


def try_get_claims(request: Request) -> dict | None:
    """Return verified token claims from the Bearer header or cookie, or None.

    Never raises -- callers that need a hard 401 should use
    require_provisioning_token().
    """
    secret = _jwt_secret(request)
    if not secret:
        return None
    token = bearer_token(request.headers.get("Authorization")) or request.cookies.get("access_token")
    if not token:
        return None
    return decode_access_token(token, secret)


def require_provisioning_token(request: Request) -> dict | None:
    """Gate for POST /api/ensure-user.

    Returns None when verification is disabled (no JWT_SECRET), the verified
    claims otherwise. Raises HTTP 401 for a missing or invalid bearer token.
    Only the Authorization header counts here; the cookie is for the web UI.
    """
    secret = _jwt_secret(request)
    if not secret:
        return None
    token = bearer_token(request.headers.get("Authorization"))
    claims = decode_access_token(token, secret) if token else None
    if claims is None:
        raise HTTPException(status_code=401, detail="A valid bearer token is required.")
    return claims

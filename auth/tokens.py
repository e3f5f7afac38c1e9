"""
auth/tokens.py -- Verification of provider-issued access tokens, plus the cookie helper.

Security design decisions:
  JWT: python-jose with HS256. The identity provider signs access tokens with
       a shared project secret (JWT_SECRET). Forkline only ever verifies --
       it never mints tokens. Verification returns None on any failure; the
       dependency layer turns that into a 401.

  Audience: provider tokens carry aud="authenticated". The audience check is
       skipped because the signature already binds the token to this project.

  Subject: the `sub` claim is the provider user id, the same value the login
       flow sends as `id` to POST /api/ensure-user.

Layer rule: no imports from api/, web/, or accounts/.
"""

from __future__ import annotations

import logging

from jose import JWTError, jwt

logger = logging.getLogger("forkline.auth")

_ALGORITHM = "HS256"


def decode_access_token(token: str, secret: str) -> dict | None:
    """Decode and verify a provider JWT. Returns the payload dict or None on any failure.

    Expiry is enforced by python-jose. A token without a `sub` claim is
    treated as invalid since nothing downstream can be matched against it.
    """
    if not token or not secret:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"verify_aud": False})
    except JWTError as exc:
        logger.debug("Rejected access token: %s", exc)
        return None
    if not payload.get("sub"):
        return None
    return payload


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header value."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


def set_auth_cookie(response, token: str, expire_seconds: int, secure: bool = False) -> None:
    """Write the provider access token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": cookie sent on same-site navigations, not on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the session's expires_in so both lapse together.
    """
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=expire_seconds,
    )

"""
auth/identity.py -- HTTP client for the external identity provider.

Talks to a GoTrue-compatible REST API (the auth service behind Supabase and
friends). Forkline never stores passwords or issues tokens itself: account
creation, credential checks, and session minting all happen upstream.

Endpoints used (relative to AUTH_URL, e.g. https://<project>.supabase.co/auth/v1):
  POST /signup                     -- create account; returns a session when
                                      email confirmation is disabled
  POST /token?grant_type=password  -- sign in an existing account

Every request carries the project's public API key twice, as `apikey` and as
the bearer token, which is what GoTrue expects from anonymous callers.

Construct one IdentityClient per process (the API lifespan does this) and
share it. The client keeps no per-user state: each call returns the session
it produced instead of stashing it for a later getSession(), so concurrent
logins cannot see each other's sessions.

Layer rule: no imports from api/, web/, or accounts/.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from auth.models import AuthSession, SessionUser

logger = logging.getLogger("forkline.identity")

_TIMEOUT = 10


class AuthError(Exception):
    """The identity provider rejected a request or could not be reached.

    str(exc) is a human-readable message suitable for showing on the login form.
    """


def _error_message(resp: requests.Response) -> str:
    """Pull the provider's error text out of a non-2xx response.

    GoTrue has used several field names across versions; take the first
    that is present and fall back to the HTTP status line.
    """
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Authentication failed ({resp.status_code})"


def _parse_session(body: dict[str, Any]) -> Optional[AuthSession]:
    """Build an AuthSession from a signup/token response body.

    Returns None when the body has no access token -- signup with email
    confirmation enabled answers with the bare user object instead.
    """
    access_token = body.get("access_token")
    user = body.get("user") or {}
    if not access_token or not user.get("id"):
        return None
    return AuthSession(
        user=SessionUser(id=str(user["id"]), email=user.get("email")),
        access_token=access_token,
        token_type=body.get("token_type", "bearer"),
        expires_in=int(body.get("expires_in") or 3600),
        refresh_token=body.get("refresh_token"),
    )


class IdentityClient:
    """Thin wrapper around the provider's password endpoints.

    Usage:
        client = IdentityClient("https://xyz.supabase.co/auth/v1", api_key)
        session = client.sign_in_with_password("a@b.co", "hunter22")
        client.close()
    """

    def __init__(self, base_url: str, api_key: str, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        # One pooled session for the process lifetime. These are known
        # endpoints, so a short redirect budget is plenty.
        self._http = session or requests.Session()
        self._http.max_redirects = 3

    def _post(self, path: str, payload: dict[str, Any], params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        if not self.base_url:
            raise AuthError("Identity provider is not configured.")
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = self._http.post(
                f"{self.base_url}{path}",
                json=payload,
                params=params,
                headers=headers,
                timeout=_TIMEOUT,
            )
        except requests.RequestException as exc:
            logger.warning("Identity provider request to %s failed: %s", path, exc)
            raise AuthError("Could not reach the identity provider.") from exc
        if not resp.ok:
            message = _error_message(resp)
            logger.info("Identity provider rejected %s: %d %s", path, resp.status_code, message)
            raise AuthError(message)
        try:
            body = resp.json()
        except ValueError as exc:
            raise AuthError("Identity provider returned an unreadable response.") from exc
        return body if isinstance(body, dict) else {}

    def sign_up(self, email: str, password: str) -> Optional[AuthSession]:
        """Create an account and return its session, or None if confirmation is pending."""
        body = self._post("/signup", {"email": email, "password": password})
        return _parse_session(body)

    def sign_in_with_password(self, email: str, password: str) -> Optional[AuthSession]:
        """Authenticate an existing account and return its session."""
        body = self._post("/token", {"email": email, "password": password}, params={"grant_type": "password"})
        return _parse_session(body)

    def close(self) -> None:
        self._http.close()

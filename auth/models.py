"""
auth/models.py -- Domain dataclasses for identity provider sessions.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in accounts/models.py -- dataclasses own domain shape; clients and routes do
the work.

Layer rule: no imports from api/, web/, or accounts/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SessionUser:
    """The authenticated identity inside a provider session.

    id is the provider's stable user id (a UUID string) and becomes the
    primary key of the application users row.
    """

    id: str
    email: str | None = None


@dataclass
class AuthSession:
    """A session issued by the identity provider after sign-up or sign-in.

    access_token is a provider-signed JWT. The login flow forwards it as the
    bearer credential on the provisioning call; it is never minted here.
    """

    user: SessionUser
    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    refresh_token: str | None = None

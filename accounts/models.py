"""
accounts/models.py -- Domain dataclasses for Forkline accounts.

These are pure data containers with zero logic. Role resolution and restaurant
association live in accounts/provisioning.py; persistence in accounts/store.py.
"""

from dataclasses import dataclass
from typing import Optional

ROLE_CUSTOMER = "customer"
ROLE_STAFF = "staff"


@dataclass
class AppUser:
    """The application-level record for an identity issued by the auth provider.

    id is the provider's user id (a UUID string) and the upsert key: one row
    per identity, overwritten on every provisioning call.

    restaurant_id is only ever set for staff, and only when a restaurant
    existed at provisioning time.
    """

    id: str
    email: str
    role: str = ROLE_CUSTOMER  # "customer" | "staff"
    restaurant_id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on first insert
    updated_at: str = ""  # ISO 8601, set by store on every write


@dataclass
class Restaurant:
    """An organizational entity staff users are associated with.

    Provisioning only reads restaurants; it never creates or owns them.
    """

    id: str
    name: str
    created_at: str = ""

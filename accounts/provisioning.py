"""
accounts/provisioning.py -- Create or refresh the application user for an identity.

Called by POST /api/ensure-user after the request body has been validated.
Performs at most one read (the restaurant lookup, staff only) and exactly one
write (the users upsert). StoreError from either propagates unchanged; the
route turns it into a 500 carrying the store's message. A failed lookup
raises before the write is attempted.
"""

import logging
from typing import Optional

from accounts.models import ROLE_CUSTOMER, ROLE_STAFF, AppUser
from accounts.store import AccountStore

logger = logging.getLogger("forkline.provisioning")


def resolve_restaurant_id(store: AccountStore, role: str) -> Optional[str]:
    """Return the restaurant to associate with a user of `role`.

    Staff get the first restaurant the store returns (no filter, no
    ordering); everyone else gets None. A staff user with no restaurants
    in the store is still provisioned, unassociated.
    """
    if role != ROLE_STAFF:
        return None
    restaurant_id = store.first_restaurant_id()
    if restaurant_id is None:
        logger.info("No restaurant available to associate with new staff user")
    return restaurant_id


def provision_user(store: AccountStore, user_id: str, email: str, role: Optional[str] = None) -> AppUser:
    """Upsert the users row for `user_id` and return what was written."""
    resolved_role = role or ROLE_CUSTOMER
    user = AppUser(
        id=user_id,
        email=email,
        role=resolved_role,
        restaurant_id=resolve_restaurant_id(store, resolved_role),
    )
    store.upsert_user(user)
    logger.info("Provisioned user %s (role=%s, restaurant=%s)", user.id, user.role, user.restaurant_id)
    return user

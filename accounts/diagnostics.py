"""
accounts/diagnostics.py -- Connectivity smoke test backing the GET /test page.
"""

from accounts.store import AccountStore, StoreError


def probe_restaurants(store: AccountStore, limit: int = 1) -> str:
    """Read up to `limit` restaurants and summarize the first one.

    Returns one of:
      "Error: <message>"          -- the read failed
      "OK: <name>"                -- at least one row came back
      "OK: no restaurants found"  -- the table is empty
    """
    try:
        restaurants = store.list_restaurants(limit=limit)
    except StoreError as exc:
        return f"Error: {exc}"
    if restaurants:
        return f"OK: {restaurants[0].name}"
    return "OK: no restaurants found"

"""
accounts/store.py -- SQLAlchemy Core persistence layer for Forkline accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository; the
_row_to_* functions are the mappers. Route and service code never touches SQL
directly.

Two layers of API:
  select() / upsert()  -- generic, table-name based, mirroring the query
                          surface of the managed backend this replaces.
                          Table and column names are checked against the
                          schema before any SQL is built.
  domain helpers       -- first_restaurant_id(), upsert_user(), get_user(),
                          create_restaurant(), ping(). Built on the generic
                          layer where possible.

Errors: every failure (unknown table or column, SQLAlchemyError from the
driver) is raised as StoreError carrying the underlying message. Callers
surface that message to their own caller; nothing here retries.

Upsert is INSERT ... ON CONFLICT DO UPDATE, so it is atomic per key at the
database level. Supported on SQLite and PostgreSQL.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = AccountStore()                                # SQLite default
    store = AccountStore("postgresql://user:pw@host/db")  # PostgreSQL
    store.upsert_user(AppUser(id="...", email="a@b.co"))
    rows = store.select("restaurants", ["id", "name"], limit=1)
    store.close()
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, ForeignKey, MetaData, String, Table, create_engine, event, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from accounts.models import ROLE_CUSTOMER, AppUser, Restaurant
from core.config import DEFAULT_DB_URL


class StoreError(Exception):
    """A read or write against the backing store failed.

    str(exc) is the underlying message and is safe to hand back to API callers.
    """


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _message(exc: SQLAlchemyError) -> str:
    # DBAPIError wraps the driver exception; its message is the useful part.
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_restaurants = Table(
    "restaurants",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("created_at", String(32), nullable=False, default=_now_iso),
)

_users = Table(
    "users",
    metadata,
    Column("id", String(255), primary_key=True),  # identity provider user id
    Column("email", String(320), nullable=False),
    Column("role", String(20), nullable=False, server_default=ROLE_CUSTOMER),
    Column("restaurant_id", String(36), ForeignKey("restaurants.id")),
    Column("created_at", String(32), nullable=False, default=_now_iso),
    Column("updated_at", String(32), nullable=False, default=_now_iso),
)


def _enable_foreign_keys(dbapi_conn, connection_record) -> None:
    """SQLite ships with foreign keys off; turn them on per connection."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _row_to_user(row: dict) -> AppUser:
    return AppUser(
        id=row["id"],
        email=row["email"],
        role=row["role"],
        restaurant_id=row["restaurant_id"],
        created_at=row["created_at"] or "",
        updated_at=row["updated_at"] or "",
    )


def _row_to_restaurant(row: dict) -> Restaurant:
    return Restaurant(id=row["id"], name=row["name"], created_at=row["created_at"] or "")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for AppUser and Restaurant rows."""

    def __init__(self, db_url: str = DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_foreign_keys)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Generic query surface
    # ------------------------------------------------------------------

    def _table(self, name: str) -> Table:
        table = metadata.tables.get(name)
        if table is None:
            raise StoreError(f"Unknown table {name!r}")
        return table

    @staticmethod
    def _column(table: Table, name: str) -> Column:
        if name not in table.c:
            raise StoreError(f"Unknown column {name!r} on table {table.name!r}")
        return table.c[name]

    def select(
        self,
        table: str,
        columns: Optional[list[str]] = None,
        filters: Optional[dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Return rows of `table` as dicts.

        columns=None selects every column. filters are ANDed equality
        matches. No ORDER BY is applied: with a limit, which rows come back
        is up to the database.
        """
        tbl = self._table(table)
        cols = [self._column(tbl, c) for c in columns] if columns else list(tbl.c)
        stmt = select(*cols)
        for name, value in (filters or {}).items():
            stmt = stmt.where(self._column(tbl, name) == value)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(_message(exc)) from exc
        return [dict(r) for r in rows]

    def upsert(
        self,
        table: str,
        record: dict[str, Any],
        on_conflict: str,
        insert_only: tuple[str, ...] = (),
    ) -> None:
        """Insert `record`, or overwrite the existing row that matches on `on_conflict`.

        Only the columns present in `record` are overwritten on conflict, and
        never those named in `insert_only`. Column defaults apply to the
        insert branch only.
        """
        tbl = self._table(table)
        for name in record:
            self._column(tbl, name)
        self._column(tbl, on_conflict)

        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            stmt = sqlite.insert(tbl).values(**record)
        elif dialect == "postgresql":
            stmt = postgresql.insert(tbl).values(**record)
        else:
            raise StoreError(f"Upsert is not supported on {dialect!r}")
        stmt = stmt.on_conflict_do_update(
            index_elements=[on_conflict],
            set_={
                name: stmt.excluded[name]
                for name in record
                if name != on_conflict and name not in insert_only
            },
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(_message(exc)) from exc

    # ------------------------------------------------------------------
    # Restaurants
    # ------------------------------------------------------------------

    def first_restaurant_id(self) -> Optional[str]:
        """Return the id of one existing restaurant, or None when there are none.

        "First" is whatever the database returns first. There is no
        ordering guarantee.
        """
        rows = self.select("restaurants", ["id"], limit=1)
        return rows[0]["id"] if rows else None

    def create_restaurant(self, name: str, restaurant_id: Optional[str] = None) -> str:
        """Insert a restaurant and return its id (a new UUID unless given)."""
        rid = restaurant_id or str(uuid.uuid4())
        try:
            with self.engine.begin() as conn:
                conn.execute(_restaurants.insert().values(id=rid, name=name))
        except SQLAlchemyError as exc:
            raise StoreError(_message(exc)) from exc
        return rid

    def list_restaurants(self, limit: Optional[int] = None) -> list[Restaurant]:
        return [_row_to_restaurant(r) for r in self.select("restaurants", limit=limit)]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def upsert_user(self, user: AppUser) -> None:
        """Create or overwrite the users row for user.id.

        email, role and restaurant_id are always overwritten, so a later
        call can clear a previous restaurant association.
        """
        now = _now_iso()
        self.upsert(
            "users",
            {
                "id": user.id,
                "email": user.email,
                "role": user.role,
                "restaurant_id": user.restaurant_id,
                "created_at": now,
                "updated_at": now,
            },
            on_conflict="id",
            insert_only=("created_at",),
        )

    def get_user(self, user_id: str) -> Optional[AppUser]:
        rows = self.select("users", filters={"id": user_id}, limit=1)
        return _row_to_user(rows[0]) if rows else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()

"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as survey/store.py).
UserStore and TokenStore are the repositories; _row_to_user / _row_to_token
are the mappers. Route and guard code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Sort columns come from _USER_SORT_COLUMNS, keyed by the allow-listed names
  in core.filters -- never from the raw client string.

  Tokens are stored by HMAC hash only; see auth/tokens.py.

Invariant:
  A user row without a password hash is a programming error. create_user()
  and update_user() raise InvariantViolation before touching the database.

Concurrency:
  update_user() is a compare-and-swap on the version column. Zero matched
  rows means someone else wrote first -> EditConflict. No retry here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import (
    Boolean,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.credentials import Password
from auth.models import Token, User
from core.database import MAX_ID, make_engine, now_iso, store_errors
from core.errors import AppError, DuplicateEmail, EditConflict, InvariantViolation, NotFound, StoreError
from core.filters import Filters

logger = logging.getLogger("surveyor.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("name", String(500), nullable=False),
    Column("surname", String(500), nullable=False, server_default=""),
    Column("username", String(100), unique=True),  # NULL when not given
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("activated", Boolean, nullable=False, server_default="0"),
    Column("version", Integer, nullable=False, server_default="1"),
)

_tokens = Table(
    "tokens",
    _metadata,
    Column("token_hash", String(64), primary_key=True),  # HMAC-SHA256 hex
    Column("user_id", Integer, nullable=False),
    Column("scope", String(20), nullable=False),
    Column("expiry", String(32), nullable=False),
    Index("ix_tokens_user_scope", "user_id", "scope"),
)

_permissions = Table(
    "user_permissions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("code", String(100), nullable=False),
    UniqueConstraint("user_id", "code", name="uq_user_permission"),
)

# Allow-listed sort names (see USER_SORT_FIELDS) -> columns.
_USER_SORT_COLUMNS = {
    "id": _users.c.id,
    "createdAt": _users.c.created_at,
    "name": _users.c.name,
    "surname": _users.c.surname,
    "username": _users.c.username,
}
USER_SORT_FIELDS = frozenset(_USER_SORT_COLUMNS)


def _require_hash(user: User) -> None:
    if not user.password.hash:
        raise InvariantViolation(f"refusing to persist user {user.email!r} without a password hash")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their permission codes.

    Usage:
        store = UserStore("sqlite:///surveyor.db")
        user = User(name="Ada", email="ada@example.com")
        user.password.set("correct horse")
        store.create_user(user)          # fills id, version, timestamps
        store.get_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str, timeout: float = 3.0, engine: Engine | None = None) -> None:
        self.engine: Engine = engine or make_engine(db_url, timeout)
        _metadata.create_all(self.engine)

    def create_user(
        self,
        user: User,
        permissions: Iterable[str] = (),
        tokens: Iterable[Token] = (),
    ) -> int:
        """Insert user, fill in its generated fields, and return the new id.

        permissions and tokens are written in the same transaction, each
        token's user_id set to the new id. Either everything lands or nothing.

        Raises DuplicateEmail if the email or username is already taken.
        """
        _require_hash(user)
        codes = list(dict.fromkeys(permissions))
        tokens = list(tokens)
        now = now_iso()
        with store_errors("users.insert"):
            try:
                with self.engine.begin() as conn:
                    result = conn.execute(
                        _users.insert().values(
                            created_at=now,
                            updated_at=now,
                            name=user.name,
                            surname=user.surname,
                            username=user.username or None,
                            email=user.email,
                            password_hash=user.password.hash,
                            activated=user.activated,
                            version=1,
                        )
                    )
                    user_id = result.inserted_primary_key[0]
                    if codes:
                        conn.execute(_permissions.insert(), [{"user_id": user_id, "code": c} for c in codes])
                    for token in tokens:
                        token.user_id = user_id
                    if tokens:
                        conn.execute(
                            _tokens.insert(),
                            [
                                {"token_hash": t.token_hash, "user_id": user_id, "scope": t.scope, "expiry": t.expiry}
                                for t in tokens
                            ],
                        )
            except IntegrityError as exc:
                raise self._duplicate_error(user) from exc
        user.id = user_id
        user.created_at = now
        user.updated_at = now
        user.version = 1
        return user.id

    def _duplicate_error(self, user: User) -> AppError:
        holder = self.get_by_email(user.email)
        if holder is not None and holder.id != user.id:
            return DuplicateEmail(
                "a user with this email address already exists",
                details={"email": "a user with this email address already exists"},
            )
        if user.username and self._username_taken(user.username, user.id):
            return DuplicateEmail(
                "a user with this username already exists",
                code="duplicate_username",
                details={"username": "a user with this username already exists"},
            )
        # Neither unique user column collided, so a permission or token row did.
        return StoreError(f"constraint violated while writing user {user.email!r}")

    def _username_taken(self, username: str, user_id: int | None) -> bool:
        query = select(_users.c.id).where(_users.c.username == username)
        if user_id is not None:
            query = query.where(_users.c.id != user_id)
        with store_errors("users.get_by_username"):
            with self.engine.connect() as conn:
                return conn.execute(query).first() is not None

    def get_by_id(self, user_id: int) -> User | None:
        if not 1 <= user_id <= MAX_ID:
            return None
        with store_errors("users.get"):
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with store_errors("users.get_by_email"):
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user: User) -> None:
        """Write all mutable fields if user.version still matches the stored row.

        On success user.version and user.updated_at are refreshed in place.
        Raises EditConflict if the row changed (or vanished) since it was read.
        """
        _require_hash(user)
        now = now_iso()
        with store_errors("users.update"):
            try:
                with self.engine.begin() as conn:
                    result = conn.execute(
                        _users.update()
                        .where((_users.c.id == user.id) & (_users.c.version == user.version))
                        .values(
                            name=user.name,
                            surname=user.surname,
                            username=user.username or None,
                            email=user.email,
                            password_hash=user.password.hash,
                            activated=user.activated,
                            updated_at=now,
                            version=_users.c.version + 1,
                        )
                    )
            except IntegrityError as exc:
                raise self._duplicate_error(user) from exc
        if result.rowcount == 0:
            raise EditConflict("unable to update the record due to an edit conflict, please try again")
        user.version += 1
        user.updated_at = now

    def delete_user(self, user_id: int) -> None:
        """Delete a user with its tokens and permissions. NotFound if absent."""
        with store_errors("users.delete"):
            with self.engine.begin() as conn:
                result = conn.execute(_users.delete().where(_users.c.id == user_id))
                conn.execute(_tokens.delete().where(_tokens.c.user_id == user_id))
                conn.execute(_permissions.delete().where(_permissions.c.user_id == user_id))
        if result.rowcount == 0:
            raise NotFound("user not found")

    def list_users(self, filters: Filters, name: str = "") -> tuple[list[User], int]:
        """Return one page of users plus the total matching count.

        name filters case-insensitively on exact name; "" disables it.
        """
        condition = func.lower(_users.c.name) == name.lower() if name else None
        column = _USER_SORT_COLUMNS[filters.sort_field]
        order = column.desc() if filters.descending else column.asc()
        query = _users.select().order_by(order, _users.c.id.asc()).limit(filters.limit).offset(filters.offset)
        count = select(func.count()).select_from(_users)
        if condition is not None:
            query = query.where(condition)
            count = count.where(condition)
        with store_errors("users.list"):
            with self.engine.connect() as conn:
                total = conn.execute(count).scalar() or 0
                rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows], total

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def add_permissions(self, user_id: int, *codes: str) -> None:
        """Grant codes to a user. Codes the user already holds are skipped."""
        held = set(self.get_permissions(user_id))
        missing = [c for c in codes if c not in held]
        if not missing:
            return
        with store_errors("permissions.insert"):
            with self.engine.begin() as conn:
                conn.execute(_permissions.insert(), [{"user_id": user_id, "code": c} for c in missing])

    def get_permissions(self, user_id: int) -> list[str]:
        with store_errors("permissions.list"):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(_permissions.c.code).where(_permissions.c.user_id == user_id).order_by(_permissions.c.code)
                ).fetchall()
        return [r.code for r in rows]

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with store_errors("users.ping"):
            with self.engine.connect() as conn:
                conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenStore:
    """Repository for Token records, keyed by token hash."""

    def __init__(self, db_url: str, timeout: float = 3.0, engine: Engine | None = None) -> None:
        self.engine: Engine = engine or make_engine(db_url, timeout)
        _metadata.create_all(self.engine)

    def insert(self, token: Token) -> None:
        with store_errors("tokens.insert"):
            with self.engine.begin() as conn:
                conn.execute(
                    _tokens.insert().values(
                        token_hash=token.token_hash,
                        user_id=token.user_id,
                        scope=token.scope,
                        expiry=token.expiry,
                    )
                )

    def get_by_hash(self, token_hash: str) -> Token | None:
        with store_errors("tokens.get"):
            with self.engine.connect() as conn:
                row = conn.execute(_tokens.select().where(_tokens.c.token_hash == token_hash)).fetchone()
        return _row_to_token(row) if row is not None else None

    def delete_all_for_user(self, scope: str, user_id: int) -> int:
        with store_errors("tokens.delete_for_user"):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _tokens.delete().where((_tokens.c.scope == scope) & (_tokens.c.user_id == user_id))
                )
        return result.rowcount

    def delete_expired(self, now: str) -> int:
        """Delete tokens whose expiry is at or before now (ISO 8601 UTC)."""
        with store_errors("tokens.delete_expired"):
            with self.engine.begin() as conn:
                result = conn.execute(_tokens.delete().where(_tokens.c.expiry <= now))
        return result.rowcount

    def count_for_user(self, user_id: int, scope: str) -> int:
        with store_errors("tokens.count"):
            with self.engine.connect() as conn:
                total = conn.execute(
                    select(func.count())
                    .select_from(_tokens)
                    .where((_tokens.c.user_id == user_id) & (_tokens.c.scope == scope))
                ).scalar()
        return total or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        name=row.name,
        surname=row.surname or "",
        username=row.username or "",
        email=row.email,
        password=Password(hash=row.password_hash),
        activated=bool(row.activated),
        version=row.version,
    )


def _row_to_token(row) -> Token:
    return Token(
        token_hash=row.token_hash,
        user_id=row.user_id,
        scope=row.scope,
        expiry=row.expiry,
    )

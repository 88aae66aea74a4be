"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container). Stores and services do the work;
the only behaviour here lives on Password (auth/credentials.py).

Layer rule: no imports from api/ or survey/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from auth.credentials import Password

SCOPE_ACTIVATION = "activation"
SCOPE_AUTHENTICATION = "authentication"
SCOPES = frozenset({SCOPE_ACTIVATION, SCOPE_AUTHENTICATION})

PERMISSION_ANSWER = "questionnaire:answer"


@dataclass
class User:
    """A registered account.

    email and username are both unique. password.hash must be set before the
    record is persisted; password.plaintext is only ever set in memory.
    version is the optimistic-concurrency counter bumped on every update.
    """

    name: str
    email: str
    surname: str = ""
    username: str = ""
    password: Password = field(default_factory=Password)
    activated: bool = False
    id: int | None = None
    version: int = 1
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Token:
    """A stored token record. The plaintext is never part of it.

    token_hash is HMAC-SHA256(SECRET_KEY, plaintext) as hex.
    expiry is an ISO 8601 UTC timestamp.
    """

    token_hash: str
    user_id: int
    scope: str
    expiry: str


@dataclass(frozen=True)
class IssuedToken:
    """What issue() hands back: the only object that ever holds the plaintext."""

    plaintext: str
    user_id: int
    scope: str
    expiry: str

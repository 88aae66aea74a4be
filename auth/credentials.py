"""
auth/credentials.py -- The password credential carried by a User.

Password holds two things with different lifetimes:
  plaintext -- the secret the client sent, kept only on the in-memory instance
               while the request is validated. None means "no secret provided"
               (e.g. a user loaded from the store). Never serialized, never stored.
  hash      -- the bcrypt hash. This is the only part a store persists.

bcrypt is used directly (no passlib wrapper). bcrypt only reads the first 72
bytes of its input, so longer secrets are refused here with HashingError
rather than silently truncated. The API layer caps passwords at 72 bytes so
clients see a 400 first. A longer candidate can never match a stored hash,
so verify_password() answers False for it without calling bcrypt.

Layer rule: no imports from api/ or survey/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import bcrypt

from core.errors import HashingError, VerificationError


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    if len(plain.encode("utf-8")) > 72:
        raise HashingError("password exceeds the 72-byte bcrypt limit")
    try:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    except (ValueError, TypeError) as exc:
        raise HashingError("could not hash password") from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if plain matches hashed, False on mismatch.

    Raises VerificationError if hashed is not a usable bcrypt hash.
    """
    if not hashed:
        raise VerificationError("stored password hash is missing")
    if len(plain.encode("utf-8")) > 72:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError as exc:
        raise VerificationError("stored password hash is malformed") from exc


@dataclass
class Password:
    hash: Optional[str] = None
    plaintext: Optional[str] = field(default=None, repr=False, compare=False)

    def set(self, plaintext: str) -> None:
        """Hash plaintext and keep it transiently for validation."""
        self.hash = hash_password(plaintext)
        self.plaintext = plaintext

    def matches(self, plaintext: str) -> bool:
        return verify_password(plaintext, self.hash or "")

    def clear(self) -> None:
        """Drop the transient plaintext once validation is done."""
        self.plaintext = None


# Timing equalization dummy hash.
# Computed once at module load. Login always runs bcrypt, even when the email
# does not exist, so response time does not reveal which emails are registered.
_DUMMY_HASH: str = hash_password("surveyor_timing_dummy")


def burn_dummy_check(plain: str) -> None:
    """Run one bcrypt comparison against a fixed hash and discard the result."""
    verify_password(plain, _DUMMY_HASH)

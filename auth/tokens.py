"""
auth/tokens.py -- Opaque bearer token issuing, verification, and revocation.

Security design decisions:
  Plaintext: 16 bytes from secrets.token_bytes() (128 bits of entropy),
       base32 encoded without padding -> always 26 characters over A-Z2-7.
       The plaintext is handed to the caller exactly once, on IssuedToken,
       and is never stored or logged.

  At rest: HMAC-SHA256(SECRET_KEY, plaintext) as hex. The hash is
       deterministic, so lookup is a primary-key hit. bcrypt's intentional
       slowness is unnecessary for 128-bit random secrets. An attacker who
       obtains the DB cannot replay tokens without also knowing SECRET_KEY.

  Fail fast: verify() checks length and alphabet before hashing, so garbage
       client input never reaches the store.

Lifecycle per token:  issued -> consumed (revoke_all) | expired | revoked

Layer rule: no imports from api/ or survey/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import re
import secrets
from datetime import timedelta

from auth.models import SCOPES, IssuedToken, Token
from auth.store import TokenStore
from core.database import parse_iso, utcnow
from core.errors import MalformedToken, ScopeMismatch, TokenExpired, TokenNotFound

logger = logging.getLogger("surveyor.auth")

TOKEN_BYTES = 16
TOKEN_LENGTH = 26
_TOKEN_RE = re.compile(r"^[A-Z2-7]{26}$")


def generate_plaintext() -> str:
    """Return a fresh 26-character base32 token (no padding)."""
    raw = secrets.token_bytes(TOKEN_BYTES)
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def hash_token(plaintext: str, secret_key: str) -> str:
    """Return HMAC-SHA256(secret_key, plaintext) as a hex string."""
    return hmac.new(secret_key.encode(), plaintext.encode(), hashlib.sha256).hexdigest()


def check_plaintext(plaintext: str) -> None:
    """Raise MalformedToken unless plaintext has the issued shape."""
    if not plaintext:
        raise MalformedToken("token must be provided", details={"token": "must be provided"})
    if len(plaintext) != TOKEN_LENGTH:
        raise MalformedToken("token has the wrong length", details={"token": f"must be {TOKEN_LENGTH} bytes long"})
    if not _TOKEN_RE.match(plaintext):
        raise MalformedToken("token has invalid characters", details={"token": "must be base32 (A-Z, 2-7)"})


class TokenIssuer:
    """Issues, verifies, and revokes scoped tokens against a TokenStore.

    Usage:
        issuer = TokenIssuer(token_store, settings.secret_key)
        issued = issuer.issue(user.id, timedelta(days=3), SCOPE_ACTIVATION)
        user_id = issuer.verify(issued.plaintext, SCOPE_ACTIVATION)
        issuer.revoke_all(user_id, SCOPE_ACTIVATION)
    """

    def __init__(self, store: TokenStore, secret_key: str) -> None:
        self.store = store
        self._secret_key = secret_key

    def prepare(self, ttl: timedelta, scope: str) -> tuple[str, Token]:
        """Return (plaintext, unsaved Token) for a caller that persists it itself.

        Token.user_id is 0 until the caller assigns the owner. Used when the
        token must be written in the same transaction as its user.
        """
        if scope not in SCOPES:
            raise ValueError(f"unknown token scope {scope!r}")
        plaintext = generate_plaintext()
        expiry = (utcnow() + ttl).isoformat(timespec="microseconds")
        token = Token(
            token_hash=hash_token(plaintext, self._secret_key),
            user_id=0,
            scope=scope,
            expiry=expiry,
        )
        return plaintext, token

    def issue(self, user_id: int, ttl: timedelta, scope: str) -> IssuedToken:
        """Create and persist a token. A ttl <= 0 yields an already-expired token."""
        plaintext, token = self.prepare(ttl, scope)
        token.user_id = user_id
        self.store.insert(token)
        logger.info("Issued %s token for user_id=%s (expires %s)", scope, user_id, token.expiry)
        return IssuedToken(plaintext=plaintext, user_id=user_id, scope=scope, expiry=token.expiry)

    def verify(self, plaintext: str, scope: str) -> int:
        """Return the owning user id of a live token in the given scope.

        Raises, in check order:
          MalformedToken -- wrong length/alphabet (no store lookup made)
          TokenNotFound  -- no record with this hash
          TokenExpired   -- now >= expiry
          ScopeMismatch  -- record scope differs from scope
        """
        check_plaintext(plaintext)
        token = self.store.get_by_hash(hash_token(plaintext, self._secret_key))
        if token is None:
            raise TokenNotFound("invalid or unknown token")
        if utcnow() >= parse_iso(token.expiry):
            raise TokenExpired("token has expired")
        if token.scope != scope:
            raise ScopeMismatch(f"token is not valid for {scope}")
        return token.user_id

    def revoke_all(self, user_id: int, scope: str) -> int:
        """Delete every token of scope for user_id. Returns the count removed."""
        removed = self.store.delete_all_for_user(scope, user_id)
        logger.info("Revoked %d %s token(s) for user_id=%s", removed, scope, user_id)
        return removed

    def purge_expired(self) -> int:
        removed = self.store.delete_expired(utcnow().isoformat(timespec="microseconds"))
        logger.info("Purged %d expired token(s)", removed)
        return removed

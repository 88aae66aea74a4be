"""
auth/guard.py -- Authorization decisions, free of any HTTP framework.

  authenticate()       "Bearer <token>" header -> User, or Unauthorized
  require_ownership()  owner-only mutation check -> Forbidden
  require_activated()  confirmed-identity check  -> Forbidden
  require_permission() permission-code check     -> Forbidden

auth/dependencies.py wraps authenticate() as a FastAPI dependency. The
activation and permission checks are building blocks for routes that need a
confirmed identity; creating and reading questionnaires and answers does not.

Ordering rule for mutations: the caller fetches the resource first and only
then calls require_ownership(). A missing resource must report NotFound, not
Forbidden, so callers cannot discover which ids exist.
"""

from __future__ import annotations

import logging

from auth.models import SCOPE_AUTHENTICATION, User
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.errors import AppError, Forbidden, MalformedHeader, Unauthorized

logger = logging.getLogger("surveyor.auth")


def parse_bearer(header: str | None) -> str:
    """Return the token part of an Authorization header value.

    Raises MalformedHeader unless the value is exactly "Bearer <token>".
    """
    parts = (header or "").split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise MalformedHeader("invalid or missing authentication token")
    return parts[1]


def authenticate(header: str | None, issuer: TokenIssuer, users: UserStore) -> User:
    """Resolve the acting user from an Authorization header.

    Every verifier failure (malformed, unknown, expired, wrong scope) is
    collapsed into Unauthorized so clients learn nothing about which check
    failed. A token whose user has since been deleted is also Unauthorized.
    """
    token = parse_bearer(header)
    try:
        user_id = issuer.verify(token, SCOPE_AUTHENTICATION)
    except AppError as exc:
        if exc.status_code >= 500:
            raise
        logger.info("Rejected bearer token: %s", exc.code)
        raise Unauthorized("invalid or missing authentication token") from exc
    user = users.get_by_id(user_id)
    if user is None:
        raise Unauthorized("invalid or missing authentication token")
    return user


def require_ownership(resource, acting_user_id: int) -> None:
    """Raise Forbidden unless resource.user_id is the acting user.

    resource is any owned record (Questionnaire, Answer) that has already been
    fetched from its store.
    """
    if resource.user_id != acting_user_id:
        logger.warning(
            "Ownership check failed: user_id=%s on %s id=%s owned by %s",
            acting_user_id,
            type(resource).__name__,
            getattr(resource, "id", None),
            resource.user_id,
        )
        raise Forbidden("you do not have permission to modify this resource")


def require_activated(user: User) -> None:
    if not user.activated:
        raise Forbidden("your user account must be activated to access this resource", code="inactive_account")


def require_permission(user: User, code: str, users: UserStore) -> None:
    if code not in users.get_permissions(user.id):
        raise Forbidden(f"your user account lacks the {code!r} permission", code="missing_permission")

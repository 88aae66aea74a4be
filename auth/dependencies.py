"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

One auth method: the Authorization: Bearer <token> header, verified against
stored authentication-scope tokens (see auth/tokens.py).

get_current_user() resolves the user (401 on failure) and also stores it on
request.state.user for downstream handlers and middleware. Any authenticated
user may create and read questionnaires and answers; ownership checks for
edits live in the route handlers (auth.guard.require_ownership).

Errors are raised as core.errors types; api/main.py maps them to responses.

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/ or survey/.
"""

from __future__ import annotations

from fastapi import Request

from auth import guard
from auth.models import User
from auth.store import UserStore
from auth.tokens import TokenIssuer


def get_current_user(request: Request) -> User:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    issuer: TokenIssuer = request.app.state.token_issuer
    users: UserStore = request.app.state.user_store
    user = guard.authenticate(request.headers.get("Authorization"), issuer, users)
    request.state.user = user
    return user

"""
api/routes/v1/users.py -- Registration, activation, login, and user lookup.

Routes:
  POST /api/v1/users/register   -- create account; returns activation token (public)
  PUT  /api/v1/users/activated  -- consume activation token (public)
  POST /api/v1/users/login      -- password login; returns authentication token (public)
  GET  /api/v1/users/me         -- current user (requires auth)
  GET  /api/v1/users            -- filtered, paginated list (requires auth)
  GET  /api/v1/users/{user_id}  -- single user (requires auth)

Security:
  POST /register and POST /login are rate-limited per IP.
  Login runs bcrypt whether or not the email exists (timing equalization) and
  returns one generic error for unknown email and wrong password.
  Token plaintexts appear in a response body exactly once, at issue time.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, register_limit
from api.models import (
    ActivateRequest,
    LoginRequest,
    PageMetadata,
    RegisterResponse,
    TokenResponse,
    UserList,
    UserRegister,
    UserResponse,
)
from api.params import list_filters
from auth.credentials import burn_dummy_check
from auth.dependencies import get_current_user
from auth.models import PERMISSION_ANSWER, SCOPE_ACTIVATION, SCOPE_AUTHENTICATION, User
from auth.store import USER_SORT_FIELDS, UserStore
from auth.tokens import TokenIssuer
from core.database import MAX_ID
from core.errors import NotFound, Unauthorized
from core.filters import Filters, compute_metadata

logger = logging.getLogger("surveyor.api")

# Auth policy:
# - POST /users/register, PUT /users/activated, POST /users/login: public
# - everything else: requires a bearer token (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(register_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/users/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: UserRegister) -> JSONResponse:
    """Create an inactive account and issue its activation token.

    New accounts are granted the questionnaire:answer permission. There is no
    mail delivery: the activation token is returned in the response body.
    """
    users: UserStore = request.app.state.user_store
    issuer: TokenIssuer = request.app.state.token_issuer
    settings = request.app.state.settings

    user = User(
        name=body.name,
        surname=body.surname,
        username=body.username,
        email=body.email,
        activated=False,
    )
    user.password.set(body.password)
    user.password.clear()
    # Account, permission and activation token commit together or not at all.
    plaintext, token = issuer.prepare(timedelta(seconds=settings.activation_token_ttl_seconds), SCOPE_ACTIVATION)
    users.create_user(user, permissions=(PERMISSION_ANSWER,), tokens=(token,))
    logger.info("Registered user_id=%s", user.id)

    resp = JSONResponse(
        status_code=201,
        content=RegisterResponse(
            user=UserResponse.from_user(user),
            activation_token=TokenResponse(token=plaintext, expiry=token.expiry),
        ).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.put("/users/activated", response_model=UserResponse)
def activate(request: Request, body: ActivateRequest) -> UserResponse:
    """Activate the account that owns an activation token.

    On success every activation token of that user is deleted, so the same
    token (or any sibling) cannot be replayed. Replaying yields 404.
    """
    users: UserStore = request.app.state.user_store
    issuer: TokenIssuer = request.app.state.token_issuer

    user_id = issuer.verify(body.token, SCOPE_ACTIVATION)
    user = users.get_by_id(user_id)
    if user is None:
        raise NotFound("user not found")

    user.activated = True
    users.update_user(user)
    issuer.revoke_all(user.id, SCOPE_ACTIVATION)
    logger.info("Activated user_id=%s", user.id)
    return UserResponse.from_user(user)


@limiter.limit(login_limit)
@router.post("/users/login", response_model=TokenResponse, status_code=201)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Exchange email and password for an authentication-scope token."""
    users: UserStore = request.app.state.user_store
    issuer: TokenIssuer = request.app.state.token_issuer
    settings = request.app.state.settings

    user = users.get_by_email(body.email)
    if user is None:
        # Equalize timing -- do NOT return before running bcrypt.
        burn_dummy_check(body.password)
        raise Unauthorized("invalid authentication credentials", code="bad_credentials")
    if not user.password.matches(body.password):
        raise Unauthorized("invalid authentication credentials", code="bad_credentials")

    issued = issuer.issue(user.id, timedelta(seconds=settings.auth_token_ttl_seconds), SCOPE_AUTHENTICATION)
    resp = JSONResponse(
        status_code=201,
        content=TokenResponse(token=issued.plaintext, expiry=issued.expiry).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/users/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.get("/users", response_model=UserList)
def list_users(
    request: Request,
    name: str = Query(default="", max_length=500),
    filters: Filters = Depends(list_filters(USER_SORT_FIELDS)),
    current_user: User = Depends(get_current_user),
) -> UserList:
    """List users. Sortable by: id, createdAt, name, surname, username."""
    users: UserStore = request.app.state.user_store
    rows, total = users.list_users(filters, name=name)
    return UserList(
        metadata=PageMetadata.from_metadata(compute_metadata(total, filters.page, filters.page_size)),
        users=[UserResponse.from_user(u) for u in rows],
    )


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    request: Request,
    user_id: int = Path(ge=1, le=MAX_ID),
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    users: UserStore = request.app.state.user_store
    user = users.get_by_id(user_id)
    if user is None:
        raise NotFound("user not found")
    return UserResponse.from_user(user)

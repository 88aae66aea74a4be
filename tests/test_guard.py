"""Unit tests for auth/guard.py -- authentication and authorization decisions.

Covers:
- parse_bearer() accepts exactly "Bearer <token>"
- authenticate() resolves the user behind a live authentication token
- authenticate() collapses every verifier failure into Unauthorized
- require_ownership() / require_activated() / require_permission() -> Forbidden
"""

import uuid
from datetime import timedelta

import pytest

from auth.guard import authenticate, parse_bearer, require_activated, require_ownership, require_permission
from auth.models import PERMISSION_ANSWER, SCOPE_ACTIVATION, SCOPE_AUTHENTICATION, User
from auth.store import TokenStore, UserStore
from auth.tokens import TokenIssuer
from core.errors import Forbidden, MalformedHeader, Unauthorized
from survey.models import Questionnaire

SECRET = "unit-test-secret-key-with-32-plus-chars"
DB_URL = "sqlite:///file:test_guard?mode=memory&cache=shared&uri=true"


@pytest.fixture
def env():
    """(users, issuer, user) over one shared in-memory DB."""
    users = UserStore(DB_URL)
    tokens = TokenStore(DB_URL)
    user = User(name="Grace", email=f"grace-{uuid.uuid4().hex[:8]}@example.com", activated=True)
    user.password.set("pa55word-123")
    users.create_user(user)
    yield users, TokenIssuer(tokens, SECRET), user
    tokens.close()
    users.close()


class TestParseBearer:
    def test_valid(self):
        assert parse_bearer("Bearer ABC") == "ABC"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer ", "bearer ABC", "Token ABC", "Bearer A B"])
    def test_invalid(self, header):
        with pytest.raises(MalformedHeader) as exc_info:
            parse_bearer(header)
        assert exc_info.value.status_code == 401


class TestAuthenticate:
    def test_live_token(self, env):
        users, issuer, user = env
        issued = issuer.issue(user.id, timedelta(hours=1), SCOPE_AUTHENTICATION)
        assert authenticate(f"Bearer {issued.plaintext}", issuer, users).id == user.id

    def test_malformed_token_is_unauthorized(self, env):
        users, issuer, _ = env
        with pytest.raises(Unauthorized):
            authenticate("Bearer not-a-token", issuer, users)

    def test_expired_token_is_unauthorized(self, env):
        users, issuer, user = env
        issued = issuer.issue(user.id, timedelta(seconds=-1), SCOPE_AUTHENTICATION)
        with pytest.raises(Unauthorized):
            authenticate(f"Bearer {issued.plaintext}", issuer, users)

    def test_activation_token_is_not_a_login(self, env):
        users, issuer, user = env
        issued = issuer.issue(user.id, timedelta(hours=1), SCOPE_ACTIVATION)
        with pytest.raises(Unauthorized):
            authenticate(f"Bearer {issued.plaintext}", issuer, users)

    def test_deleted_user_is_unauthorized(self, env):
        users, issuer, user = env
        issued = issuer.issue(user.id, timedelta(hours=1), SCOPE_AUTHENTICATION)
        users.delete_user(user.id)
        with pytest.raises(Unauthorized):
            authenticate(f"Bearer {issued.plaintext}", issuer, users)


class TestAuthorization:
    def test_owner_passes(self):
        require_ownership(Questionnaire(topic="t", user_id=5, id=1), 5)

    def test_non_owner_forbidden(self):
        with pytest.raises(Forbidden):
            require_ownership(Questionnaire(topic="t", user_id=5, id=1), 6)

    def test_inactive_user_forbidden(self):
        with pytest.raises(Forbidden) as exc_info:
            require_activated(User(name="n", email="e@example.com", activated=False))
        assert exc_info.value.code == "inactive_account"

    def test_permission(self, env):
        users, _, user = env
        with pytest.raises(Forbidden) as exc_info:
            require_permission(user, PERMISSION_ANSWER, users)
        assert exc_info.value.code == "missing_permission"
        users.add_permissions(user.id, PERMISSION_ANSWER)
        require_permission(user, PERMISSION_ANSWER, users)

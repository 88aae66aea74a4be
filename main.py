#!/usr/bin/env python3
"""
Surveyor -- Questionnaires and answers behind a token-authenticated JSON API.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py seed
  python main.py seed --email ada@example.com --password "correct horse"
  python main.py purge-tokens

Environment variables:
  DATABASE_URL  SQLAlchemy URL. Defaults to a SQLite file next to this script.
  SECRET_KEY    HMAC key for tokens at rest. Required unless DEBUG=true.
  DEBUG         true to auto-generate SECRET_KEY for local development.
"""

import argparse
import sys
from datetime import timedelta

from auth.models import PERMISSION_ANSWER, SCOPE_AUTHENTICATION, User
from auth.store import TokenStore, UserStore
from auth.tokens import TokenIssuer
from core.config import get_settings
from core.errors import AppError
from survey.models import Questionnaire
from survey.store import SurveyStore

_SAMPLE_QUESTIONNAIRES = [
    ("Onboarding", "How did you hear about us?\nWas setup straightforward?"),
    ("Onboarding", "What nearly stopped you from signing up?"),
    ("Product", "Which feature do you use most?\nWhich feature is missing?"),
]


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _seed(args: argparse.Namespace) -> int:
    """Create an activated demo user, a few questionnaires, and a login token."""
    settings = get_settings()
    users = UserStore(settings.database_url, timeout=settings.store_timeout_seconds)
    surveys = SurveyStore(settings.database_url, timeout=settings.store_timeout_seconds)
    issuer = TokenIssuer(
        TokenStore(settings.database_url, timeout=settings.store_timeout_seconds),
        settings.secret_key,
    )
    try:
        user = User(name="Demo", surname="User", email=args.email, activated=True)
        user.password.set(args.password)
        user.password.clear()
        try:
            users.create_user(user, permissions=(PERMISSION_ANSWER,))
        except AppError as exc:
            print(f"  [!] {exc.message}")
            return 1

        for topic, questions in _SAMPLE_QUESTIONNAIRES:
            surveys.create_questionnaire(Questionnaire(topic=topic, questions=questions, user_id=user.id))

        issued = issuer.issue(user.id, timedelta(seconds=settings.auth_token_ttl_seconds), SCOPE_AUTHENTICATION)
        print(f"  Created user {user.email} (id={user.id}) with {len(_SAMPLE_QUESTIONNAIRES)} questionnaires.")
        print(f"  Bearer token: {issued.plaintext}")
        print(f"  Expires:      {issued.expiry}")
        return 0
    finally:
        issuer.store.close()
        surveys.close()
        users.close()


def _purge_tokens(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = TokenStore(settings.database_url, timeout=settings.store_timeout_seconds)
    try:
        removed = TokenIssuer(store, settings.secret_key).purge_expired()
    finally:
        store.close()
    print(f"  Removed {removed} expired token(s).")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="surveyor",
        description="Questionnaires and answers behind a token-authenticated JSON API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  DATABASE_URL=postgresql://surveyor@localhost/surveyor python main.py serve
  python main.py seed --email demo@example.com
  python main.py purge-tokens
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(func=_serve)

    seed = sub.add_parser("seed", help="Create a demo user with sample questionnaires")
    seed.add_argument("--email", default="demo@example.com", help="Demo account email")
    seed.add_argument("--password", default="demo-password", help="Demo account password (8-72 bytes)")
    seed.set_defaults(func=_seed)

    purge = sub.add_parser("purge-tokens", help="Delete expired tokens from the store")
    purge.set_defaults(func=_purge_tokens)

    args = parser.parse_args()
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

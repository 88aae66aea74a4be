"""
api/params.py -- Shared query/header parameter dependencies for v1 routes.

list_filters(allow_list) turns ?sort=&page=&pageSize= into a validated
core.filters.Filters. Bad values raise InvalidSort / ValidationError, which
api/main.py maps to 400 -- FastAPI only checks that page/pageSize are ints.

expected_version() reads the optional X-Expected-Version header that clients
send on PATCH to state which record version they last read.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from fastapi import Header, Query, Request

from core.errors import EditConflict
from core.filters import Filters, build_filters


def list_filters(allow_list: frozenset[str]) -> Callable[..., Filters]:
    """Return a dependency that builds Filters for a resource's allow-list."""

    def dependency(
        request: Request,
        sort: Optional[str] = Query(default=None, max_length=50),
        page: Optional[int] = Query(default=None),
        page_size: Optional[int] = Query(default=None, alias="pageSize"),
    ) -> Filters:
        settings = request.app.state.settings
        return build_filters(
            allow_list,
            sort=sort,
            page=page,
            page_size=page_size,
            default_page_size=settings.default_page_size,
            max_page_size=settings.max_page_size,
        )

    return dependency


def expected_version(x_expected_version: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_expected_version


def check_expected_version(expected: Optional[str], current: int) -> None:
    """Raise EditConflict if the client read a different version than the store holds."""
    if expected is not None and expected.strip() != str(current):
        raise EditConflict("the record has changed since you last read it, please re-fetch and try again")

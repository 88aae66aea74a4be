"""
core/filters.py -- Client-controlled list parameters: sort, page, page size.

Turns raw query parameters into a validated, bounded query plan and turns a
raw result count into page metadata. Stores consume Filters; they never see
the raw sort string.

Security: the sort field is checked against a per-resource allow-list before
it reaches a store. Stores then map the allowed name to a Column object, so a
client-chosen string is never interpolated into SQL.

Layer rule: core/ is the kernel. No imports from api/, auth/, or survey/.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from core.errors import InvalidSort, ValidationError

MAX_PAGE = 10_000_000


@dataclass(frozen=True)
class Filters:
    """A validated list query plan.

    sort keeps the client's spelling (including the "-" prefix); sort_field
    and descending are the parsed parts. limit/offset are ready for SQL.
    """

    sort: str
    page: int
    page_size: int

    @property
    def sort_field(self) -> str:
        return self.sort.removeprefix("-")

    @property
    def descending(self) -> bool:
        return self.sort.startswith("-")

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class Metadata:
    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "currentPage": self.current_page,
            "pageSize": self.page_size,
            "firstPage": self.first_page,
            "lastPage": self.last_page,
            "totalRecords": self.total_records,
        }


def validate_sort(sort: str, allow_list: frozenset[str] | set[str]) -> str:
    """Return the bare field name if sort is allowed, else raise InvalidSort.

    A single leading "-" selects descending order and is stripped before the
    membership check. "--id" strips to "-id", which is never allowed.
    """
    field = sort.removeprefix("-")
    if field not in allow_list:
        raise InvalidSort(
            f"invalid sort value {sort!r}",
            details={"sort": f"must be one of: {', '.join(sorted(allow_list))} (optionally prefixed with '-')"},
        )
    return field


def plan(page: int, page_size: int, max_page_size: int) -> tuple[int, int, int]:
    """Return (page, page_size, offset) after bounds checks.

    page must be 1..MAX_PAGE and page_size at least 1; both are rejected
    otherwise. page_size above max_page_size is capped, not rejected.
    """
    errors: dict[str, str] = {}
    if page < 1:
        errors["page"] = "must be greater than zero"
    elif page > MAX_PAGE:
        errors["page"] = f"must be a maximum of {MAX_PAGE}"
    if page_size < 1:
        errors["pageSize"] = "must be greater than zero"
    if errors:
        raise ValidationError("invalid pagination parameters", details=errors)
    page_size = min(page_size, max_page_size)
    return page, page_size, (page - 1) * page_size


def compute_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    """Build page metadata. Zero records gives an all-zero Metadata."""
    if total_records == 0:
        return Metadata()
    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=math.ceil(total_records / page_size),
        total_records=total_records,
    )


def build_filters(
    allow_list: frozenset[str] | set[str],
    sort: str | None = None,
    page: int | None = None,
    page_size: int | None = None,
    default_page_size: int = 20,
    max_page_size: int = 100,
) -> Filters:
    """Combine sort validation and page planning into a Filters value.

    Missing parameters fall back to sort="id", page=1, default_page_size.
    """
    sort = sort or "id"
    validate_sort(sort, allow_list)
    page, page_size, _ = plan(
        page if page is not None else 1,
        page_size if page_size is not None else default_page_size,
        max_page_size,
    )
    return Filters(sort=sort, page=page, page_size=page_size)

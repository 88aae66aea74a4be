"""Unit tests for core/filters.py -- sort validation, page planning, metadata.

Covers:
- validate_sort() accepts allow-listed fields with and without "-" prefix
- validate_sort() rejects unknown fields and double prefixes with InvalidSort
- plan() bounds checks page and page size, caps oversize pages
- compute_metadata() page arithmetic and the all-zero empty case
- build_filters() defaults
"""

import pytest

from core.errors import InvalidSort, ValidationError
from core.filters import MAX_PAGE, Filters, build_filters, compute_metadata, plan, validate_sort

ALLOW = frozenset({"id", "createdAt", "topic"})


class TestValidateSort:
    def test_plain_field_is_accepted(self):
        assert validate_sort("topic", ALLOW) == "topic"

    def test_descending_prefix_is_stripped(self):
        assert validate_sort("-createdAt", ALLOW) == "createdAt"

    def test_unknown_field_rejected(self):
        with pytest.raises(InvalidSort) as exc_info:
            validate_sort("password_hash", ALLOW)
        assert "sort" in exc_info.value.details
        assert exc_info.value.status_code == 400

    def test_double_prefix_rejected(self):
        """Only one leading '-' is stripped, so '--id' must not validate."""
        with pytest.raises(InvalidSort):
            validate_sort("--id", ALLOW)

    def test_case_sensitive(self):
        with pytest.raises(InvalidSort):
            validate_sort("Topic", ALLOW)


class TestPlan:
    def test_offset_from_page(self):
        assert plan(3, 10, 100) == (3, 10, 20)

    def test_page_size_capped_not_rejected(self):
        page, size, offset = plan(2, 500, 100)
        assert size == 100
        assert offset == 100

    @pytest.mark.parametrize("page", [0, -1, MAX_PAGE + 1])
    def test_out_of_range_page_rejected(self, page):
        with pytest.raises(ValidationError) as exc_info:
            plan(page, 10, 100)
        assert "page" in exc_info.value.details

    def test_max_page_accepted(self):
        assert plan(MAX_PAGE, 1, 100)[0] == MAX_PAGE

    def test_zero_page_size_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            plan(1, 0, 100)
        assert "pageSize" in exc_info.value.details


class TestComputeMetadata:
    def test_last_page_rounds_up(self):
        meta = compute_metadata(23, 1, 10)
        assert meta.last_page == 3
        assert meta.first_page == 1
        assert meta.current_page == 1
        assert meta.total_records == 23

    def test_exact_multiple(self):
        assert compute_metadata(20, 2, 10).last_page == 2

    def test_empty_result_is_all_zero(self):
        meta = compute_metadata(0, 4, 10)
        assert meta.to_dict() == {
            "currentPage": 0,
            "pageSize": 0,
            "firstPage": 0,
            "lastPage": 0,
            "totalRecords": 0,
        }

    def test_page_past_the_end_keeps_requested_page(self):
        meta = compute_metadata(5, 9, 10)
        assert meta.current_page == 9
        assert meta.last_page == 1


class TestBuildFilters:
    def test_defaults(self):
        f = build_filters(ALLOW)
        assert f == Filters(sort="id", page=1, page_size=20)
        assert f.offset == 0

    def test_descending_properties(self):
        f = build_filters(ALLOW, sort="-topic", page=2, page_size=5)
        assert f.sort_field == "topic"
        assert f.descending is True
        assert f.limit == 5
        assert f.offset == 5

    def test_max_page_size_applied(self):
        f = build_filters(ALLOW, page_size=1000, max_page_size=50)
        assert f.page_size == 50

"""Tests for the multi-condition filter engine."""

import pytest

from tlog_core.builders import build_default_case, build_default_suite
from tlog_core.filters import DateFilter, SearchFilters, evaluate_filters, filter_entities
from tlog_core.schema import validate_case


def _case(**overrides):
    raw = build_default_case("case-1", "Case", completed_day="2026-02-10").to_dict()
    raw.update(overrides)
    return validate_case(raw).data


class TestEvaluateFilters:
    def test_tags_and_status_both_match(self):
        case = _case(tags=["smoke"], status="done")
        meta = evaluate_filters(case, SearchFilters(tags=["smoke"], testcase_status=["done"]))
        assert meta.matched is True
        assert meta.checked_conditions == 2
        assert meta.matched_conditions == 2
        assert meta.reasons == ["tags", "testcaseStatus"]

    def test_one_condition_fails(self):
        case = _case(tags=["smoke"], status="todo")
        meta = evaluate_filters(case, SearchFilters(tags=["smoke"], testcase_status=["done"]))
        assert meta.matched is False
        assert meta.checked_conditions == 2
        assert meta.matched_conditions == 1

    def test_empty_filters_match_everything(self):
        meta = evaluate_filters(_case(), SearchFilters())
        assert meta.matched is True
        assert meta.checked_conditions == 0

    def test_null_status_is_matchable(self):
        meta = evaluate_filters(_case(status=None), SearchFilters(testcase_status=[None]))
        assert meta.matched

    def test_owners_only_checked_on_suites(self):
        suite = build_default_suite("s", "S", owners=["qa"])
        filters = SearchFilters(owners=["dev"])
        assert evaluate_filters(suite, filters).matched is False
        assert evaluate_filters(_case(), filters).checked_conditions == 0

    def test_test_status_any_item(self):
        case = _case(tests=[
            {"name": "a", "expected": "", "actual": "", "trails": [], "status": "pass"},
            {"name": "b", "expected": "", "actual": "", "trails": [], "status": "fail"},
        ])
        assert evaluate_filters(case, SearchFilters(test_status=["fail"])).matched

    @pytest.mark.parametrize(
        "operator,from_,to,expected",
        [
            ("onOrAfter", "2026-02-10", None, True),
            ("onOrAfter", "2026-02-11", None, False),
            ("onOrBefore", "2026-02-10", None, True),
            ("between", "2026-02-01", "2026-02-09", False),
            ("between", "2026-02-01", "2026-02-28", True),
            ("between", "2026-02-01", None, False),
        ],
    )
    def test_completed_day_operators(self, operator, from_, to, expected):
        filters = SearchFilters(date=DateFilter("completedDay", operator, from_, to))
        assert evaluate_filters(_case(), filters).matched is expected

    def test_date_on_missing_value_fails(self):
        filters = SearchFilters(date=DateFilter("completedDay", "onOrAfter", "2026-01-01"))
        assert evaluate_filters(_case(completedDay=None), filters).matched is False

    def test_suite_duration_field(self):
        suite = build_default_suite(
            "s", "S",
            duration={
                "scheduled": {"start": "2026-03-01", "end": "2026-03-31"},
                "actual": {"start": "2026-03-02", "end": "2026-04-02"},
            },
        )
        filters = SearchFilters(date=DateFilter("duration.actual.end", "onOrAfter", "2026-04-01"))
        assert evaluate_filters(suite, filters).matched


class TestDateFilter:
    def test_rejects_unknown_field(self):
        with pytest.raises(ValueError, match="Invalid date field"):
            DateFilter("createdAt", "onOrAfter", "2026-01-01")

    def test_rejects_unknown_operator(self):
        with pytest.raises(ValueError, match="Invalid date operator"):
            DateFilter("completedDay", "after", "2026-01-01")


class TestSearchFiltersFromDict:
    def test_camel_and_snake_case(self):
        camel = SearchFilters.from_dict({"testcaseStatus": ["done"], "testStatus": ["fail"]})
        snake = SearchFilters.from_dict({"testcase_status": ["done"], "test_status": ["fail"]})
        assert camel == snake
        assert not camel.is_empty()

    def test_date_from_mapping(self):
        filters = SearchFilters.from_dict(
            {"date": {"field": "completedDay", "operator": "between", "from": "2026-01-01", "to": "2026-01-31"}}
        )
        assert filters.date.to == "2026-01-31"

    def test_none_is_empty(self):
        assert SearchFilters.from_dict(None).is_empty()


def test_filter_entities_aggregates_meta():
    cases = [_case(id="a", tags=["smoke"]), _case(id="b", tags=["slow"])]
    result = filter_entities(cases, SearchFilters(tags=["smoke"]))
    assert [c.id for c in result.items] == ["a"]
    assert result.meta.matched is True
    assert result.meta.checked_conditions == 2
    assert result.meta.matched_conditions == 1
    assert result.meta.reasons == ["tags"]

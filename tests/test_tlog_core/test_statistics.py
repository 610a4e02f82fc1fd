"""Tests for status summaries and burndown."""

from tlog_core.builders import build_default_case
from tlog_core.statistics import (
    INVALID_DATE_RANGE,
    NO_TARGET_CASES,
    calculate_burndown,
    summarize_status,
)


def _case(id, status, completed_day=None):
    return build_default_case(id, id, status=status, completed_day=completed_day)


class TestSummarizeStatus:
    def test_counts_including_null(self):
        summary = summarize_status([
            _case("a", "todo"), _case("b", "doing"), _case("c", "done", "2026-01-01"), _case("d", None),
        ])
        assert summary.to_dict() == {"todo": 1, "doing": 1, "done": 1, "total": 4}


class TestBurndown:
    def test_two_cases_over_three_days(self):
        cases = [_case("a", "done", "2026-01-02"), _case("b", "todo")]
        result = calculate_burndown(cases, "2026-01-01", "2026-01-03")
        assert [b.date for b in result.buckets] == ["2026-01-01", "2026-01-02", "2026-01-03"]
        assert [b.planned_completed for b in result.buckets] == [1, 2, 2]
        assert [b.actual_completed for b in result.buckets] == [0, 1, 1]
        assert result.anomalies == []

    def test_empty_single_day(self):
        result = calculate_burndown([], "2026-01-01", "2026-01-01")
        assert result.summary.total == 0
        assert NO_TARGET_CASES in result.anomalies
        assert len(result.buckets) == 1

    def test_one_done_case(self):
        result = calculate_burndown([_case("a", "done", "2026-02-21")], "2026-02-20", "2026-02-22")
        assert [b.actual_completed for b in result.buckets] == [0, 1, 1]

    def test_no_cases(self):
        result = calculate_burndown([], "2026-01-01", "2026-01-02")
        assert result.anomalies == [NO_TARGET_CASES]
        assert [b.planned_completed for b in result.buckets] == [0, 0]

    def test_inverted_range(self):
        result = calculate_burndown([_case("a", "todo")], "2026-01-05", "2026-01-01")
        assert result.anomalies == [INVALID_DATE_RANGE]
        assert result.buckets == []

    def test_done_without_completed_day_not_counted(self):
        result = calculate_burndown([_case("a", "done")], "2026-01-01", "2026-01-01")
        assert result.buckets[0].actual_completed == 0
        assert result.buckets[0].planned_completed == 1

    def test_single_day_plans_everything(self):
        cases = [_case(str(i), "todo") for i in range(3)]
        result = calculate_burndown(cases, "2026-03-10", "2026-03-10")
        assert result.buckets[0].planned_completed == 3

    def test_to_dict(self):
        result = calculate_burndown([_case("a", "done", "2026-01-01")], "2026-01-01", "2026-01-01")
        payload = result.to_dict()
        assert payload["summary"]["done"] == 1
        assert payload["buckets"] == [
            {"date": "2026-01-01", "planned_completed": 1, "actual_completed": 1}
        ]

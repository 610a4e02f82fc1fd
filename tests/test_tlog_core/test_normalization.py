"""Tests for tolerant normalization of suite and case candidates."""

import pytest

from tlog_core.errors import ValidationFailedError
from tlog_core.normalization import normalize_case_candidate, normalize_suite_candidate
from tlog_core.schema import validate_case


def _citing(warnings, needle):
    return [w for w in warnings if needle in w]


class TestCaseStatus:
    def test_case_variant_is_lowered_with_one_warning(self, make_case):
        result = normalize_case_candidate(make_case(status="DONE"))
        assert result.entity.status == "done"
        assert _citing(result.warnings, "'DONE'") == ["status value 'DONE' was normalized to 'done'"]

    def test_invalid_status_resets_to_null(self, make_case):
        result = normalize_case_candidate(make_case(status="finished"))
        assert result.entity.status is None
        assert len(_citing(result.warnings, "'finished'")) == 1
        assert validate_case(result.entity.to_dict()).ok

    def test_absent_status_takes_default(self, make_case):
        raw = make_case()
        del raw["status"]
        result = normalize_case_candidate(raw)
        assert result.entity.status == "todo"

    def test_test_item_status_normalized(self, make_case):
        raw = make_case(tests=[{"name": "t", "status": "Pass"}])
        result = normalize_case_candidate(raw)
        item = result.entity.tests[0]
        assert item.status == "pass"
        assert item.expected == ""
        assert "tests[0].status value 'Pass' was normalized to 'pass'" in result.warnings

    def test_issue_status_invalid_resets_to_open(self, make_case):
        raw = make_case(issues=[{"incident": "boom", "status": "closed"}])
        result = normalize_case_candidate(raw)
        assert result.entity.issues[0].status == "open"
        assert len(_citing(result.warnings, "'closed'")) == 1


class TestIssueLegacy:
    def test_legacy_fields_mapped_with_warning(self, make_case):
        raw = make_case(issues=[{"incident": "boom", "cause": ["db"], "solutinos": ["restart"]}])
        result = normalize_case_candidate(raw)
        issue = result.entity.issues[0]
        assert issue.causes == ["db"]
        assert issue.solutions == ["restart"]
        assert "issues[0].cause was mapped to causes" in result.warnings
        assert "issues[0].solutinos was mapped to solutions" in result.warnings
        assert validate_case(result.entity.to_dict()).ok


class TestUnknownFields:
    def test_top_level_unknown_dropped(self, make_suite):
        result = normalize_suite_candidate(make_suite(priority="high"))
        assert "priority" not in result.entity.to_dict()
        assert "unknown suite field removed: priority" in result.warnings

    def test_nested_unknown_dropped(self, make_case):
        raw = make_case(tests=[{"name": "t", "severity": "high"}])
        result = normalize_case_candidate(raw)
        assert "unknown field removed: tests[0].severity" in result.warnings


class TestFallbacks:
    def test_empty_input_uses_defaults(self):
        result = normalize_suite_candidate({}, {"id": "suite-x", "title": "X"})
        assert result.entity.id == "suite-x"
        assert result.entity.title == "X"
        assert result.entity.scoped is True

    def test_string_for_list_falls_back(self, make_suite):
        result = normalize_suite_candidate(make_suite(tags="smoke"))
        assert result.entity.tags == []
        assert "tags was reset to default because value is not a list" in result.warnings

    def test_string_for_list_keeps_defaults(self, make_suite):
        result = normalize_suite_candidate({"owners": "qa"}, make_suite(owners=["lead"]))
        assert result.entity.owners == ["lead"]
        assert result.warnings.count("owners was reset to default because value is not a list") == 1

    def test_bad_date_reset_to_fallback(self, make_suite):
        raw = make_suite()
        raw["duration"]["actual"]["end"] = "tomorrow"
        fallback = make_suite()
        result = normalize_suite_candidate(raw, fallback)
        assert result.entity.duration.actual.end == "2026-02-06"
        assert _citing(result.warnings, "duration.actual.end")

    def test_blank_required_title_reset(self, make_case):
        result = normalize_case_candidate(make_case(title="   "), {"id": "case-login-001", "title": "Seed"})
        assert result.entity.title == "Seed"

    def test_raises_when_still_invalid(self, make_case):
        with pytest.raises(ValidationFailedError) as excinfo:
            normalize_case_candidate(make_case(id="bad id!"))
        assert excinfo.value.category == "validation"
        assert excinfo.value.details["errors"][0]["path"] == "id"

    def test_validation_warnings_are_carried(self, make_case):
        result = normalize_case_candidate(make_case(related=[]))
        assert "related: related is empty" in result.warnings

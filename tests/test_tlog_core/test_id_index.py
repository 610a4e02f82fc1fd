"""Tests for the id index and related-link resolution."""

import pytest

from tlog_core.errors import DuplicateIdError, EntityNotFoundError
from tlog_core.id_index import (
    CASE,
    SUITE,
    build_id_index,
    detect_entity_type,
    resolve_by_id,
    resolve_related,
    resolve_unique,
)


class TestDetectEntityType:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("index.yaml", SUITE),
            ("login.suite.yaml", SUITE),
            ("case-1.testcase.yaml", CASE),
            ("notes.yaml", CASE),
        ],
    )
    def test_by_file_name(self, name, expected):
        assert detect_entity_type(name) == expected


class TestBuildIdIndex:
    def test_indexes_all_entities(self, workspace_root):
        index = build_id_index(workspace_root / "tests")
        assert set(index.by_id) == {
            "suite-login", "suite-checkout", "case-login-001", "case-login-002", "case-checkout-001",
        }
        assert index.duplicates == []
        assert index.by_id["suite-login"].type == SUITE
        assert index.by_id["case-login-001"].related == ["case-login-002"]

    def test_skips_unparseable_and_idless_files(self, workspace_root):
        tests = workspace_root / "tests"
        (tests / "broken.yaml").write_text("id: [unclosed\n")
        (tests / "noid.yaml").write_text("title: nothing\n")
        index = build_id_index(tests)
        assert len(index.by_id) == 5

    def test_duplicate_keeps_first_and_reports_both(self, workspace_root, write_yaml, make_case):
        tests = workspace_root / "tests"
        dup = write_yaml(tests / "login" / "nested" / "dup.testcase.yaml", make_case())
        index = build_id_index(tests)
        first = tests / "login" / "case-login-001-valid-login.testcase.yaml"
        assert index.by_id["case-login-001"].path == first
        assert len(index.duplicates) == 1
        assert index.duplicates[0].id == "case-login-001"
        assert index.duplicates[0].paths == [first, dup]

    def test_skip_dirs(self, workspace_root):
        index = build_id_index(workspace_root / "tests", skip_dirs=("checkout",))
        assert "suite-checkout" not in index.by_id

    def test_symlink_loop_is_not_indexed_twice(self, workspace_root):
        tests = workspace_root / "tests"
        try:
            (tests / "login" / "loop").symlink_to(tests, target_is_directory=True)
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")
        index = build_id_index(tests)
        assert len(index.by_id) == 5
        assert index.duplicates == []


class TestResolve:
    def test_resolve_by_id_missing_is_none(self, workspace_root):
        index = build_id_index(workspace_root / "tests")
        assert resolve_by_id(index, "nope") is None

    def test_resolve_unique_type_mismatch(self, workspace_root):
        index = build_id_index(workspace_root / "tests")
        with pytest.raises(EntityNotFoundError):
            resolve_unique(index, "case-login-001", SUITE)

    def test_resolve_unique_duplicate(self, workspace_root, write_yaml, make_case):
        tests = workspace_root / "tests"
        write_yaml(tests / "login" / "nested" / "dup.testcase.yaml", make_case())
        index = build_id_index(tests)
        with pytest.raises(DuplicateIdError) as excinfo:
            resolve_unique(index, "case-login-001")
        assert len(excinfo.value.paths) == 2

    def test_resolve_related_splits_missing(self, workspace_root):
        index = build_id_index(workspace_root / "tests")
        source = index.by_id["case-checkout-001"]
        resolution = resolve_related(index, source)
        assert [e.id for e in resolution.resolved] == ["suite-login"]
        assert resolution.missing == ["ghost-id"]

    def test_resolve_related_accepts_mapping(self, workspace_root):
        index = build_id_index(workspace_root / "tests")
        resolution = resolve_related(index, {"related": ["case-login-002", "x"]})
        assert [e.id for e in resolution.resolved] == ["case-login-002"]
        assert resolution.missing == ["x"]

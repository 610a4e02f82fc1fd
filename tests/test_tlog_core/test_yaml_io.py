"""Tests for YAML parsing, serialization and atomic writes."""

import pytest

from tlog_core.errors import YamlParseError
from tlog_core.yaml_io import (
    parse_yaml,
    read_yaml_file,
    stringify_yaml,
    walk_yaml_files,
    write_yaml_file_atomic,
)


class TestParseYaml:
    def test_dates_stay_strings(self):
        data = parse_yaml("completedDay: 2026-02-03\n")
        assert data == {"completedDay": "2026-02-03"}

    def test_error_carries_line_and_column(self):
        with pytest.raises(YamlParseError) as excinfo:
            parse_yaml("id: ok\ntitle: [unclosed\n", "broken.yaml")
        err = excinfo.value
        assert err.line is not None and err.line >= 2
        assert err.column is not None
        assert err.category == "io"
        assert "broken.yaml" in err.message

    def test_empty_document_is_none(self):
        assert parse_yaml("") is None


class TestStringifyYaml:
    def test_preserves_insertion_order(self):
        text = stringify_yaml({"id": "a", "title": "b", "tags": []})
        assert text.index("id:") < text.index("title:") < text.index("tags:")

    def test_unicode_not_escaped(self):
        assert "ログイン" in stringify_yaml({"title": "ログイン"})

    def test_date_strings_round_trip(self):
        assert parse_yaml(stringify_yaml({"d": "2026-01-01"})) == {"d": "2026-01-01"}


class TestWriteAtomic:
    def test_creates_parents_and_leaves_no_temp(self, tmp_path):
        target = tmp_path / "a" / "b" / "index.yaml"
        write_yaml_file_atomic(target, {"id": "x"})
        assert read_yaml_file(target) == {"id": "x"}
        assert [p.name for p in target.parent.iterdir()] == ["index.yaml"]

    def test_replaces_existing(self, tmp_path):
        target = tmp_path / "x.yaml"
        target.write_text("id: old\n")
        write_yaml_file_atomic(target, {"id": "new"})
        assert read_yaml_file(target) == {"id": "new"}

    def test_failed_serialization_cleans_up(self, tmp_path):
        target = tmp_path / "x.yaml"
        with pytest.raises(Exception):
            write_yaml_file_atomic(target, {"bad": object()})
        assert list(tmp_path.iterdir()) == []


def test_walk_is_breadth_first_and_sorted(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "a" / "deep").mkdir(parents=True)
    for rel in ("z.yaml", "a/one.yaml", "a/deep/two.yaml", "b/three.yaml", "a/skip.yml", "notes.txt"):
        (tmp_path / rel).write_text("id: x\n")
    names = [p.relative_to(tmp_path).as_posix() for p in walk_yaml_files(tmp_path)]
    assert names == ["z.yaml", "a/one.yaml", "b/three.yaml", "a/deep/two.yaml"]


def _symlink_or_skip(link, target, **kwargs):
    try:
        link.symlink_to(target, **kwargs)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")


def test_walk_does_not_follow_symlinks(tmp_path):
    (tmp_path / "real").mkdir()
    (tmp_path / "real" / "a.yaml").write_text("id: a\n")
    _symlink_or_skip(tmp_path / "loop", tmp_path, target_is_directory=True)
    _symlink_or_skip(tmp_path / "alias.yaml", tmp_path / "real" / "a.yaml")
    names = [p.relative_to(tmp_path).as_posix() for p in walk_yaml_files(tmp_path)]
    assert names == ["real/a.yaml"]

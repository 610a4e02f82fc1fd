"""Slugs and canonical file names for suites and cases."""

from __future__ import annotations

import os
import re

SUITE_INDEX_FILE = "index.yaml"
SUITE_SUFFIX = ".suite.yaml"
CASE_SUFFIX = ".testcase.yaml"

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify_title(title: str) -> str:
    slug = _NON_SLUG.sub("-", title.strip().lower()).strip("-")
    return slug or "untitled"


def build_suite_dir_name(id: str, title: str) -> str:
    return f"{id}-{slugify_title(title)}"


def build_suite_file_name(id: str, title: str) -> str:
    return f"{id}-{slugify_title(title)}{SUITE_SUFFIX}"


def build_case_file_name(id: str, title: str) -> str:
    return f"{id}-{slugify_title(title)}{CASE_SUFFIX}"


def normalize_tlog_path(path: str) -> str:
    """Normalize a path and render it with forward slashes on every OS."""
    return os.path.normpath(path).replace(os.sep, "/").replace("\\", "/")

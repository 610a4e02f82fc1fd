"""Configuration for tlog."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class TlogConfig:
    """Runtime configuration loaded from environment."""

    # Workspace root every user path is resolved against
    workspace_root: Path = field(default_factory=Path.cwd)

    # Default directory for suites and cases (relative to workspace root)
    tests_dir: str = "tests"

    # Default directory for templates (relative to workspace root)
    templates_dir: str = "templates"

    # Soft-delete destination (relative to workspace root)
    trash_dir: str = ".tlog-trash"

    @classmethod
    def from_env(cls) -> TlogConfig:
        cfg = cls()

        root = os.environ.get("TLOG_WORKSPACE_ROOT")
        if root:
            cfg.workspace_root = Path(root).expanduser()

        tests_dir = os.environ.get("TLOG_TESTS_DIR")
        if tests_dir:
            cfg.tests_dir = tests_dir

        templates_dir = os.environ.get("TLOG_TEMPLATES_DIR")
        if templates_dir:
            cfg.templates_dir = templates_dir

        trash_dir = os.environ.get("TLOG_TRASH_DIR")
        if trash_dir:
            cfg.trash_dir = trash_dir

        return cfg


def get_config() -> TlogConfig:
    return TlogConfig.from_env()

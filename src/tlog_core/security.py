"""Workspace containment checks for user-supplied paths."""

from __future__ import annotations

import os
from pathlib import Path

from tlog_core.errors import ConflictError, PathOutsideWorkspaceError
from tlog_core.naming import normalize_tlog_path


def resolve_path_inside_workspace(root: Path | str, target: Path | str) -> Path:
    """Resolve target against root and reject anything that escapes it.

    Relative targets are joined to root. Symlinks are resolved before the
    containment check.

    Raises:
        PathOutsideWorkspaceError: If the resolved path is outside root.
    """
    root_resolved = Path(root).resolve()
    candidate = Path(target)
    if not candidate.is_absolute():
        candidate = root_resolved / candidate
    resolved = candidate.resolve()
    if resolved != root_resolved and not str(resolved).startswith(str(root_resolved) + os.sep):
        raise PathOutsideWorkspaceError(str(target))
    return resolved


def to_relative_path(root: Path | str, path: Path | str) -> str:
    """Workspace-relative, forward-slash form of path for display."""
    root_resolved = Path(root).resolve()
    p = Path(path)
    try:
        rel = p.resolve().relative_to(root_resolved)
    except ValueError:
        return normalize_tlog_path(str(p))
    return normalize_tlog_path(str(rel))


def assert_no_overwrite(path: Path) -> None:
    if path.exists():
        raise ConflictError(
            f"target already exists: {path.name}",
            details={"path": str(path)},
        )

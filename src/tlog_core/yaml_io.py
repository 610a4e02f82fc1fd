"""YAML parsing, serialization and atomic persistence."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Any, Iterator

import yaml

from tlog_core.errors import YamlParseError

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml",)


class _TlogLoader(yaml.SafeLoader):
    """SafeLoader that keeps ``YYYY-MM-DD`` scalars as strings."""


# Drop the implicit timestamp resolver so dates are never turned into
# datetime.date objects on load.
_TlogLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def parse_yaml(source: str, path: str | None = None) -> Any:
    """Parse YAML text.

    Raises:
        YamlParseError: With 1-based line and column when available.
    """
    try:
        return yaml.load(source, Loader=_TlogLoader)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        column = mark.column + 1 if mark is not None else None
        problem = getattr(exc, "problem", None) or str(exc)
        raise YamlParseError(
            f"YAML parse error{f' in {path}' if path else ''}: {problem}",
            path=path,
            line=line,
            column=column,
        ) from exc


def stringify_yaml(value: Any) -> str:
    return yaml.safe_dump(
        value,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def read_yaml_file(path: Path | str) -> Any:
    p = Path(path)
    return parse_yaml(p.read_text(encoding="utf-8"), str(p))


def write_yaml_file_atomic(path: Path | str, value: Any) -> None:
    """Write YAML via a sibling temp file and ``os.replace``.

    Readers see either the old content or the complete new content.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(f"{target.name}.{uuid.uuid4().hex}.tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(stringify_yaml(value))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, target)
    except BaseException:
        try:
            tmp.unlink()
        except OSError:
            pass
        raise
    logger.debug("Wrote %s", target)


def is_yaml_file(path: Path) -> bool:
    return path.name.endswith(YAML_SUFFIXES)


def walk_yaml_files(root: Path | str, *, skip_dirs: tuple[str, ...] = ()) -> Iterator[Path]:
    """Yield YAML files under root breadth-first, entries sorted by name.

    Symlinks are not followed, so a link back to an ancestor cannot loop.
    """
    queue = [Path(root)]
    while queue:
        current = queue.pop(0)
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.warning("Cannot read directory %s: %s", current, exc)
            continue
        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir():
                if entry.name not in skip_dirs:
                    queue.append(entry)
            elif entry.is_file() and is_yaml_file(entry):
                yield entry

"""Directory-wide id index and related-link resolution.

Identity is the ``id`` field, never the file path. The index is a snapshot
of one directory scan; rebuild it whenever current paths matter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from tlog_core.errors import DuplicateIdError, EntityNotFoundError, TlogError
from tlog_core.naming import SUITE_INDEX_FILE, SUITE_SUFFIX
from tlog_core.yaml_io import read_yaml_file, walk_yaml_files

logger = logging.getLogger(__name__)

SUITE = "suite"
CASE = "case"


@dataclass
class IndexedEntity:
    id: str
    type: str
    path: Path
    title: str | None = None
    related: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "path": str(self.path),
            "title": self.title,
            "related": list(self.related),
        }


@dataclass
class DuplicateId:
    id: str
    paths: list[Path]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "paths": [str(p) for p in self.paths]}


@dataclass
class IdIndex:
    by_id: dict[str, IndexedEntity] = field(default_factory=dict)
    entities: list[IndexedEntity] = field(default_factory=list)
    duplicates: list[DuplicateId] = field(default_factory=list)


@dataclass
class RelatedResolution:
    resolved: list[IndexedEntity] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


def detect_entity_type(path: Path | str) -> str:
    name = Path(path).name
    if name == SUITE_INDEX_FILE or name.endswith(SUITE_SUFFIX):
        return SUITE
    return CASE


def _project(raw: Any, path: Path) -> IndexedEntity | None:
    if not isinstance(raw, dict):
        return None
    entity_id = raw.get("id")
    if not isinstance(entity_id, str) or not entity_id:
        return None
    title = raw.get("title")
    related = raw.get("related")
    return IndexedEntity(
        id=entity_id,
        type=detect_entity_type(path),
        path=path,
        title=title if isinstance(title, str) else None,
        related=[r for r in related if isinstance(r, str)] if isinstance(related, list) else [],
    )


def build_id_index(root_dir: Path | str, *, skip_dirs: tuple[str, ...] = ()) -> IdIndex:
    """Scan root_dir for YAML entities.

    The first occurrence of an id wins ``by_id``. Later occurrences are listed
    in ``duplicates`` together with the first path. Unparseable files and
    files without a string id are skipped.
    """
    index = IdIndex()
    duplicate_paths: dict[str, list[Path]] = {}

    for path in walk_yaml_files(root_dir, skip_dirs=skip_dirs):
        try:
            raw = read_yaml_file(path)
        except (TlogError, OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping unreadable file %s: %s", path, exc)
            continue
        entity = _project(raw, path)
        if entity is None:
            continue

        index.entities.append(entity)
        first = index.by_id.get(entity.id)
        if first is None:
            index.by_id[entity.id] = entity
            continue
        duplicate_paths.setdefault(entity.id, [first.path]).append(entity.path)

    index.duplicates = [DuplicateId(id=k, paths=v) for k, v in duplicate_paths.items()]
    if index.duplicates:
        logger.warning(
            "Duplicate ids under %s: %s",
            root_dir,
            ", ".join(d.id for d in index.duplicates),
        )
    return index


def resolve_by_id(index: IdIndex, entity_id: str) -> IndexedEntity | None:
    return index.by_id.get(entity_id)


def resolve_unique(index: IdIndex, entity_id: str, entity_type: str | None = None) -> IndexedEntity:
    """Resolve "the" entity for an id.

    Raises:
        EntityNotFoundError: No entity (of the requested type) has this id.
        DuplicateIdError: More than one file declares this id.
    """
    for dup in index.duplicates:
        if dup.id == entity_id:
            raise DuplicateIdError(entity_id, [str(p) for p in dup.paths])
    entity = index.by_id.get(entity_id)
    if entity is None or (entity_type is not None and entity.type != entity_type):
        raise EntityNotFoundError(entity_id, entity_type)
    return entity


def resolve_related(index: IdIndex, source: Any) -> RelatedResolution:
    """Split source.related into resolved entities and missing ids."""
    related: Iterable[str] = source.get("related", []) if isinstance(source, dict) else source.related
    result = RelatedResolution()
    for rid in related:
        entity = index.by_id.get(rid)
        if entity is not None:
            result.resolved.append(entity)
        else:
            result.missing.append(rid)
    return result

"""File-backed suite and case operations over a workspace root.

Every method rebuilds the id index from disk, so results always reflect the
current tree. All user-supplied paths are resolved inside the workspace root.
Returned dicts carry workspace-relative, forward-slash paths.
"""

from __future__ import annotations

import json
import logging
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from tlog_core.builders import build_default_case, build_default_suite
from tlog_core.config import TlogConfig, get_config
from tlog_core.domain import ISSUE_STATUSES, RawRecord, Suite, TestCase
from tlog_core.errors import (
    ConfirmationRequiredError,
    ConflictError,
    DuplicateIdError,
    ResolutionError,
    TlogError,
    ValidationFailedError,
    YamlParseError,
)
from tlog_core.filters import SearchFilters, filter_entities
from tlog_core.id_index import (
    CASE,
    SUITE,
    IdIndex,
    IndexedEntity,
    build_id_index,
    detect_entity_type,
    resolve_by_id,
    resolve_related,
    resolve_unique,
)
from tlog_core.naming import (
    SUITE_INDEX_FILE,
    build_case_file_name,
    build_suite_dir_name,
    build_suite_file_name,
)
from tlog_core.normalization import normalize_case_candidate, normalize_suite_candidate
from tlog_core.schema import Diagnostic, ValidationResult, validate_entity
from tlog_core.security import assert_no_overwrite, resolve_path_inside_workspace, to_relative_path
from tlog_core.statistics import calculate_burndown
from tlog_core.template import extract_template_from_directory
from tlog_core.yaml_io import read_yaml_file, stringify_yaml, walk_yaml_files, write_yaml_file_atomic

logger = logging.getLogger(__name__)

TEMPLATE_CASE_FILE = "template.testcase.yaml"

EXECUTION_STRATEGIES = ("risk-based", "flow-based", "component-based")
ORGANIZE_MODES = ("replace", "append", "auto")
REPLACE_KEYWORDS = ("replace", "置換", "入れ替")


def summarize_diff(before: Any, after: Any) -> list[str]:
    """List top-level keys whose values differ."""
    before = before if isinstance(before, dict) else {}
    after = after if isinstance(after, dict) else {}
    changes = []
    for key in dict.fromkeys([*before, *after]):
        if json.dumps(before.get(key), sort_keys=True, default=str) != json.dumps(
            after.get(key), sort_keys=True, default=str
        ):
            changes.append(f"{key} changed")
    return changes or ["no structural changes"]


def select_applied_mode(mode: str, text: str) -> str:
    """Resolve ``auto`` to ``replace`` when text asks for a replacement."""
    if mode != "auto":
        return mode
    lowered = text.lower()
    if any(word in lowered for word in REPLACE_KEYWORDS):
        return "replace"
    return "append"


class TlogWorkspace:
    """Suite and case operations rooted at one workspace directory."""

    def __init__(self, root: Path | str | None = None, config: TlogConfig | None = None) -> None:
        self.config = config or get_config()
        self.root = Path(root or self.config.workspace_root).resolve()
        self._trash_name = Path(self.config.trash_dir).name

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(self, target: Path | str) -> Path:
        return resolve_path_inside_workspace(self.root, target)

    def _rel(self, path: Path | str) -> str:
        return to_relative_path(self.root, path)

    def _require_dir(self, path: Path, label: str) -> None:
        if not path.is_dir():
            raise ResolutionError(
                f"{label} does not exist: {self._rel(path)}",
                details={"path": self._rel(path)},
            )

    def _index(self, directory: Path) -> IdIndex:
        return build_id_index(directory, skip_dirs=(self._trash_name,))

    def _yaml_files(self, directory: Path) -> list[Path]:
        return list(walk_yaml_files(directory, skip_dirs=(self._trash_name,)))

    def _duplicates(self, index: IdIndex) -> list[dict[str, Any]]:
        return [
            {"id": d.id, "paths": [self._rel(p) for p in d.paths]}
            for d in index.duplicates
        ]

    def _card(self, entity: IndexedEntity) -> dict[str, Any]:
        return {
            "id": entity.id,
            "type": entity.type,
            "path": self._rel(entity.path),
            "title": entity.title,
        }

    def _load_valid(self, directory: Path, entity_type: str) -> tuple[list[tuple[Any, Path]], list[str]]:
        """Valid entities of one type under directory, plus skipped paths."""
        loaded: list[tuple[Any, Path]] = []
        skipped: list[str] = []
        for path in self._yaml_files(directory):
            if detect_entity_type(path) != entity_type:
                continue
            try:
                result = validate_entity(read_yaml_file(path), entity_type)
            except (TlogError, OSError, UnicodeDecodeError) as exc:
                logger.debug("Skipping %s: %s", path, exc)
                skipped.append(self._rel(path))
                continue
            if result.ok:
                loaded.append((result.data, path))
            else:
                skipped.append(self._rel(path))
        return loaded, skipped

    def _assert_id_free(self, directory: Path, entity_id: str) -> None:
        if not directory.is_dir():
            return
        existing = resolve_by_id(self._index(directory), entity_id)
        if existing is not None:
            raise ConflictError(
                f"id already exists: {entity_id}",
                details={"id": entity_id, "path": self._rel(existing.path)},
            )

    def _persist_new(self, path: Path, entity: Any, write: bool) -> dict[str, Any]:
        assert_no_overwrite(path)
        payload = entity.to_dict()
        if write:
            write_yaml_file_atomic(path, payload)
        return {
            "path": self._rel(path),
            "yaml_text": stringify_yaml(payload),
            "written_file": self._rel(path) if write else None,
        }

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_suite(
        self,
        directory: str,
        id: str,
        title: str,
        fields: RawRecord | None = None,
        *,
        as_directory: bool = True,
        write: bool = False,
    ) -> dict[str, Any]:
        """Create a suite under directory.

        With ``as_directory`` the suite gets its own ``<id>-<slug>/index.yaml``,
        otherwise it is written as ``<id>-<slug>.suite.yaml``.
        """
        target_dir = self._resolve(directory)
        self._assert_id_free(target_dir, id)
        seed = {"id": id, "title": title}
        normalized = normalize_suite_candidate({**(fields or {}), **seed}, seed)
        suite: Suite = normalized.entity

        if as_directory:
            path = target_dir / build_suite_dir_name(suite.id, suite.title) / SUITE_INDEX_FILE
        else:
            path = target_dir / build_suite_file_name(suite.id, suite.title)
        persisted = self._persist_new(path, suite, write)
        if write:
            logger.info("Suite created: %s -> %s", suite.id, persisted["path"])
        return {
            "entity": suite.to_dict(),
            **persisted,
            "warnings": normalized.warnings,
            "diff_summary": ["created suite"],
        }

    def create_case(
        self,
        suite_dir: str,
        id: str,
        title: str,
        fields: RawRecord | None = None,
        *,
        write: bool = False,
    ) -> dict[str, Any]:
        """Create ``<id>-<slug>.testcase.yaml`` inside suite_dir.

        The id must be unused under suite_dir's parent, so sibling suites
        cannot share case ids.
        """
        target_dir = self._resolve(suite_dir)
        self._require_dir(target_dir, "Suite directory")
        scan_root = target_dir.parent if target_dir != self.root else target_dir
        self._assert_id_free(scan_root, id)

        seed = {"id": id, "title": title}
        normalized = normalize_case_candidate({**(fields or {}), **seed}, seed)
        case: TestCase = normalized.entity

        path = target_dir / build_case_file_name(case.id, case.title)
        persisted = self._persist_new(path, case, write)
        if write:
            logger.info("Case created: %s -> %s", case.id, persisted["path"])
        return {
            "entity": case.to_dict(),
            **persisted,
            "warnings": normalized.warnings,
            "diff_summary": ["created testcase"],
        }

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_entity(self, directory: str, id: str, entity_type: str | None = None) -> dict[str, Any]:
        root = self._resolve(directory)
        self._require_dir(root, "Search directory")
        found = resolve_unique(self._index(root), id, entity_type)
        raw = read_yaml_file(found.path)
        result: ValidationResult = validate_entity(raw, found.type)
        return {
            "id": found.id,
            "type": found.type,
            "path": self._rel(found.path),
            "entity": result.data.to_dict() if result.ok else raw,
            "valid": result.ok,
            "errors": [e.to_dict() for e in result.errors],
            "warnings": [w.to_dict() for w in result.warnings],
        }

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_suite(self, directory: str, id: str, patch: RawRecord, *, write: bool = False) -> dict[str, Any]:
        return self._update(directory, id, patch, SUITE, write)

    def update_case(self, directory: str, id: str, patch: RawRecord, *, write: bool = False) -> dict[str, Any]:
        return self._update(directory, id, patch, CASE, write)

    def _update(self, directory: str, id: str, patch: RawRecord, entity_type: str, write: bool) -> dict[str, Any]:
        root = self._resolve(directory)
        self._require_dir(root, "Search directory")
        found = resolve_unique(self._index(root), id, entity_type)

        if "id" in patch and patch["id"] != id:
            raise ValidationFailedError(
                f"id is immutable: cannot change '{id}' to '{patch['id']}'",
                [Diagnostic("id", "id is immutable")],
            )

        before = read_yaml_file(found.path)
        if not isinstance(before, dict):
            raise ValidationFailedError(
                f"{entity_type} file is not a mapping: {self._rel(found.path)}",
                [Diagnostic("$", "Expected object")],
            )
        merged = {**before, **patch}
        seed = {"id": id, "title": before.get("title") if isinstance(before.get("title"), str) else id}
        normalize = normalize_suite_candidate if entity_type == SUITE else normalize_case_candidate
        normalized = normalize(merged, seed)
        after = normalized.entity.to_dict()

        if write:
            write_yaml_file_atomic(found.path, after)
            logger.info("%s updated: %s (%s)", entity_type.capitalize(), id, self._rel(found.path))

        return {
            "id": id,
            "type": entity_type,
            "path": self._rel(found.path),
            "before": before,
            "after": after,
            "diff_summary": summarize_diff(before, after),
            "warnings": normalized.warnings,
            "written_file": self._rel(found.path) if write else None,
        }

    # ------------------------------------------------------------------
    # Expand / organize
    # ------------------------------------------------------------------

    def _read_case(self, directory: str, id: str) -> tuple[IndexedEntity, RawRecord]:
        root = self._resolve(directory)
        self._require_dir(root, "Search directory")
        found = resolve_unique(self._index(root), id, CASE)
        raw = read_yaml_file(found.path)
        if not isinstance(raw, dict):
            raise ValidationFailedError(
                f"case file is not a mapping: {self._rel(found.path)}",
                [Diagnostic("$", "Expected object")],
            )
        return found, raw

    def expand_case(
        self,
        directory: str,
        id: str,
        instruction: str,
        preserve_fields: list[str] | None = None,
        *,
        write: bool = False,
    ) -> dict[str, Any]:
        """Fold a free-form instruction into an existing case.

        The instruction is appended to ``description``, recorded as a
        ``review:`` operation and adds a placeholder test item. Any of
        ``description``, ``operations`` or ``tests`` named in preserve_fields
        is left alone.
        """
        found, before = self._read_case(directory, id)
        preserved = set(preserve_fields or ())
        draft = dict(before)

        if "description" not in preserved:
            description = before.get("description")
            current = description if isinstance(description, str) else ""
            draft["description"] = f"{current.strip()}\n{instruction}".strip()

        if "operations" not in preserved:
            operations = before.get("operations")
            kept = [o for o in operations if isinstance(o, str)] if isinstance(operations, list) else []
            draft["operations"] = list(dict.fromkeys([*kept, f"review: {instruction}"]))

        if "tests" not in preserved:
            tests = before.get("tests")
            tests = list(tests) if isinstance(tests, list) else []
            tests.append({
                "name": f"generated-{len(tests) + 1}",
                "expected": "to be confirmed",
                "actual": "",
                "trails": [],
                "status": None,
            })
            draft["tests"] = tests

        title = before.get("title")
        normalized = normalize_case_candidate(draft, {"id": id, "title": title if isinstance(title, str) else id})
        after = normalized.entity.to_dict()

        if write:
            write_yaml_file_atomic(found.path, after)
            logger.info("Case expanded: %s (%s)", id, self._rel(found.path))

        return {
            "id": id,
            "path": self._rel(found.path),
            "before": before,
            "after": after,
            "diff_summary": summarize_diff(before, after),
            "warnings": normalized.warnings,
            "written_file": self._rel(found.path) if write else None,
        }

    def organize_execution_targets(
        self,
        directory: str | None = None,
        id: str | None = None,
        testcase: RawRecord | None = None,
        *,
        strategy: str = "flow-based",
        mode: str = "auto",
        write: bool = False,
    ) -> dict[str, Any]:
        """Propose a strategy-shaped ``tests`` list for a case.

        The case is read from directory/id, or taken inline from testcase.
        ``mode="auto"`` replaces when the case text asks for a replacement
        and appends otherwise. Only a case read from disk can be written.
        """
        if strategy not in EXECUTION_STRATEGIES:
            raise ValidationFailedError(
                f"Invalid strategy: {strategy}. Expected {'|'.join(EXECUTION_STRATEGIES)}.",
                [Diagnostic("strategy", "Invalid enum value")],
            )
        if mode not in ORGANIZE_MODES:
            raise ValidationFailedError(
                f"Invalid mode: {mode}. Expected {'|'.join(ORGANIZE_MODES)}.",
                [Diagnostic("mode", "Invalid enum value")],
            )

        found = None
        if id:
            found, loaded = self._read_case(directory or self.config.tests_dir, id)
        elif testcase:
            loaded = testcase
        else:
            raise ValidationFailedError(
                "id or testcase is required",
                [Diagnostic("id", "Required"), Diagnostic("testcase", "Required")],
            )

        normalized = normalize_case_candidate(loaded, {"id": "organized-case", "title": "Organized Case"})
        current = normalized.entity.to_dict()

        generated = [
            {"name": f"{strategy}-critical-path", "expected": "critical behaviors are covered"},
            {"name": f"{strategy}-edge-cases", "expected": "edge cases are covered"},
        ]
        generated = [{**t, "actual": "", "trails": [], "status": None} for t in generated]

        applied_mode = select_applied_mode(mode, json.dumps(loaded, ensure_ascii=False, default=str))
        if applied_mode == "replace":
            proposed = generated
        else:
            names = {t["name"] for t in current["tests"]}
            proposed = [*current["tests"], *(t for t in generated if t["name"] not in names)]

        final = normalize_case_candidate({**current, "tests": proposed}, current)
        after = final.entity.to_dict()

        written = None
        if write and found is not None:
            write_yaml_file_atomic(found.path, after)
            written = self._rel(found.path)
            logger.info("Execution targets organized (%s, %s): %s", strategy, applied_mode, written)

        return {
            "id": after["id"],
            "path": self._rel(found.path) if found is not None else None,
            "proposed_tests": after["tests"],
            "rationale": [f"strategy={strategy}"],
            "coverage_gaps": ["non-functional test scope not inferred"],
            "applied_mode": applied_mode,
            "warnings": [*normalized.warnings, *final.warnings],
            "diff_summary": summarize_diff(current, after),
            "written_file": written,
        }

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_suite(
        self,
        directory: str,
        id: str,
        *,
        dry_run: bool = True,
        confirm: bool = False,
        hard: bool = False,
    ) -> dict[str, Any]:
        return self._delete(directory, id, SUITE, dry_run, confirm, hard)

    def delete_case(
        self,
        directory: str,
        id: str,
        *,
        dry_run: bool = True,
        confirm: bool = False,
        hard: bool = False,
    ) -> dict[str, Any]:
        return self._delete(directory, id, CASE, dry_run, confirm, hard)

    def _delete(
        self,
        directory: str,
        id: str,
        entity_type: str,
        dry_run: bool,
        confirm: bool,
        hard: bool,
    ) -> dict[str, Any]:
        root = self._resolve(directory)
        self._require_dir(root, "Search directory")
        index = self._index(root)
        found = resolve_unique(index, id, entity_type)

        # A suite stored as index.yaml owns its directory, except the search root.
        target = found.path
        if entity_type == SUITE and found.path.name == SUITE_INDEX_FILE and found.path.parent != root:
            target = found.path.parent

        def removed(entity: IndexedEntity) -> bool:
            return entity.path == target or target in entity.path.parents

        removed_ids = list(dict.fromkeys(e.id for e in index.entities if removed(e)))
        referenced_by = []
        for entity in index.entities:
            if removed(entity):
                continue
            refs = [r for r in entity.related if r in removed_ids]
            if refs:
                referenced_by.append({**self._card(entity), "references": refs})

        result: dict[str, Any] = {
            "id": id,
            "type": entity_type,
            "path": self._rel(found.path),
            "target": self._rel(target),
            "removed_ids": removed_ids,
            "referenced_by": referenced_by,
            "dry_run": dry_run,
            "hard": hard,
            "moved_to": None,
        }
        if dry_run:
            return result
        if not confirm:
            raise ConfirmationRequiredError(
                f"Deleting {entity_type} '{id}' requires confirmation",
                details={"target": self._rel(target)},
            )

        if hard:
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()
            logger.info("%s hard-deleted: %s (%s)", entity_type.capitalize(), id, self._rel(target))
        else:
            trash = self._resolve(self.config.trash_dir)
            trash.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
            destination = trash / f"{stamp}-{uuid.uuid4()}-{target.name}"
            shutil.move(str(target), str(destination))
            result["moved_to"] = self._rel(destination)
            logger.info("%s moved to trash: %s -> %s", entity_type.capitalize(), id, result["moved_to"])

        if referenced_by:
            logger.warning(
                "Deleted %s '%s' is still referenced by: %s",
                entity_type,
                id,
                ", ".join(r["id"] for r in referenced_by),
            )
        return result

    # ------------------------------------------------------------------
    # List / validate
    # ------------------------------------------------------------------

    def list_suites(
        self,
        directory: str,
        id_contains: str | None = None,
        filters: SearchFilters | dict | None = None,
    ) -> dict[str, Any]:
        root = self._resolve(directory)
        self._require_dir(root, "Suite search directory")
        loaded, skipped = self._load_valid(root, SUITE)
        if id_contains:
            loaded = [(s, p) for s, p in loaded if id_contains in s.id]

        search = filters if isinstance(filters, SearchFilters) else SearchFilters.from_dict(filters)
        filtered = filter_entities([s for s, _ in loaded], search)
        kept = {id(s) for s in filtered.items}
        items = sorted(
            (
                {"id": s.id, "title": s.title, "path": self._rel(p)}
                for s, p in loaded
                if id(s) in kept
            ),
            key=lambda item: item["id"],
        )
        return {
            "dir": self._rel(root),
            "count": len(items),
            "items": items,
            "meta": filtered.meta.to_dict(),
            "skipped": skipped,
        }

    def list_cases(
        self,
        directory: str,
        id_contains: str | None = None,
        filters: SearchFilters | dict | None = None,
        *,
        scoped_only: bool = False,
        issue_status: str | None = None,
        issue_has: str | None = None,
        suite_owners: list[str] | None = None,
    ) -> dict[str, Any]:
        """List valid cases under directory.

        ``suite_owners`` matches against the owners of the ``index.yaml``
        next to each case. ``issue_has`` is a case-insensitive keyword search
        over issue text fields.
        """
        if issue_status and issue_status not in ISSUE_STATUSES:
            raise ValidationFailedError(
                f"Invalid issue status: {issue_status}. Expected {'|'.join(ISSUE_STATUSES)}.",
                [Diagnostic("issue_status", "Invalid enum value")],
            )
        root = self._resolve(directory)
        self._require_dir(root, "Case search directory")
        loaded, skipped = self._load_valid(root, CASE)

        owners_cache: dict[Path, list[str]] = {}

        def owners_of(case_path: Path) -> list[str]:
            suite_path = case_path.parent / SUITE_INDEX_FILE
            if suite_path not in owners_cache:
                owners: list[str] = []
                if suite_path.is_file():
                    try:
                        raw = read_yaml_file(suite_path)
                    except TlogError:
                        raw = None
                    if isinstance(raw, dict) and isinstance(raw.get("owners"), list):
                        owners = [o for o in raw["owners"] if isinstance(o, str)]
                owners_cache[suite_path] = owners
            return owners_cache[suite_path]

        keyword = issue_has.strip().lower() if issue_has else ""

        def issue_matches(case: TestCase) -> bool:
            for issue in case.issues:
                parts = [issue.incident, issue.status, *issue.owners, *issue.causes,
                         *issue.solutions, *issue.related, *issue.remarks]
                if any(keyword in part.lower() for part in parts):
                    return True
            return False

        candidates = []
        for case, path in loaded:
            if id_contains and id_contains not in case.id:
                continue
            if scoped_only and not case.scoped:
                continue
            if issue_status and not any(i.status == issue_status for i in case.issues):
                continue
            if keyword and not issue_matches(case):
                continue
            if suite_owners and not set(suite_owners) & set(owners_of(path)):
                continue
            candidates.append((case, path))

        search = filters if isinstance(filters, SearchFilters) else SearchFilters.from_dict(filters)
        filtered = filter_entities([c for c, _ in candidates], search)
        kept = {id(c) for c in filtered.items}
        items = sorted(
            (
                {"id": c.id, "title": c.title, "status": c.status, "path": self._rel(p)}
                for c, p in candidates
                if id(c) in kept
            ),
            key=lambda item: item["id"],
        )
        return {
            "dir": self._rel(root),
            "count": len(items),
            "items": items,
            "meta": filtered.meta.to_dict(),
            "skipped": skipped,
        }

    def validate_directory(self, directory: str, *, fail_on_warning: bool = False) -> dict[str, Any]:
        """Validate every YAML file under directory.

        Parse failures are reported as errors carrying line and column.
        Duplicate ids are reported alongside the per-file results.
        """
        root = self._resolve(directory)
        self._require_dir(root, "Validation target")
        files = self._yaml_files(root)
        items = []
        for path in files:
            entity_type = detect_entity_type(path)
            item: dict[str, Any] = {"path": self._rel(path), "type": entity_type}
            try:
                result = validate_entity(read_yaml_file(path), entity_type)
            except (TlogError, OSError, UnicodeDecodeError) as exc:
                error: dict[str, Any] = {"path": "$", "message": getattr(exc, "message", str(exc))}
                if isinstance(exc, YamlParseError):
                    error.update(line=exc.line, column=exc.column)
                item.update(ok=False, errors=[error], warnings=[])
                items.append(item)
                continue
            item.update(
                ok=result.ok,
                errors=[e.to_dict() for e in result.errors],
                warnings=[w.to_dict() for w in result.warnings],
            )
            items.append(item)

        duplicates = self._duplicates(self._index(root))
        error_count = sum(len(i["errors"]) for i in items)
        warning_count = sum(len(i["warnings"]) for i in items)
        has_failure = bool(error_count or duplicates or (fail_on_warning and warning_count))
        return {
            "dir": self._rel(root),
            "ok": not has_failure,
            "items": items,
            "duplicates": duplicates,
            "summary": {
                "total_files": len(files),
                "error_files": sum(1 for i in items if i["errors"]),
                "warning_files": sum(1 for i in items if i["warnings"]),
                "error_count": error_count,
                "warning_count": warning_count,
                "duplicate_ids": len(duplicates),
            },
            "fail_on_warning": fail_on_warning,
        }

    def list_templates(self, directory: str | None = None) -> dict[str, Any]:
        """Subdirectories of directory that contain an ``index.yaml``."""
        root = self._resolve(directory or self.config.templates_dir)
        self._require_dir(root, "Template directory")
        templates = [
            {"name": entry.name, "path": self._rel(entry)}
            for entry in sorted(root.iterdir(), key=lambda p: p.name)
            if entry.is_dir() and (entry / SUITE_INDEX_FILE).is_file()
        ]
        return {"dir": self._rel(root), "count": len(templates), "templates": templates}

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    def resolve_entity_path(self, directory: str, id: str) -> dict[str, Any]:
        root = self._resolve(directory)
        self._require_dir(root, "Search directory")
        index = self._index(root)
        found = resolve_by_id(index, id)
        return {
            "id": id,
            "found": self._card(found) if found else None,
            "duplicates": self._duplicates(index),
        }

    def resolve_related_targets(
        self,
        directory: str,
        id: str | None = None,
        related_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        """Resolve the related ids of entity ``id`` (or an explicit id list)."""
        root = self._resolve(directory)
        self._require_dir(root, "Search directory")
        index = self._index(root)
        source = None
        if id:
            source = resolve_unique(index, id)
            related = source.related
        elif related_ids is not None:
            related = list(related_ids)
        else:
            raise ValidationFailedError(
                "either id or related_ids is required",
                [Diagnostic("id", "Required")],
            )
        resolution = resolve_related(index, {"related": related})
        return {
            "source": self._card(source) if source else None,
            "resolved": [self._card(e) for e in resolution.resolved],
            "missing": resolution.missing,
            "duplicates": self._duplicates(index),
        }

    def sync_related(self, directory: str, id: str | None = None, *, write: bool = False) -> dict[str, Any]:
        """Make related links reciprocal.

        For each source (every entity, or only ``id``) the source id is added
        to each resolved target's ``related`` list unless already present.
        Running twice changes nothing the second time. All targets are
        validated before the first write, so an invalid target leaves every
        file untouched. An interrupted write is repaired by running again.

        Raises:
            DuplicateIdError: If any id under directory is declared twice.
        """
        root = self._resolve(directory)
        self._require_dir(root, "Related sync directory")
        index = self._index(root)
        if index.duplicates:
            first = index.duplicates[0]
            err = DuplicateIdError(first.id, [self._rel(p) for p in first.paths])
            err.details["duplicates"] = self._duplicates(index)
            raise err

        sources = [resolve_unique(index, id)] if id else index.entities
        additions: dict[Path, list[str]] = {}
        unresolved = []
        for source in sources:
            for target_id in source.related:
                target = index.by_id.get(target_id)
                if target is None:
                    unresolved.append({"source_id": source.id, "target_id": target_id})
                    continue
                if target.id == source.id or source.id in target.related:
                    continue
                pending = additions.setdefault(target.path, [])
                if source.id not in pending:
                    pending.append(source.id)

        # Validate every target before touching any file.
        planned = []
        for path, source_ids in additions.items():
            raw = read_yaml_file(path)
            existing = raw.get("related")
            current = [r for r in existing if isinstance(r, str)] if isinstance(existing, list) else []
            updated = {**raw, "related": list(dict.fromkeys(current + source_ids))}
            result = validate_entity(updated, detect_entity_type(path))
            if not result.ok:
                raise ValidationFailedError(
                    f"related sync validation failed: {raw.get('id')} ({self._rel(path)})",
                    result.errors,
                )
            planned.append((path, updated))

        changed_files = []
        for path, updated in planned:
            if write:
                write_yaml_file_atomic(path, updated)
            changed_files.append(self._rel(path))

        if write and changed_files:
            logger.info("Related links synced in %d file(s)", len(changed_files))
        return {
            "dir": self._rel(root),
            "target_id": id,
            "write": write,
            "synced_count": len(changed_files),
            "changed_files": changed_files,
            "unresolved": unresolved,
        }

    # ------------------------------------------------------------------
    # Statistics / snapshot
    # ------------------------------------------------------------------

    def suite_stats(self, directory: str, id: str) -> dict[str, Any]:
        """Status counts and burndowns for the cases under a suite's directory.

        Only scoped cases count, and only when the suite itself is scoped.
        """
        root = self._resolve(directory)
        self._require_dir(root, "Suite search directory")
        found = resolve_unique(self._index(root), id, SUITE)
        result = validate_entity(read_yaml_file(found.path), SUITE)
        if not result.ok:
            raise ValidationFailedError(f"suite is invalid: {self._rel(found.path)}", result.errors)
        suite: Suite = result.data

        loaded, skipped = self._load_valid(found.path.parent, CASE)
        scoped_cases = [c for c, _ in loaded if c.scoped] if suite.scoped else []

        status_counts = {"todo": 0, "doing": 0, "done": 0, "null": 0, "total": len(scoped_cases)}
        for case in scoped_cases:
            status_counts[case.status if case.status is not None else "null"] += 1

        scheduled = suite.duration.scheduled
        actual = suite.duration.actual
        return {
            "id": suite.id,
            "path": self._rel(found.path),
            "status_counts": status_counts,
            "duration": suite.duration.to_dict(),
            "scheduled": calculate_burndown(scoped_cases, scheduled.start, scheduled.end).to_dict(),
            "actual": calculate_burndown(scoped_cases, actual.start, actual.end).to_dict(),
            "skipped": skipped,
        }

    def workspace_snapshot(self, directory: str | None = None) -> dict[str, Any]:
        """Lightweight cards for every valid suite and case under directory."""
        root = self._resolve(directory or self.config.tests_dir)
        self._require_dir(root, "Snapshot directory")
        suites, skipped_suites = self._load_valid(root, SUITE)
        cases, skipped_cases = self._load_valid(root, CASE)
        return {
            "dir": self._rel(root),
            "suites": [
                {
                    "id": s.id,
                    "title": s.title,
                    "path": self._rel(p),
                    "tags": s.tags,
                    "owners": s.owners,
                    "scoped": s.scoped,
                    "duration": s.duration.to_dict(),
                }
                for s, p in suites
            ],
            "cases": [
                {
                    "id": c.id,
                    "title": c.title,
                    "path": self._rel(p),
                    "status": c.status,
                    "scoped": c.scoped,
                    "tags": c.tags,
                    "completedDay": c.completed_day,
                    "test_count": len(c.tests),
                    "issue_count": len(c.issues),
                }
                for c, p in cases
            ],
            "invalid_files": skipped_suites + skipped_cases,
            "duplicates": self._duplicates(self._index(root)),
        }

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def init_tests_directory(
        self,
        output_dir: str | None = None,
        template_dir: str | None = None,
        *,
        write: bool = False,
    ) -> dict[str, Any]:
        """Seed a tests directory with ``index.yaml`` and one sample case."""
        target = self._resolve(output_dir or self.config.tests_dir)
        suite = build_default_suite("default", "Default Suite")
        case = build_default_case("default-case", "Default Case")
        warnings: list[str] = []

        if template_dir:
            template = extract_template_from_directory(self._resolve(template_dir))
            normalized_suite = normalize_suite_candidate({**suite.to_dict(), **template.suite}, suite)
            normalized_case = normalize_case_candidate({**case.to_dict(), **template.test_case}, case)
            suite, case = normalized_suite.entity, normalized_case.entity
            warnings = normalized_suite.warnings + normalized_case.warnings

        suite_path = target / SUITE_INDEX_FILE
        case_path = target / build_case_file_name(case.id, case.title)
        planned = [self._rel(suite_path), self._rel(case_path)]
        written: list[str] = []
        if write:
            assert_no_overwrite(suite_path)
            assert_no_overwrite(case_path)
            write_yaml_file_atomic(suite_path, suite.to_dict())
            write_yaml_file_atomic(case_path, case.to_dict())
            written = list(planned)
            logger.info("Initialized tests directory: %s", self._rel(target))
        return {"planned_files": planned, "written_files": written, "warnings": warnings}

    def create_template_directory(
        self,
        output_dir: str | None = None,
        from_dir: str | None = None,
        *,
        write: bool = False,
    ) -> dict[str, Any]:
        """Write ``index.yaml`` and ``template.testcase.yaml`` to output_dir.

        With ``from_dir`` the template is extracted from an existing suite
        directory and normalized first.
        """
        target = self._resolve(output_dir or f"{self.config.templates_dir}/default")
        suite = build_default_suite("template-suite", "Template Suite")
        case = build_default_case("template-case", "Template Case")
        warnings: list[str] = []

        if from_dir:
            source = self._resolve(from_dir)
            self._require_dir(source, "Template source directory")
            template = extract_template_from_directory(source)
            normalized_suite = normalize_suite_candidate(template.suite, suite)
            normalized_case = normalize_case_candidate(template.test_case, case)
            suite, case = normalized_suite.entity, normalized_case.entity
            warnings = normalized_suite.warnings + normalized_case.warnings

        suite_path = target / SUITE_INDEX_FILE
        case_path = target / TEMPLATE_CASE_FILE
        planned = [self._rel(suite_path), self._rel(case_path)]
        written: list[str] = []
        if write:
            assert_no_overwrite(suite_path)
            assert_no_overwrite(case_path)
            write_yaml_file_atomic(suite_path, suite.to_dict())
            write_yaml_file_atomic(case_path, case.to_dict())
            written = list(planned)
            logger.info("Template created: %s", self._rel(target))
        return {
            "template_path": self._rel(target),
            "planned_files": planned,
            "written_files": written,
            "warnings": warnings,
        }

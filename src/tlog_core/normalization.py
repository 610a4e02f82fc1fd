"""Best-effort repair of loosely-shaped suite and case input.

Every entry point that mutates entities (agent tools, CLI updates, hand-edited
YAML) runs input through here first. Each field is reconciled on its own:
bad values fall back to a default and produce a human-readable warning.
The result is always re-validated strictly. Normalization only raises when
the repaired candidate still fails validation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from tlog_core.builders import build_default_case, build_default_suite
from tlog_core.domain import (
    CASE_FIELDS,
    CASE_STATUSES,
    ISSUE_FIELDS,
    ISSUE_LEGACY_FIELDS,
    ISSUE_STATUSES,
    RESULT_STATUSES,
    SUITE_FIELDS,
    TEST_ITEM_FIELDS,
    IssueStatus,
    RawRecord,
    Suite,
    TestCase,
    as_date_string,
    is_date_string,
)
from tlog_core.errors import ValidationFailedError
from tlog_core.schema import join_path, validate_case, validate_suite

logger = logging.getLogger(__name__)

_MISSING: Any = object()


@dataclass
class NormalizationResult:
    entity: Any
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"entity": self.entity.to_dict(), "warnings": list(self.warnings)}


def _as_record(value: Any) -> RawRecord:
    if isinstance(value, dict):
        return value
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return {}


class _Normalizer:
    def __init__(self) -> None:
        self.warnings: list[str] = []

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def text(self, raw: RawRecord, key: str, path: str, fallback: str, *, required: bool = False) -> str:
        value = raw.get(key, _MISSING)
        if value is _MISSING or value is None:
            return fallback
        if not isinstance(value, str):
            self.warn(f"{path} was reset to default because value is not a string")
            return fallback
        trimmed = value.strip()
        if not trimmed and required:
            self.warn(f"{path} is empty and was reset to '{fallback}'")
            return fallback
        return trimmed if trimmed else fallback

    def strings(self, raw: RawRecord, key: str, path: str, fallback: list[str]) -> list[str]:
        value = raw.get(key, _MISSING)
        if value is _MISSING or value is None:
            return list(fallback)
        if not isinstance(value, list):
            self.warn(f"{path} was reset to default because value is not a list")
            return list(fallback)
        kept = [v for v in value if isinstance(v, str)]
        dropped = len(value) - len(kept)
        if dropped:
            self.warn(f"{path} dropped {dropped} non-string value(s)")
        return kept

    def flag(self, raw: RawRecord, key: str, path: str, fallback: bool) -> bool:
        value = raw.get(key, _MISSING)
        if value is _MISSING or value is None:
            return fallback
        if not isinstance(value, bool):
            self.warn(f"{path} value {value!r} is not a boolean and was reset to {fallback}")
            return fallback
        return value

    def status(
        self,
        raw: RawRecord,
        key: str,
        path: str,
        allowed: tuple[str, ...],
        *,
        fallback: str | None,
        reset_to: str | None,
    ) -> str | None:
        value = raw.get(key, _MISSING)
        if value is _MISSING:
            return fallback
        if value is None:
            return reset_to
        reset_label = "null" if reset_to is None else f"'{reset_to}'"
        if not isinstance(value, str):
            self.warn(f"{path} was reset to {reset_label} because value is not a string")
            return reset_to
        lowered = value.strip().lower()
        if lowered not in allowed:
            self.warn(f"{path} value '{value}' is invalid and was reset to {reset_label}")
            return reset_to
        if lowered != value:
            self.warn(f"{path} value '{value}' was normalized to '{lowered}'")
        return lowered

    def day(self, raw: RawRecord, key: str, path: str, fallback: str | None) -> str | None:
        value = raw.get(key, _MISSING)
        if value is _MISSING:
            return fallback
        if value is None:
            return None
        if isinstance(value, date):
            return as_date_string(value)
        if isinstance(value, str) and is_date_string(value.strip()):
            return value.strip()
        self.warn(f"{path} value {value!r} is not a valid date and was reset to {fallback!r}")
        return fallback

    def duration(self, raw: RawRecord, fallback: dict[str, Any]) -> dict[str, Any]:
        value = raw.get("duration", _MISSING)
        if value is _MISSING or value is None:
            return fallback
        if not isinstance(value, dict):
            self.warn("duration was reset to default because value is not an object")
            return fallback
        self.drop_unknown(value, ("scheduled", "actual"), "duration")
        result: dict[str, Any] = {}
        for part in ("scheduled", "actual"):
            part_path = join_path("duration", part)
            part_value = value.get(part, _MISSING)
            part_fallback = fallback[part]
            if part_value is _MISSING or part_value is None:
                result[part] = dict(part_fallback)
                continue
            if not isinstance(part_value, dict):
                self.warn(f"{part_path} was reset to default because value is not an object")
                result[part] = dict(part_fallback)
                continue
            self.drop_unknown(part_value, ("start", "end"), part_path)
            result[part] = {
                edge: self.day(part_value, edge, join_path(part_path, edge), part_fallback[edge])
                or part_fallback[edge]
                for edge in ("start", "end")
            }
        return result

    def drop_unknown(self, raw: RawRecord, fields: tuple[str, ...], path: str) -> None:
        for key in raw:
            if key not in fields:
                self.warn(f"unknown field removed: {join_path(path, str(key))}")

    def test_items(self, raw: RawRecord, fallback: list[dict]) -> list[dict]:
        value = raw.get("tests", _MISSING)
        if value is _MISSING or value is None:
            return fallback
        if not isinstance(value, list):
            self.warn("tests was reset to default because value is not a list")
            return fallback
        items = []
        for idx, item in enumerate(value):
            path = join_path("tests", idx)
            if not isinstance(item, dict):
                self.warn(f"{path} was removed because it is not an object")
                continue
            self.drop_unknown(item, TEST_ITEM_FIELDS, path)
            items.append({
                "name": self.text(item, "name", join_path(path, "name"), f"test-{idx + 1}", required=True),
                "expected": self.text(item, "expected", join_path(path, "expected"), ""),
                "actual": self.text(item, "actual", join_path(path, "actual"), ""),
                "trails": self.strings(item, "trails", join_path(path, "trails"), []),
                "status": self.status(
                    item, "status", join_path(path, "status"), RESULT_STATUSES,
                    fallback=None, reset_to=None,
                ),
            })
        return items

    def issues(self, raw: RawRecord, fallback: list[dict]) -> list[dict]:
        value = raw.get("issues", _MISSING)
        if value is _MISSING or value is None:
            return fallback
        if not isinstance(value, list):
            self.warn("issues was reset to default because value is not a list")
            return fallback
        items = []
        for idx, item in enumerate(value):
            path = join_path("issues", idx)
            if not isinstance(item, dict):
                self.warn(f"{path} was removed because it is not an object")
                continue
            item = self.fold_legacy(item, path)
            self.drop_unknown(item, ISSUE_FIELDS, path)
            open_ = IssueStatus.OPEN.value
            items.append({
                "incident": self.text(
                    item, "incident", join_path(path, "incident"), f"issue-{idx + 1}", required=True
                ),
                "owners": self.strings(item, "owners", join_path(path, "owners"), []),
                "causes": self.strings(item, "causes", join_path(path, "causes"), []),
                "solutions": self.strings(item, "solutions", join_path(path, "solutions"), []),
                "status": self.status(
                    item, "status", join_path(path, "status"), ISSUE_STATUSES,
                    fallback=open_, reset_to=open_,
                ),
                "detectedDay": self.day(item, "detectedDay", join_path(path, "detectedDay"), None),
                "completedDay": self.day(item, "completedDay", join_path(path, "completedDay"), None),
                "related": self.strings(item, "related", join_path(path, "related"), []),
                "remarks": self.strings(item, "remarks", join_path(path, "remarks"), []),
            })
        return items

    def fold_legacy(self, item: RawRecord, path: str) -> RawRecord:
        folded = {k: v for k, v in item.items() if k not in ISSUE_LEGACY_FIELDS}
        for legacy, canonical in ISSUE_LEGACY_FIELDS.items():
            if legacy not in item:
                continue
            if isinstance(folded.get(canonical), list):
                self.warn(f"{join_path(path, legacy)} was ignored because {canonical} is present")
            else:
                folded[canonical] = item[legacy]
                self.warn(f"{join_path(path, legacy)} was mapped to {canonical}")
        return folded


def _fallback_record(built: Any, defaults: Any, fields: tuple[str, ...]) -> RawRecord:
    record = built.to_dict()
    overrides = _as_record(defaults)
    for key in fields:
        if key in overrides:
            record[key] = overrides[key]
    return record


def _seed(defaults: Any, key: str, generic: str) -> str:
    value = _as_record(defaults).get(key)
    return value if isinstance(value, str) and value.strip() else generic


def _finish(candidate: RawRecord, validate: Any, label: str, warnings: list[str]) -> NormalizationResult:
    result = validate(candidate)
    if not result.ok:
        logger.debug("Normalized %s still invalid: %s", label, result.errors)
        raise ValidationFailedError(
            f"{label} failed validation after normalization: "
            + ", ".join(str(e) for e in result.errors),
            result.errors,
        )
    return NormalizationResult(
        entity=result.data,
        warnings=warnings + [str(w) for w in result.warnings],
    )


def normalize_suite_candidate(raw: Any, defaults: Any = None) -> NormalizationResult:
    """Reconcile arbitrary input into a valid Suite.

    Args:
        raw: Untyped mapping (parsed YAML or agent JSON).
        defaults: Mapping or Suite supplying fallback values.

    Raises:
        ValidationFailedError: If the repaired candidate is still invalid.
    """
    obj = _as_record(raw)
    built: Suite = build_default_suite(
        _seed(defaults, "id", "suite-default"),
        _seed(defaults, "title", "Suite Default"),
    )
    fallback = _fallback_record(built, defaults, SUITE_FIELDS)
    n = _Normalizer()

    candidate = {
        "id": n.text(obj, "id", "id", fallback["id"], required=True),
        "title": n.text(obj, "title", "title", fallback["title"], required=True),
        "tags": n.strings(obj, "tags", "tags", fallback["tags"]),
        "description": n.text(obj, "description", "description", fallback["description"]),
        "scoped": n.flag(obj, "scoped", "scoped", fallback["scoped"]),
        "owners": n.strings(obj, "owners", "owners", fallback["owners"]),
        "duration": n.duration(obj, fallback["duration"]),
        "related": n.strings(obj, "related", "related", fallback["related"]),
        "remarks": n.strings(obj, "remarks", "remarks", fallback["remarks"]),
    }
    for key in obj:
        if key not in SUITE_FIELDS:
            n.warn(f"unknown suite field removed: {key}")

    return _finish(candidate, validate_suite, "suite", n.warnings)


def normalize_case_candidate(raw: Any, defaults: Any = None) -> NormalizationResult:
    """Reconcile arbitrary input into a valid TestCase.

    Same contract as :func:`normalize_suite_candidate`.
    """
    obj = _as_record(raw)
    built: TestCase = build_default_case(
        _seed(defaults, "id", "case-default"),
        _seed(defaults, "title", "Case Default"),
    )
    fallback = _fallback_record(built, defaults, CASE_FIELDS)
    n = _Normalizer()

    candidate = {
        "id": n.text(obj, "id", "id", fallback["id"], required=True),
        "title": n.text(obj, "title", "title", fallback["title"], required=True),
        "tags": n.strings(obj, "tags", "tags", fallback["tags"]),
        "description": n.text(obj, "description", "description", fallback["description"]),
        "scoped": n.flag(obj, "scoped", "scoped", fallback["scoped"]),
        "status": n.status(
            obj, "status", "status", CASE_STATUSES,
            fallback=fallback["status"], reset_to=None,
        ),
        "operations": n.strings(obj, "operations", "operations", fallback["operations"]),
        "related": n.strings(obj, "related", "related", fallback["related"]),
        "remarks": n.strings(obj, "remarks", "remarks", fallback["remarks"]),
        "completedDay": n.day(obj, "completedDay", "completedDay", fallback["completedDay"]),
        "tests": n.test_items(obj, fallback["tests"]),
        "issues": n.issues(obj, fallback["issues"]),
    }
    for key in obj:
        if key not in CASE_FIELDS:
            n.warn(f"unknown testcase field removed: {key}")

    return _finish(candidate, validate_case, "testcase", n.warnings)

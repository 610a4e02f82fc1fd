"""Strict structural validation for suites, cases and issues.

Validation never coerces. Any key outside the declared shape is an error at
that key's path, and every required key must be present. Tolerant repair of
loosely-shaped input lives in ``tlog_core.normalization``.

After a payload passes, a second pass emits advisory warnings for data that
is structurally valid but empty (``tags is empty``, ``description is empty``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from tlog_core.domain import (
    CASE_FIELDS,
    CASE_STATUSES,
    ISSUE_FIELDS,
    ISSUE_LEGACY_FIELDS,
    ISSUE_STATUSES,
    RESULT_STATUSES,
    SUITE_FIELDS,
    TEST_ITEM_FIELDS,
    Duration,
    DurationRange,
    Issue,
    Suite,
    TestCase,
    TestItem,
    is_date_string,
    is_valid_id,
)


@dataclass
class Diagnostic:
    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message}

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass
class ValidationResult:
    ok: bool
    data: Any = None
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "data": self.data.to_dict() if self.data is not None else None,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def join_path(base: str, key: str | int) -> str:
    """Extend a diagnostic path: ``issues`` + 0 -> ``issues[0]``."""
    if isinstance(key, int):
        return f"{base}[{key}]"
    if not base:
        return key
    return f"{base}.{key}"


def _display(path: str) -> str:
    return path or "$"


class _Checker:
    """Collects diagnostics while walking a raw payload."""

    def __init__(self) -> None:
        self.errors: list[Diagnostic] = []

    def error(self, path: str, message: str) -> None:
        self.errors.append(Diagnostic(_display(path), message))

    def record(self, raw: Any, path: str, fields: tuple[str, ...]) -> bool:
        if not isinstance(raw, dict):
            self.error(path, "Expected object")
            return False
        for key in raw:
            if key not in fields:
                self.error(join_path(path, str(key)), f"Unrecognized key: {key}")
        for key in fields:
            if key not in raw:
                self.error(join_path(path, key), "Required")
        return True

    def string(self, raw: dict, key: str, path: str, *, non_empty: bool = False) -> None:
        if key not in raw:
            return
        value = raw[key]
        p = join_path(path, key)
        if not isinstance(value, str):
            self.error(p, "Expected string")
        elif non_empty and not value:
            self.error(p, "String must contain at least 1 character")

    def identifier(self, raw: dict, key: str, path: str) -> None:
        if key not in raw:
            return
        value = raw[key]
        p = join_path(path, key)
        if not isinstance(value, str):
            self.error(p, "Expected string")
        elif not is_valid_id(value):
            self.error(p, "Id must match [A-Za-z0-9_-]+")

    def boolean(self, raw: dict, key: str, path: str) -> None:
        if key in raw and not isinstance(raw[key], bool):
            self.error(join_path(path, key), "Expected boolean")

    def string_array(self, raw: dict, key: str, path: str) -> None:
        if key not in raw:
            return
        value = raw[key]
        p = join_path(path, key)
        if not isinstance(value, list):
            self.error(p, "Expected array")
            return
        for i, item in enumerate(value):
            if not isinstance(item, str):
                self.error(join_path(p, i), "Expected string")

    def enum(
        self,
        raw: dict,
        key: str,
        path: str,
        allowed: tuple[str, ...],
        *,
        nullable: bool,
    ) -> None:
        if key not in raw:
            return
        value = raw[key]
        if value is None and nullable:
            return
        if value not in allowed:
            self.error(
                join_path(path, key),
                f"Invalid enum value. Expected {' | '.join(repr(a) for a in allowed)}, "
                f"received {value!r}",
            )

    def day(self, raw: dict, key: str, path: str, *, nullable: bool) -> None:
        if key not in raw:
            return
        value = raw[key]
        if value is None and nullable:
            return
        p = join_path(path, key)
        if not isinstance(value, str):
            self.error(p, "Expected string")
        elif not is_date_string(value):
            self.error(p, "Expected date format YYYY-MM-DD")

    def items(
        self,
        raw: dict,
        key: str,
        path: str,
        check: Callable[[Any, str], None],
    ) -> None:
        if key not in raw:
            return
        value = raw[key]
        p = join_path(path, key)
        if not isinstance(value, list):
            self.error(p, "Expected array")
            return
        for i, item in enumerate(value):
            check(item, join_path(p, i))

    # -- shapes --------------------------------------------------------

    def range_(self, raw: Any, path: str) -> None:
        if self.record(raw, path, ("start", "end")):
            self.day(raw, "start", path, nullable=False)
            self.day(raw, "end", path, nullable=False)

    def duration(self, raw: Any, path: str) -> None:
        if self.record(raw, path, ("scheduled", "actual")):
            for key in ("scheduled", "actual"):
                if key in raw:
                    self.range_(raw[key], join_path(path, key))

    def suite(self, raw: Any, path: str = "") -> None:
        if not self.record(raw, path, SUITE_FIELDS):
            return
        self.identifier(raw, "id", path)
        self.string(raw, "title", path, non_empty=True)
        self.string(raw, "description", path)
        self.boolean(raw, "scoped", path)
        for key in ("tags", "owners", "related", "remarks"):
            self.string_array(raw, key, path)
        if "duration" in raw:
            self.duration(raw["duration"], join_path(path, "duration"))

    def test_item(self, raw: Any, path: str) -> None:
        if not self.record(raw, path, TEST_ITEM_FIELDS):
            return
        self.string(raw, "name", path, non_empty=True)
        self.string(raw, "expected", path)
        self.string(raw, "actual", path)
        self.string_array(raw, "trails", path)
        self.enum(raw, "status", path, RESULT_STATUSES, nullable=True)

    def issue(self, raw: Any, path: str) -> None:
        raw = fold_legacy_issue_fields(raw)
        if not self.record(raw, path, ISSUE_FIELDS):
            return
        self.string(raw, "incident", path, non_empty=True)
        for key in ("owners", "causes", "solutions", "related", "remarks"):
            self.string_array(raw, key, path)
        self.enum(raw, "status", path, ISSUE_STATUSES, nullable=False)
        self.day(raw, "detectedDay", path, nullable=True)
        self.day(raw, "completedDay", path, nullable=True)

    def case(self, raw: Any, path: str = "") -> None:
        if not self.record(raw, path, CASE_FIELDS):
            return
        self.identifier(raw, "id", path)
        self.string(raw, "title", path, non_empty=True)
        self.string(raw, "description", path)
        self.boolean(raw, "scoped", path)
        self.enum(raw, "status", path, CASE_STATUSES, nullable=True)
        for key in ("tags", "operations", "related", "remarks"):
            self.string_array(raw, key, path)
        self.day(raw, "completedDay", path, nullable=True)
        self.items(raw, "tests", path, self.test_item)
        self.items(raw, "issues", path, self.issue)


def fold_legacy_issue_fields(raw: Any) -> Any:
    """Map ``cause``/``solution``/``solutinos`` onto their canonical names.

    The canonical key wins when both are present. Legacy keys are always
    consumed so they never surface as unrecognized keys.
    """
    if not isinstance(raw, dict):
        return raw
    folded = {k: v for k, v in raw.items() if k not in ISSUE_LEGACY_FIELDS}
    for legacy, canonical in ISSUE_LEGACY_FIELDS.items():
        if legacy in raw and not isinstance(folded.get(canonical), list):
            folded[canonical] = raw[legacy]
    return folded


# -- typed construction (only called on payloads that passed) ----------


def _build_range(raw: dict) -> DurationRange:
    return DurationRange(start=raw["start"], end=raw["end"])


def _build_suite(raw: dict) -> Suite:
    return Suite(
        id=raw["id"],
        title=raw["title"],
        tags=list(raw["tags"]),
        description=raw["description"],
        scoped=raw["scoped"],
        owners=list(raw["owners"]),
        duration=Duration(
            scheduled=_build_range(raw["duration"]["scheduled"]),
            actual=_build_range(raw["duration"]["actual"]),
        ),
        related=list(raw["related"]),
        remarks=list(raw["remarks"]),
    )


def _build_test_item(raw: dict) -> TestItem:
    return TestItem(
        name=raw["name"],
        expected=raw["expected"],
        actual=raw["actual"],
        trails=list(raw["trails"]),
        status=raw["status"],
    )


def _build_issue(raw: dict) -> Issue:
    raw = fold_legacy_issue_fields(raw)
    return Issue(
        incident=raw["incident"],
        owners=list(raw["owners"]),
        causes=list(raw["causes"]),
        solutions=list(raw["solutions"]),
        status=raw["status"],
        detected_day=raw["detectedDay"],
        completed_day=raw["completedDay"],
        related=list(raw["related"]),
        remarks=list(raw["remarks"]),
    )


def _build_case(raw: dict) -> TestCase:
    return TestCase(
        id=raw["id"],
        title=raw["title"],
        tags=list(raw["tags"]),
        description=raw["description"],
        scoped=raw["scoped"],
        status=raw["status"],
        operations=list(raw["operations"]),
        related=list(raw["related"]),
        remarks=list(raw["remarks"]),
        completed_day=raw["completedDay"],
        tests=[_build_test_item(t) for t in raw["tests"]],
        issues=[_build_issue(i) for i in raw["issues"]],
    )


# -- warnings ----------------------------------------------------------


def _empty_warnings(raw: dict, arrays: tuple[str, ...]) -> list[Diagnostic]:
    warnings = [
        Diagnostic(key, f"{key} is empty")
        for key in arrays
        if isinstance(raw.get(key), list) and not raw[key]
    ]
    description = raw.get("description")
    if isinstance(description, str) and not description.strip():
        warnings.append(Diagnostic("description", "description is empty"))
    return warnings


# -- public API --------------------------------------------------------


def validate_suite(raw: Any) -> ValidationResult:
    checker = _Checker()
    checker.suite(raw)
    if checker.errors:
        return ValidationResult(ok=False, errors=checker.errors)
    return ValidationResult(
        ok=True,
        data=_build_suite(raw),
        warnings=_empty_warnings(raw, ("tags", "owners", "related", "remarks")),
    )


def validate_case(raw: Any) -> ValidationResult:
    checker = _Checker()
    checker.case(raw)
    if checker.errors:
        return ValidationResult(ok=False, errors=checker.errors)
    return ValidationResult(
        ok=True,
        data=_build_case(raw),
        warnings=_empty_warnings(
            raw, ("tags", "operations", "related", "remarks", "tests", "issues")
        ),
    )


def validate_issue(raw: Any) -> ValidationResult:
    checker = _Checker()
    checker.issue(raw, "")
    if checker.errors:
        return ValidationResult(ok=False, errors=checker.errors)
    return ValidationResult(ok=True, data=_build_issue(raw))


def validate_entity(raw: Any, entity_type: str) -> ValidationResult:
    if entity_type == "suite":
        return validate_suite(raw)
    return validate_case(raw)

"""Suite, TestCase, TestItem and Issue types plus status enums and date helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

# Untyped mapping as parsed from YAML or received from an agent.
RawRecord = dict[str, Any]

ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class CaseStatus(str, Enum):
    TODO = "todo"
    DOING = "doing"
    DONE = "done"

    def __str__(self) -> str:
        return self.value


class ResultStatus(str, Enum):
    """Outcome of a single test item."""

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"
    BLOCK = "block"

    def __str__(self) -> str:
        return self.value


class IssueStatus(str, Enum):
    OPEN = "open"
    DOING = "doing"
    RESOLVED = "resolved"
    PENDING = "pending"

    def __str__(self) -> str:
        return self.value


CASE_STATUSES = tuple(s.value for s in CaseStatus)
RESULT_STATUSES = tuple(s.value for s in ResultStatus)
ISSUE_STATUSES = tuple(s.value for s in IssueStatus)


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and bool(ID_PATTERN.match(value))


def is_date_string(value: Any) -> bool:
    """True for ``YYYY-MM-DD`` strings that name a real calendar day."""
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        return False
    try:
        return date.fromisoformat(value).isoformat() == value
    except ValueError:
        return False


def as_date_string(value: Any) -> str:
    """Coerce a date object or date string to ``YYYY-MM-DD``.

    Raises:
        ValueError: If the value is not a valid calendar date.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if is_date_string(value):
        return value
    raise ValueError(f"invalid date: {value!r}")


def today_string() -> str:
    return datetime.now(timezone.utc).date().isoformat()


@dataclass
class DurationRange:
    start: str
    end: str

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end}


@dataclass
class Duration:
    scheduled: DurationRange
    actual: DurationRange

    def to_dict(self) -> dict[str, Any]:
        return {"scheduled": self.scheduled.to_dict(), "actual": self.actual.to_dict()}

    @classmethod
    def single_day(cls, day: str) -> Duration:
        return cls(scheduled=DurationRange(day, day), actual=DurationRange(day, day))


@dataclass
class Suite:
    id: str
    title: str
    duration: Duration
    tags: list[str] = field(default_factory=list)
    description: str = ""
    scoped: bool = True
    owners: list[str] = field(default_factory=list)
    related: list[str] = field(default_factory=list)
    remarks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "tags": list(self.tags),
            "description": self.description,
            "scoped": self.scoped,
            "owners": list(self.owners),
            "duration": self.duration.to_dict(),
            "related": list(self.related),
            "remarks": list(self.remarks),
        }


@dataclass
class TestItem:
    __test__ = False

    name: str
    expected: str = ""
    actual: str = ""
    trails: list[str] = field(default_factory=list)
    status: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "expected": self.expected,
            "actual": self.actual,
            "trails": list(self.trails),
            "status": self.status,
        }


@dataclass
class Issue:
    incident: str
    owners: list[str] = field(default_factory=list)
    causes: list[str] = field(default_factory=list)
    solutions: list[str] = field(default_factory=list)
    status: str = IssueStatus.OPEN.value
    detected_day: str | None = None
    completed_day: str | None = None
    related: list[str] = field(default_factory=list)
    remarks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "incident": self.incident,
            "owners": list(self.owners),
            "causes": list(self.causes),
            "solutions": list(self.solutions),
            "status": self.status,
            "detectedDay": self.detected_day,
            "completedDay": self.completed_day,
            "related": list(self.related),
            "remarks": list(self.remarks),
        }


@dataclass
class TestCase:
    __test__ = False

    id: str
    title: str
    tags: list[str] = field(default_factory=list)
    description: str = ""
    scoped: bool = True
    status: str | None = CaseStatus.TODO.value
    operations: list[str] = field(default_factory=list)
    related: list[str] = field(default_factory=list)
    remarks: list[str] = field(default_factory=list)
    completed_day: str | None = None
    tests: list[TestItem] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "tags": list(self.tags),
            "description": self.description,
            "scoped": self.scoped,
            "status": self.status,
            "operations": list(self.operations),
            "related": list(self.related),
            "remarks": list(self.remarks),
            "completedDay": self.completed_day,
            "tests": [t.to_dict() for t in self.tests],
            "issues": [i.to_dict() for i in self.issues],
        }


# Field tables shared by schema and normalization. Order is canonical YAML order.
SUITE_FIELDS = (
    "id", "title", "tags", "description", "scoped", "owners",
    "duration", "related", "remarks",
)
CASE_FIELDS = (
    "id", "title", "tags", "description", "scoped", "status", "operations",
    "related", "remarks", "completedDay", "tests", "issues",
)
TEST_ITEM_FIELDS = ("name", "expected", "actual", "trails", "status")
ISSUE_FIELDS = (
    "incident", "owners", "causes", "solutions", "status",
    "detectedDay", "completedDay", "related", "remarks",
)

# legacy key -> canonical key
ISSUE_LEGACY_FIELDS = {
    "cause": "causes",
    "solution": "solutions",
    "solutinos": "solutions",
}

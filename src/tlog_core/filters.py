"""Multi-condition filter evaluation with match diagnostics.

Each condition is optional. An absent or empty condition is not checked.
Within one condition any overlap matches; across conditions every checked
condition must match.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tlog_core.domain import Suite, TestCase

DATE_OPERATORS = ("onOrAfter", "onOrBefore", "between")
DATE_FIELDS = (
    "completedDay",
    "duration.scheduled.start",
    "duration.scheduled.end",
    "duration.actual.start",
    "duration.actual.end",
)


@dataclass
class DateFilter:
    field: str
    operator: str
    from_: str
    to: str | None = None

    def __post_init__(self) -> None:
        if self.field not in DATE_FIELDS:
            raise ValueError(f"Invalid date field '{self.field}'. Must be one of: {list(DATE_FIELDS)}")
        if self.operator not in DATE_OPERATORS:
            raise ValueError(
                f"Invalid date operator '{self.operator}'. Must be one of: {list(DATE_OPERATORS)}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DateFilter:
        return cls(
            field=data.get("field", ""),
            operator=data.get("operator", ""),
            from_=data.get("from", ""),
            to=data.get("to"),
        )


@dataclass
class SearchFilters:
    tags: list[str] = field(default_factory=list)
    owners: list[str] = field(default_factory=list)
    testcase_status: list[str | None] = field(default_factory=list)
    test_status: list[str | None] = field(default_factory=list)
    date: DateFilter | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SearchFilters:
        """Build from a mapping. Accepts camelCase and snake_case keys."""
        data = data or {}
        date_filter = data.get("date")
        return cls(
            tags=list(data.get("tags") or []),
            owners=list(data.get("owners") or []),
            testcase_status=list(data.get("testcase_status", data.get("testcaseStatus")) or []),
            test_status=list(data.get("test_status", data.get("testStatus")) or []),
            date=DateFilter.from_dict(date_filter) if isinstance(date_filter, dict) else date_filter,
        )

    def is_empty(self) -> bool:
        return not (self.tags or self.owners or self.testcase_status or self.test_status or self.date)


@dataclass
class FilterMeta:
    matched: bool
    checked_conditions: int = 0
    matched_conditions: int = 0
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "matched": self.matched,
            "checked_conditions": self.checked_conditions,
            "matched_conditions": self.matched_conditions,
            "reasons": list(self.reasons),
        }


@dataclass
class FilterResult:
    items: list[Any]
    meta: FilterMeta


def _compare_date(value: str, date_filter: DateFilter) -> bool:
    if date_filter.operator == "onOrAfter":
        return value >= date_filter.from_
    if date_filter.operator == "onOrBefore":
        return value <= date_filter.from_
    if not date_filter.to:
        return False
    return date_filter.from_ <= value <= date_filter.to


def _extract_date(entity: Suite | TestCase, field_name: str) -> str | None:
    if field_name == "completedDay":
        return getattr(entity, "completed_day", None)
    duration = getattr(entity, "duration", None)
    if duration is None:
        return None
    _, window, edge = field_name.split(".")
    return getattr(getattr(duration, window), edge)


def evaluate_filters(entity: Suite | TestCase, filters: SearchFilters) -> FilterMeta:
    """Evaluate every present condition against one entity.

    Conditions on fields the entity does not have (owners on a case, status
    or test results on a suite) are not checked.
    """
    checked = 0
    matched = 0
    reasons: list[str] = []

    def check(name: str, ok: bool) -> None:
        nonlocal checked, matched
        checked += 1
        if ok:
            matched += 1
            reasons.append(name)

    if filters.tags:
        check("tags", bool(set(entity.tags) & set(filters.tags)))

    if filters.owners and isinstance(entity, Suite):
        check("owners", bool(set(entity.owners) & set(filters.owners)))

    if filters.testcase_status and isinstance(entity, TestCase):
        check("testcaseStatus", entity.status in filters.testcase_status)

    if filters.test_status and isinstance(entity, TestCase):
        check("testStatus", any(t.status in filters.test_status for t in entity.tests))

    if filters.date is not None:
        value = _extract_date(entity, filters.date.field)
        check("date", bool(value) and _compare_date(value, filters.date))

    return FilterMeta(
        matched=checked == matched,
        checked_conditions=checked,
        matched_conditions=matched,
        reasons=reasons,
    )


def filter_entities(entities: list[Any], filters: SearchFilters) -> FilterResult:
    """Keep matching entities. Aggregate meta sums counts over all entities."""
    evaluations = [(entity, evaluate_filters(entity, filters)) for entity in entities]
    items = [entity for entity, meta in evaluations if meta.matched]
    reasons: list[str] = []
    for _, meta in evaluations:
        for reason in meta.reasons:
            if reason not in reasons:
                reasons.append(reason)
    return FilterResult(
        items=items,
        meta=FilterMeta(
            matched=bool(items),
            checked_conditions=sum(m.checked_conditions for _, m in evaluations),
            matched_conditions=sum(m.matched_conditions for _, m in evaluations),
            reasons=reasons,
        ),
    )

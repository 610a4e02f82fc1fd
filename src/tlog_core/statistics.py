"""Status summaries and planned-vs-actual burndown curves."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable

from tlog_core.domain import CaseStatus, TestCase

NO_TARGET_CASES = "no_target_cases"
INVALID_DATE_RANGE = "invalid_date_range"


@dataclass
class StatusSummary:
    todo: int = 0
    doing: int = 0
    done: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"todo": self.todo, "doing": self.doing, "done": self.done, "total": self.total}


@dataclass
class BurndownBucket:
    date: str
    planned_completed: int
    actual_completed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "planned_completed": self.planned_completed,
            "actual_completed": self.actual_completed,
        }


@dataclass
class BurndownResult:
    summary: StatusSummary
    buckets: list[BurndownBucket] = field(default_factory=list)
    anomalies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "buckets": [b.to_dict() for b in self.buckets],
            "anomalies": list(self.anomalies),
        }


def summarize_status(cases: Iterable[TestCase]) -> StatusSummary:
    """Count cases per status. ``total`` includes cases with a null status."""
    summary = StatusSummary()
    for case in cases:
        summary.total += 1
        if case.status == CaseStatus.TODO.value:
            summary.todo += 1
        elif case.status == CaseStatus.DOING.value:
            summary.doing += 1
        elif case.status == CaseStatus.DONE.value:
            summary.done += 1
    return summary


def calculate_burndown(cases: list[TestCase], start: str, end: str) -> BurndownResult:
    """Per-day planned and actual completion from start to end inclusive.

    Planned completion is spread linearly over the window. Actual completion
    counts done cases whose completedDay is on or before the bucket date.
    Callers pre-filter ``cases`` (e.g. to scoped cases only).
    """
    summary = summarize_status(cases)
    result = BurndownResult(summary=summary)

    if summary.total == 0:
        result.anomalies.append(NO_TARGET_CASES)
    # Fixed-width YYYY-MM-DD compares correctly as text.
    if start > end:
        result.anomalies.append(INVALID_DATE_RANGE)
        return result

    start_day = date.fromisoformat(start)
    days = (date.fromisoformat(end) - start_day).days + 1
    completed = sorted(
        c.completed_day
        for c in cases
        if c.status == CaseStatus.DONE.value and c.completed_day is not None
    )

    for offset in range(days):
        day = (start_day + timedelta(days=offset)).isoformat()
        planned = min(summary.total, math.ceil((offset + 1) / days * summary.total))
        actual = sum(1 for d in completed if d <= day)
        result.buckets.append(BurndownBucket(day, planned, actual))
    return result

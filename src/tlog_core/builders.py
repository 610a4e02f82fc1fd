"""Default suite and case construction."""

from __future__ import annotations

from typing import Any

from tlog_core.domain import CaseStatus, Duration, TestCase, Suite, as_date_string, today_string
from tlog_core.errors import ValidationFailedError
from tlog_core.schema import validate_case, validate_suite

_UNSET: Any = object()


def build_default_suite(
    id: str,
    title: str,
    *,
    description: str = "",
    scoped: bool = True,
    tags: list[str] | None = None,
    owners: list[str] | None = None,
    duration: Duration | dict | None = None,
    related: list[str] | None = None,
    remarks: list[str] | None = None,
) -> Suite:
    """Build a suite with defaults applied and validate it.

    The duration defaults to today for both the scheduled and actual range.

    Raises:
        ValidationFailedError: If the resulting suite is invalid.
    """
    if duration is None:
        duration = Duration.single_day(today_string())
    candidate = {
        "id": id,
        "title": title,
        "tags": list(tags or []),
        "description": description,
        "scoped": scoped,
        "owners": list(owners or []),
        "duration": duration.to_dict() if isinstance(duration, Duration) else duration,
        "related": list(related or []),
        "remarks": list(remarks or []),
    }
    result = validate_suite(candidate)
    if not result.ok:
        raise ValidationFailedError(
            "Invalid suite defaults: " + ", ".join(e.path for e in result.errors),
            result.errors,
        )
    return result.data


def build_default_case(
    id: str,
    title: str,
    *,
    description: str = "",
    scoped: bool = True,
    status: str | None = CaseStatus.TODO.value,
    tags: list[str] | None = None,
    operations: list[str] | None = None,
    related: list[str] | None = None,
    remarks: list[str] | None = None,
    completed_day: Any = _UNSET,
) -> TestCase:
    """Build a case with defaults applied and validate it.

    ``completed_day`` defaults to today. Pass ``None`` explicitly for a case
    that has no completion day.
    """
    if completed_day is _UNSET:
        completed_day = today_string()
    elif completed_day is not None:
        completed_day = as_date_string(completed_day)

    candidate = {
        "id": id,
        "title": title,
        "tags": list(tags or []),
        "description": description,
        "scoped": scoped,
        "status": status,
        "operations": list(operations or []),
        "related": list(related or []),
        "remarks": list(remarks or []),
        "completedDay": completed_day,
        "tests": [],
        "issues": [],
    }
    result = validate_case(candidate)
    if not result.ok:
        raise ValidationFailedError(
            "Invalid case defaults: " + ", ".join(e.path for e in result.errors),
            result.errors,
        )
    return result.data

"""tlog engine: YAML-backed test suites and cases.

Provides validation, tolerant normalization, id-based cross-reference
resolution, filtering and burndown statistics, plus a workspace service
that composes them with file I/O for the CLI and the MCP server.
"""

__version__ = "0.1.0"

from .builders import build_default_case, build_default_suite
from .domain import CaseStatus, Issue, IssueStatus, ResultStatus, Suite, TestCase, TestItem
from .errors import (
    ConfirmationRequiredError,
    ConflictError,
    DuplicateIdError,
    EntityNotFoundError,
    PathOutsideWorkspaceError,
    ResolutionError,
    TlogError,
    ValidationFailedError,
    YamlParseError,
)
from .filters import SearchFilters, evaluate_filters, filter_entities
from .id_index import build_id_index, resolve_by_id, resolve_related, resolve_unique
from .normalization import normalize_case_candidate, normalize_suite_candidate
from .schema import validate_case, validate_issue, validate_suite
from .statistics import calculate_burndown, summarize_status
from .workspace import TlogWorkspace

__all__ = [
    "__version__",
    "CaseStatus",
    "ConfirmationRequiredError",
    "ConflictError",
    "DuplicateIdError",
    "EntityNotFoundError",
    "Issue",
    "IssueStatus",
    "PathOutsideWorkspaceError",
    "ResolutionError",
    "ResultStatus",
    "SearchFilters",
    "Suite",
    "TestCase",
    "TestItem",
    "TlogError",
    "TlogWorkspace",
    "ValidationFailedError",
    "YamlParseError",
    "build_default_case",
    "build_default_suite",
    "build_id_index",
    "calculate_burndown",
    "evaluate_filters",
    "filter_entities",
    "normalize_case_candidate",
    "normalize_suite_candidate",
    "resolve_by_id",
    "resolve_related",
    "resolve_unique",
    "summarize_status",
    "validate_case",
    "validate_issue",
    "validate_suite",
]

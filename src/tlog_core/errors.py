"""Exception hierarchy for tlog.

Every error carries a ``category`` so callers can tell a schema problem
(fix the content) from a resolution problem (pick another id or path).
"""

from __future__ import annotations

from typing import Any


class TlogError(Exception):
    """Base exception for tlog.

    All custom exceptions inherit from this class, allowing callers to
    catch every tlog failure with a single except clause.
    """

    category = "internal"
    code = "TLOG_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationFailedError(TlogError):
    """Structural validation failure. Always blocks persistence."""

    category = "validation"
    code = "VALIDATION_FAILED"

    def __init__(self, message: str, diagnostics: list[Any] | None = None) -> None:
        self.diagnostics = list(diagnostics or [])
        super().__init__(
            message,
            details={"errors": [_diag_to_dict(d) for d in self.diagnostics]},
        )


class ResolutionError(TlogError):
    """Id lookup, duplicate id or out-of-boundary path."""

    category = "resolution"
    code = "RESOLUTION_FAILED"


class EntityNotFoundError(ResolutionError):
    code = "NOT_FOUND"

    def __init__(self, entity_id: str, entity_type: str | None = None) -> None:
        label = entity_type or "entity"
        super().__init__(
            f"{label} not found: {entity_id}",
            details={"id": entity_id, "type": entity_type},
        )
        self.entity_id = entity_id


class DuplicateIdError(ResolutionError):
    code = "DUPLICATE_ID"

    def __init__(self, entity_id: str, paths: list[str]) -> None:
        super().__init__(
            f"duplicate id '{entity_id}' found in: {', '.join(paths)}",
            details={"id": entity_id, "paths": list(paths)},
        )
        self.entity_id = entity_id
        self.paths = list(paths)


class PathOutsideWorkspaceError(ResolutionError):
    code = "PATH_OUTSIDE_WORKSPACE"

    def __init__(self, path: str) -> None:
        super().__init__(
            f"path is outside workspace root: {path}",
            details={"path": path},
        )


class ConflictError(TlogError):
    """Target file already exists or an id is already taken."""

    category = "conflict"
    code = "CONFLICT"


class ConfirmationRequiredError(TlogError):
    """Destructive operation attempted without explicit confirmation."""

    category = "confirmation"
    code = "CONFIRMATION_REQUIRED"


class YamlParseError(TlogError):
    category = "io"
    code = "YAML_PARSE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        super().__init__(
            message,
            details={"path": path, "line": line, "column": column},
        )
        self.path = path
        self.line = line
        self.column = column


def _diag_to_dict(diag: Any) -> dict[str, Any]:
    if hasattr(diag, "to_dict"):
        return diag.to_dict()
    return dict(diag)

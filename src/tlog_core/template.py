"""Seed-from-example templates.

A template is a directory holding an ``index.yaml`` (suite fields) and one
other YAML file (case fields). Template values overlay freshly built defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tlog_core.builders import build_default_case, build_default_suite
from tlog_core.domain import RawRecord
from tlog_core.naming import SUITE_INDEX_FILE
from tlog_core.schema import ValidationResult, validate_case, validate_suite
from tlog_core.yaml_io import is_yaml_file, read_yaml_file

logger = logging.getLogger(__name__)


@dataclass
class TlogTemplate:
    suite: RawRecord = field(default_factory=dict)
    test_case: RawRecord = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"suite": dict(self.suite), "testCase": dict(self.test_case)}


def _overlay(base: RawRecord, partial: RawRecord) -> RawRecord:
    merged = dict(base)
    merged.update({k: v for k, v in partial.items() if v is not None or k in base})
    return merged


def apply_template_to_suite(base: Any, template: TlogTemplate) -> RawRecord:
    """Overlay template suite fields on a suite (entity or mapping)."""
    record = base.to_dict() if hasattr(base, "to_dict") else dict(base)
    return _overlay(record, template.suite)


def apply_template_to_case(base: Any, template: TlogTemplate) -> RawRecord:
    record = base.to_dict() if hasattr(base, "to_dict") else dict(base)
    return _overlay(record, template.test_case)


def apply_template(
    suite_id: str,
    suite_title: str,
    case_id: str,
    case_title: str,
    template: TlogTemplate | None = None,
) -> tuple[RawRecord, RawRecord]:
    """Build default suite and case records, overlaying template if given.

    The ids and titles passed in always win over the template's.
    """
    suite = build_default_suite(suite_id, suite_title).to_dict()
    case = build_default_case(case_id, case_title).to_dict()
    if template is None:
        return suite, case
    suite = apply_template_to_suite(suite, template)
    case = apply_template_to_case(case, template)
    suite.update({"id": suite_id, "title": suite_title})
    case.update({"id": case_id, "title": case_title})
    return suite, case


def extract_template_from_directory(root_dir: Path | str) -> TlogTemplate:
    """Read ``index.yaml`` and the first other YAML file in root_dir."""
    root = Path(root_dir)
    files = sorted((p for p in root.iterdir() if p.is_file() and is_yaml_file(p)), key=lambda p: p.name)
    suite_file = next((p for p in files if p.name == SUITE_INDEX_FILE), None)
    case_file = next((p for p in files if p.name != SUITE_INDEX_FILE), None)

    suite = read_yaml_file(suite_file) if suite_file else {}
    case = read_yaml_file(case_file) if case_file else {}
    logger.debug("Extracted template from %s (suite=%s, case=%s)", root, suite_file, case_file)
    return TlogTemplate(
        suite=suite if isinstance(suite, dict) else {},
        test_case=case if isinstance(case, dict) else {},
    )


def validate_template(template: TlogTemplate) -> dict[str, Any]:
    """Check that template fields produce valid entities when applied.

    Returns {"valid": bool, "errors": ["path: message", ...]}.
    """
    suite_result: ValidationResult = validate_suite(
        apply_template_to_suite(build_default_suite("template-suite", "Template Suite"), template)
    )
    case_result: ValidationResult = validate_case(
        apply_template_to_case(build_default_case("template-case", "Template Case"), template)
    )
    errors = [str(e) for e in suite_result.errors + case_result.errors]
    return {"valid": not errors, "errors": errors}

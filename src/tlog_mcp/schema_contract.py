"""Schema description and examples served to agents.

Built from the same field tables the validator uses, so the contract an
agent reads cannot drift from what the engine accepts.
"""

from __future__ import annotations

import copy
from typing import Any

from tlog_core.domain import (
    CASE_FIELDS,
    CASE_STATUSES,
    ISSUE_FIELDS,
    ISSUE_LEGACY_FIELDS,
    ISSUE_STATUSES,
    RESULT_STATUSES,
    SUITE_FIELDS,
    TEST_ITEM_FIELDS,
)

SCHEMA_VERSION = "1.0.0"
TOPICS = ("suite", "case", "issue", "enum", "all")

_STRING_ARRAY = {"type": "array", "items": {"type": "string"}}
_DATE = {"type": "string", "format": "date", "pattern": r"^\d{4}-\d{2}-\d{2}$"}
_NULLABLE_DATE = {"type": ["string", "null"], "format": "date"}
_ID = {"type": "string", "pattern": r"^[A-Za-z0-9_-]+$"}
_RANGE = {
    "type": "object",
    "required": ["start", "end"],
    "additionalProperties": False,
    "properties": {"start": _DATE, "end": _DATE},
}

REQUIRED_FIELDS = {
    "suite": list(SUITE_FIELDS),
    "case": list(CASE_FIELDS),
    "issue": list(ISSUE_FIELDS),
    "test": list(TEST_ITEM_FIELDS),
}

ENUM_VALUES = {
    "testcaseStatus": [*CASE_STATUSES, None],
    "testResultStatus": [*RESULT_STATUSES, None],
    "issueStatus": list(ISSUE_STATUSES),
    "legacy": {k: f"normalized to {v}" for k, v in ISSUE_LEGACY_FIELDS.items()},
}

SUITE_SCHEMA = {
    "type": "object",
    "required": list(SUITE_FIELDS),
    "additionalProperties": False,
    "properties": {
        "id": _ID,
        "title": {"type": "string", "minLength": 1},
        "tags": _STRING_ARRAY,
        "description": {"type": "string"},
        "scoped": {"type": "boolean"},
        "owners": _STRING_ARRAY,
        "duration": {
            "type": "object",
            "required": ["scheduled", "actual"],
            "additionalProperties": False,
            "properties": {"scheduled": _RANGE, "actual": _RANGE},
        },
        "related": _STRING_ARRAY,
        "remarks": _STRING_ARRAY,
    },
}

TEST_ITEM_SCHEMA = {
    "type": "object",
    "required": list(TEST_ITEM_FIELDS),
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "expected": {"type": "string"},
        "actual": {"type": "string"},
        "trails": _STRING_ARRAY,
        "status": {"enum": [*RESULT_STATUSES, None]},
    },
}

ISSUE_SCHEMA = {
    "type": "object",
    "required": list(ISSUE_FIELDS),
    "additionalProperties": False,
    "properties": {
        "incident": {"type": "string", "minLength": 1},
        "owners": _STRING_ARRAY,
        "causes": _STRING_ARRAY,
        "solutions": _STRING_ARRAY,
        "status": {"type": "string", "enum": list(ISSUE_STATUSES)},
        "detectedDay": _NULLABLE_DATE,
        "completedDay": _NULLABLE_DATE,
        "related": _STRING_ARRAY,
        "remarks": _STRING_ARRAY,
    },
}

CASE_SCHEMA = {
    "type": "object",
    "required": list(CASE_FIELDS),
    "additionalProperties": False,
    "properties": {
        "id": _ID,
        "title": {"type": "string", "minLength": 1},
        "tags": _STRING_ARRAY,
        "description": {"type": "string"},
        "scoped": {"type": "boolean"},
        "status": {"enum": [*CASE_STATUSES, None]},
        "operations": _STRING_ARRAY,
        "related": _STRING_ARRAY,
        "remarks": _STRING_ARRAY,
        "completedDay": _NULLABLE_DATE,
        "tests": {"type": "array", "items": TEST_ITEM_SCHEMA},
        "issues": {"type": "array", "items": ISSUE_SCHEMA},
    },
}

SUITE_EXAMPLE = {
    "id": "suite-login",
    "title": "Login Suite",
    "tags": ["auth"],
    "description": "Login flow regression",
    "scoped": True,
    "owners": ["qa"],
    "duration": {
        "scheduled": {"start": "2026-02-01", "end": "2026-02-10"},
        "actual": {"start": "2026-02-01", "end": "2026-02-10"},
    },
    "related": [],
    "remarks": [],
}

ISSUE_EXAMPLE = {
    "incident": "Cannot login with valid credentials",
    "owners": ["qa"],
    "causes": ["auth service timeout"],
    "solutions": ["increase timeout and retry"],
    "status": "open",
    "detectedDay": "2026-02-20",
    "completedDay": None,
    "related": [],
    "remarks": [],
}

CASE_EXAMPLE = {
    "id": "case-login-001",
    "title": "Valid credential login",
    "tags": ["auth"],
    "description": "Login with valid user and password",
    "scoped": True,
    "status": "todo",
    "operations": ["Open login page", "Enter credentials", "Submit"],
    "related": [],
    "remarks": [],
    "completedDay": None,
    "tests": [
        {
            "name": "main-path",
            "expected": "user is redirected to dashboard",
            "actual": "",
            "trails": [],
            "status": None,
        }
    ],
    "issues": [],
}

_NOTES = {
    "suite": ["Use create_suite_from_prompt or create_suite_file to create suites."],
    "case": [
        "Use create_testcase_from_prompt or create_case_file to create cases.",
        "Use detectedDay for the issue detection date.",
    ],
    "issue": [
        "Issue date fields are detectedDay and completedDay.",
        "Legacy cause/solution/solutinos keys are mapped to causes/solutions.",
    ],
    "enum": ["Enum values are strict and case-sensitive."],
    "all": ["Use this payload to prepare inputs before calling mutation tools."],
}


def build_schema_payload() -> dict[str, Any]:
    return copy.deepcopy({
        "version": SCHEMA_VERSION,
        "suite": SUITE_SCHEMA,
        "case": CASE_SCHEMA,
        "issue": ISSUE_SCHEMA,
        "test": TEST_ITEM_SCHEMA,
        "enum": ENUM_VALUES,
        "required": REQUIRED_FIELDS,
    })


def build_examples_payload() -> dict[str, Any]:
    recommended_case = {
        **CASE_EXAMPLE,
        "status": "doing",
        "issues": [ISSUE_EXAMPLE],
        "remarks": ["verify on staging first"],
    }
    return copy.deepcopy({
        "version": SCHEMA_VERSION,
        "minimal": {"suite": SUITE_EXAMPLE, "case": CASE_EXAMPLE, "issue": ISSUE_EXAMPLE},
        "recommended": {
            "suite": {**SUITE_EXAMPLE, "tags": ["auth", "smoke"], "remarks": ["priority:high"]},
            "case": recommended_case,
        },
    })


def _check_topic(topic: str) -> None:
    if topic not in TOPICS:
        raise ValueError(f"Invalid topic '{topic}'. Must be one of: {list(TOPICS)}")


def get_schema_by_topic(topic: str = "all") -> dict[str, Any]:
    _check_topic(topic)
    payload = build_schema_payload()
    if topic == "all":
        schema: Any = payload
        required: Any = REQUIRED_FIELDS
    elif topic == "enum":
        schema = {"enum": payload["enum"]}
        required = {}
    else:
        schema = payload[topic]
        required = REQUIRED_FIELDS[topic]
    return {
        "topic": topic,
        "schema": schema,
        "required_fields": copy.deepcopy(required),
        "enum_values": copy.deepcopy(ENUM_VALUES),
        "notes": list(_NOTES[topic]),
    }


def get_examples_by_topic(topic: str = "all") -> dict[str, Any]:
    _check_topic(topic)
    examples = build_examples_payload()
    if topic in ("all", "enum"):
        schema: Any = examples
        required: Any = REQUIRED_FIELDS
    else:
        schema = {
            "minimal": examples["minimal"][topic],
            "recommended": examples["recommended"].get(topic),
        }
        required = REQUIRED_FIELDS[topic]
    return {
        "topic": topic,
        "examples": schema,
        "required_fields": copy.deepcopy(required),
        "enum_values": copy.deepcopy(ENUM_VALUES),
        "notes": list(_NOTES[topic]),
    }


def collect_missing_context(operation: str, draft: dict[str, Any]) -> dict[str, Any]:
    """List fields an agent still has to supply before calling operation."""
    missing: list[str] = []

    def blank(value: Any) -> bool:
        return not isinstance(value, str) or not value.strip()

    if operation == "create_suite_from_prompt":
        if blank(draft.get("instruction")):
            missing.append("instruction")
        if blank(draft.get("target_dir")):
            missing.append("target_dir")
    elif operation == "create_testcase_from_prompt":
        if blank(draft.get("instruction")):
            missing.append("instruction")
        if blank(draft.get("suite_dir")):
            missing.append("suite_dir")
        context = draft.get("context") if isinstance(draft.get("context"), dict) else {}
        operations = context.get("operations")
        if not isinstance(operations, list) or not any(not blank(o) for o in operations):
            missing.append("context.operations")
        tests = context.get("tests") if isinstance(context.get("tests"), list) else []
        has_expected = any(isinstance(t, dict) and not blank(t.get("expected")) for t in tests)
        expected = context.get("expected")
        if isinstance(expected, list):
            has_expected = has_expected or any(not blank(e) for e in expected)
        elif not blank(expected):
            has_expected = True
        if not has_expected:
            missing.append("context.tests[].expected")
    elif operation in ("update_suite", "update_case"):
        if blank(draft.get("id")):
            missing.append("id")
        if not isinstance(draft.get("patch"), dict):
            missing.append("patch")
    else:
        raise ValueError(f"Unknown operation: {operation}")

    return {
        "missing_fields": missing,
        "questions": [f"Please provide {field}." for field in missing],
        "next_action": (
            f"Fill missing fields and call {operation} again."
            if missing
            else f"Context is sufficient. Continue with {operation}."
        ),
    }


INSTRUCTION_TEMPLATE = "\n".join([
    "Suite template: id: <suite-id>; title: <suite title>; include owners/tags/purpose.",
    "Case template: id: <case-id>; title: <case title>; include operations and expected outcomes.",
])

USAGE_CASES = ("create_suite", "create_case", "update_case")

_USAGE_STEPS = [
    "Goal: generate schema-safe tool input for tlog.",
    "Step 1: Call get_tlog_schema(topic) and get_tlog_schema_examples(topic).",
    "Step 2: Build input using only schema-defined fields.",
    "Step 3: Use enum values exactly as declared (case-sensitive).",
    "Step 4: Call collect_missing_context(operation, draft) before mutation calls.",
    "Step 5: If missing_fields is non-empty, ask the user and retry.",
    "Step 6: Run the mutation tool with write=false first, then write=true after review.",
]

_USAGE_BY_CASE = {
    "create_suite": [
        "Use case: create_suite",
        "Tool: create_suite_from_prompt",
        "Input template:",
        "{ workspace_root, target_dir, instruction, defaults?, write }",
        "Instruction recommendation: include id and title explicitly.",
        "Expected helper fields in response: schema_hints, warnings, diff_summary.",
    ],
    "create_case": [
        "Use case: create_case",
        "Tool: create_testcase_from_prompt",
        "Input template:",
        "{ workspace_root, suite_dir, instruction, context?, write }",
        "Recommended context (preferred):",
        "{ operations: string[], tests: [{ name, expected }], tags?: string[], description?: string }",
        "Fallback context (only if tests is hard to construct):",
        "{ operations: string[], expected: string|string[], tags?: string[], description?: string }",
        "Issue date fields: detectedDay/completedDay.",
        "Expected helper fields in response: schema_hints, warnings, diff_summary.",
    ],
    "update_case": [
        "Use case: update_case",
        "Tool: update_case",
        "Input template:",
        "{ workspace_root, dir, id, patch, write }",
        "Patch rule: do not include unknown keys; id is immutable.",
    ],
}


def get_schema_usage_template(use_case: str = "create_suite") -> str:
    """Step-by-step guidance for one mutation workflow.

    Raises:
        ValueError: If use_case is not one of USAGE_CASES.
    """
    if use_case not in USAGE_CASES:
        raise ValueError(f"Unknown use_case: {use_case}. Expected one of {', '.join(USAGE_CASES)}")
    return "\n".join([*_USAGE_STEPS, "", *_USAGE_BY_CASE[use_case]])

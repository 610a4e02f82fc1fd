"""MCP server for tlog suites and cases."""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.prompts import base

from tlog_core.config import TlogConfig, get_config
from tlog_core.errors import TlogError
from tlog_core.workspace import TlogWorkspace
from tlog_mcp.prompt import extract_prompt_metadata
from tlog_mcp.schema_contract import (
    INSTRUCTION_TEMPLATE,
    build_schema_payload,
    collect_missing_context,
    get_examples_by_topic,
    get_schema_by_topic,
    get_schema_usage_template,
)

logger = logging.getLogger(__name__)

_INSTRUCTIONS = """\
tlog manages YAML test suites (index.yaml or *.suite.yaml) and test cases
(*.testcase.yaml) inside a workspace.

Call get_tlog_schema before any mutation tool to learn required fields and
enum values. Every mutating tool previews by default: pass write=true only
after inspecting yaml_text, diff_summary and warnings. Deletes need
dry_run=false and confirm=true.

Entities reference each other by id through `related`. Use
resolve_related_targets to inspect links and sync_related to make them
reciprocal. All paths are relative to workspace_root.
"""

_MAX_INSTRUCTION = 10_000


def _error(tool: str, exc: Exception) -> dict:
    """Shape a failure as a structured error payload."""
    if isinstance(exc, TlogError):
        logger.warning("%s failed: %s", tool, exc.message)
        return {"error": exc.to_dict()}
    if isinstance(exc, ValueError):
        logger.warning("%s failed: %s", tool, exc)
        return {
            "error": {
                "category": "validation",
                "code": "INVALID_ARGUMENT",
                "message": str(exc),
                "details": {},
            }
        }
    logger.error("%s failed: %s", tool, exc)
    return {
        "error": {
            "category": "internal",
            "code": "INTERNAL_ERROR",
            "message": str(exc),
            "details": {"type": type(exc).__name__},
        }
    }


def _missing_context_error(check: dict) -> dict:
    return {
        "error": {
            "category": "validation",
            "code": "MISSING_REQUIRED_CONTEXT",
            "message": "missing required context",
            "details": check,
        }
    }


def _coerce_mapping(value: Any, field: str) -> dict | None:
    """Accept a dict or its JSON text (LLMs often serialize objects)."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"{field} is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise ValueError(f"{field} must be an object")
    return value


def _case_fields_from_context(context: dict | None) -> dict:
    """Case fields from prompt context; ``expected`` seeds tests when none are given."""
    fields = dict(context or {})
    expected = fields.pop("expected", None)
    if not fields.get("tests") and expected:
        values = [expected] if isinstance(expected, str) else expected
        fields["tests"] = [
            {"name": f"expected-{i + 1}", "expected": text}
            for i, text in enumerate(v for v in values if isinstance(v, str) and v.strip())
        ]
    return fields


def create_server(config: TlogConfig | None = None) -> FastMCP:
    """Create and configure the tlog MCP server.

    Args:
        config: Fallback configuration for tools called without
            ``workspace_root``. Loaded from the environment if omitted.
    """
    server = FastMCP("tlog-mcp", instructions=_INSTRUCTIONS)
    cfg = config or get_config()

    def workspace(workspace_root: str) -> TlogWorkspace:
        return TlogWorkspace(workspace_root or None, cfg)

    # Expose for testing
    server._tlog_config = cfg

    # --- Schema ---

    @server.tool()
    def get_tlog_schema(topic: str = "all") -> dict:
        """Schema definitions by topic (suite, case, issue, enum, all).

        Call this before mutation tools to avoid unknown fields or invalid
        enum values."""
        try:
            return get_schema_by_topic(topic)
        except Exception as e:
            return _error("get_tlog_schema", e)

    @server.tool()
    def get_tlog_schema_examples(topic: str = "all") -> dict:
        """Minimal and recommended examples by topic (suite, case, issue, enum, all)."""
        try:
            return get_examples_by_topic(topic)
        except Exception as e:
            return _error("get_tlog_schema_examples", e)

    @server.tool(name="collect_missing_context")
    def collect_missing_context_tool(operation: str, draft: dict | None = None) -> dict:
        """Pre-flight check for create/update workflows.

        operation: create_suite_from_prompt, create_testcase_from_prompt,
        update_suite or update_case. Returns missing_fields, questions and
        next_action so the client can ask the user and retry."""
        try:
            return collect_missing_context(operation, _coerce_mapping(draft, "draft") or {})
        except Exception as e:
            return _error("collect_missing_context", e)

    # --- Creation ---

    @server.tool()
    def create_suite_from_prompt(
        target_dir: str,
        instruction: str,
        defaults: dict | None = None,
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Generate a suite from instruction text.

        Put `id: <id>` and `title: <title>` in the instruction; whichever is
        missing is inferred with a warning. defaults supplies other suite
        fields. Set write=false for preview, write=true to persist."""
        try:
            check = collect_missing_context(
                "create_suite_from_prompt",
                {"instruction": instruction, "target_dir": target_dir},
            )
            if check["missing_fields"]:
                return _missing_context_error(check)
            if len(instruction) > _MAX_INSTRUCTION:
                raise ValueError(f"instruction exceeds maximum length of {_MAX_INSTRUCTION} characters")
            meta = extract_prompt_metadata(instruction, "suite")
            result = workspace(workspace_root).create_suite(
                target_dir,
                meta.id,
                meta.title,
                _coerce_mapping(defaults, "defaults"),
                write=write,
            )
        except Exception as e:
            return _error("create_suite_from_prompt", e)
        result["warnings"] = meta.warnings + result["warnings"]
        result["schema_hints"] = get_schema_by_topic("suite")["required_fields"]
        return result

    @server.tool()
    def create_testcase_from_prompt(
        suite_dir: str,
        instruction: str,
        context: dict | None = None,
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Generate a testcase from instruction text.

        Requires context.operations plus expected results, either as
        context.tests[].expected or as context.expected (string or list).
        Other context keys are case fields. Set write=true to persist."""
        try:
            ctx = _coerce_mapping(context, "context")
            check = collect_missing_context(
                "create_testcase_from_prompt",
                {"instruction": instruction, "suite_dir": suite_dir, "context": ctx},
            )
            if check["missing_fields"]:
                return _missing_context_error(check)
            if len(instruction) > _MAX_INSTRUCTION:
                raise ValueError(f"instruction exceeds maximum length of {_MAX_INSTRUCTION} characters")
            meta = extract_prompt_metadata(instruction, "case")
            result = workspace(workspace_root).create_case(
                suite_dir,
                meta.id,
                meta.title,
                _case_fields_from_context(ctx),
                write=write,
            )
        except Exception as e:
            return _error("create_testcase_from_prompt", e)
        result["warnings"] = meta.warnings + result["warnings"]
        result["schema_hints"] = get_schema_by_topic("case")["required_fields"]
        return result

    @server.tool()
    def create_suite_file(
        dir: str,
        id: str,
        title: str,
        fields: dict | None = None,
        as_directory: bool = True,
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Create a suite with explicit id and title.

        as_directory=true writes <dir>/<id>-<slug>/index.yaml, otherwise
        <dir>/<id>-<slug>.suite.yaml. Fails if the id already exists."""
        try:
            return workspace(workspace_root).create_suite(
                dir, id, title, _coerce_mapping(fields, "fields"),
                as_directory=as_directory, write=write,
            )
        except Exception as e:
            return _error("create_suite_file", e)

    @server.tool()
    def create_case_file(
        dir: str,
        id: str,
        title: str,
        fields: dict | None = None,
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Create <dir>/<id>-<slug>.testcase.yaml with explicit id and title."""
        try:
            return workspace(workspace_root).create_case(
                dir, id, title, _coerce_mapping(fields, "fields"), write=write
            )
        except Exception as e:
            return _error("create_case_file", e)

    # --- Update ---

    @server.tool()
    def update_suite(
        dir: str,
        id: str,
        patch: dict,
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Shallow-merge patch into the suite with this id.

        The id itself cannot change. Returns before, after, diff_summary and
        warnings; write=true persists."""
        try:
            return workspace(workspace_root).update_suite(
                dir, id, _coerce_mapping(patch, "patch") or {}, write=write
            )
        except Exception as e:
            return _error("update_suite", e)

    @server.tool()
    def update_case(
        dir: str,
        id: str,
        patch: dict,
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Shallow-merge patch into the testcase with this id.

        tests and issues are replaced wholesale when present in patch."""
        try:
            return workspace(workspace_root).update_case(
                dir, id, _coerce_mapping(patch, "patch") or {}, write=write
            )
        except Exception as e:
            return _error("update_case", e)

    @server.tool()
    def expand_testcase(
        dir: str,
        id: str,
        instruction: str,
        preserve_fields: list[str] | None = None,
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Fold an instruction into an existing testcase.

        Appends to description, adds a `review:` operation and a placeholder
        test. preserve_fields may name description, operations or tests to
        leave untouched. Inspect diff_summary before write=true."""
        try:
            if not instruction.strip():
                raise ValueError("instruction is required")
            if len(instruction) > _MAX_INSTRUCTION:
                raise ValueError(f"instruction exceeds maximum length of {_MAX_INSTRUCTION} characters")
            return workspace(workspace_root).expand_case(
                dir, id, instruction, preserve_fields, write=write
            )
        except Exception as e:
            return _error("expand_testcase", e)

    @server.tool()
    def organize_test_execution_targets(
        dir: str = "",
        id: str = "",
        testcase: dict | None = None,
        strategy: str = "flow-based",
        mode: str = "auto",
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Reshape a testcase's tests[] by strategy (risk-based, flow-based, component-based).

        Give dir and id to read a file, or an inline testcase. mode=auto
        picks replace when the case asks for it, append otherwise. Only a
        case read from a file is written; review proposed_tests first."""
        try:
            return workspace(workspace_root).organize_execution_targets(
                dir or None,
                id or None,
                _coerce_mapping(testcase, "testcase"),
                strategy=strategy,
                mode=mode,
                write=write,
            )
        except Exception as e:
            return _error("organize_test_execution_targets", e)

    # --- Listing / validation ---

    @server.tool()
    def validate_tests_directory(
        dir: str,
        fail_on_warning: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Validate every YAML file under dir and report duplicate ids."""
        try:
            return workspace(workspace_root).validate_directory(dir, fail_on_warning=fail_on_warning)
        except Exception as e:
            return _error("validate_tests_directory", e)

    @server.tool()
    def list_templates(dir: str = "", workspace_root: str = "") -> dict:
        """Template directories (subdirectories holding an index.yaml)."""
        try:
            return workspace(workspace_root).list_templates(dir or None)
        except Exception as e:
            return _error("list_templates", e)

    @server.tool()
    def list_suites(
        dir: str,
        id_contains: str = "",
        filters: dict | None = None,
        workspace_root: str = "",
    ) -> dict:
        """List valid suites under dir.

        filters: {tags, owners, date: {field, operator, from, to}}.
        Invalid files are reported under skipped."""
        try:
            return workspace(workspace_root).list_suites(
                dir, id_contains or None, _coerce_mapping(filters, "filters")
            )
        except Exception as e:
            return _error("list_suites", e)

    @server.tool()
    def list_cases(
        dir: str,
        id_contains: str = "",
        filters: dict | None = None,
        scoped_only: bool = False,
        issue_status: str = "",
        issue_has: str = "",
        suite_owners: list[str] | None = None,
        workspace_root: str = "",
    ) -> dict:
        """List valid testcases under dir.

        filters: {tags, testcaseStatus, testStatus, date}. Status lists may
        contain null to match unset statuses. suite_owners keeps cases whose
        sibling index.yaml lists any of the given owners."""
        try:
            return workspace(workspace_root).list_cases(
                dir,
                id_contains or None,
                _coerce_mapping(filters, "filters"),
                scoped_only=scoped_only,
                issue_status=issue_status or None,
                issue_has=issue_has or None,
                suite_owners=suite_owners or None,
            )
        except Exception as e:
            return _error("list_cases", e)

    # --- Relationships ---

    @server.tool()
    def resolve_entity_path_by_id(dir: str, id: str, workspace_root: str = "") -> dict:
        """Find the file declaring id. found is null when absent."""
        try:
            return workspace(workspace_root).resolve_entity_path(dir, id)
        except Exception as e:
            return _error("resolve_entity_path_by_id", e)

    @server.tool()
    def resolve_related_targets(
        dir: str,
        id: str = "",
        related_ids: list[str] | None = None,
        workspace_root: str = "",
    ) -> dict:
        """Resolve the related ids of entity id, or an explicit related_ids list."""
        try:
            return workspace(workspace_root).resolve_related_targets(dir, id or None, related_ids)
        except Exception as e:
            return _error("resolve_related_targets", e)

    @server.tool()
    def sync_related(
        dir: str,
        id: str = "",
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Make related links reciprocal for every entity, or only id.

        Fails if any id under dir is duplicated. Safe to run repeatedly."""
        try:
            return workspace(workspace_root).sync_related(dir, id or None, write=write)
        except Exception as e:
            return _error("sync_related", e)

    # --- Stats / snapshot ---

    @server.tool()
    def get_workspace_snapshot(dir: str = "", workspace_root: str = "") -> dict:
        """Lightweight cards for every suite and testcase under dir."""
        try:
            return workspace(workspace_root).workspace_snapshot(dir or None)
        except Exception as e:
            return _error("get_workspace_snapshot", e)

    @server.tool()
    def suite_stats(dir: str, id: str, workspace_root: str = "") -> dict:
        """Status counts plus scheduled and actual burndown for a suite."""
        try:
            return workspace(workspace_root).suite_stats(dir, id)
        except Exception as e:
            return _error("suite_stats", e)

    # --- Deletion ---

    @server.tool()
    def delete_suite(
        dir: str,
        id: str,
        dry_run: bool = True,
        confirm: bool = False,
        hard: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Delete a suite (its whole directory when stored as index.yaml).

        dry_run=true (default) returns the plan and the entities that still
        reference removed ids. Executing needs dry_run=false and confirm=true.
        Without hard the target is moved to the trash directory."""
        try:
            return workspace(workspace_root).delete_suite(
                dir, id, dry_run=dry_run, confirm=confirm, hard=hard
            )
        except Exception as e:
            return _error("delete_suite", e)

    @server.tool()
    def delete_case(
        dir: str,
        id: str,
        dry_run: bool = True,
        confirm: bool = False,
        hard: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Delete a testcase file. Same dry_run/confirm contract as delete_suite."""
        try:
            return workspace(workspace_root).delete_case(
                dir, id, dry_run=dry_run, confirm=confirm, hard=hard
            )
        except Exception as e:
            return _error("delete_case", e)

    # --- Seeding ---

    @server.tool()
    def init_tests_directory(
        output_dir: str = "",
        template_dir: str = "",
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Seed a tests directory with index.yaml and one sample testcase."""
        try:
            return workspace(workspace_root).init_tests_directory(
                output_dir or None, template_dir or None, write=write
            )
        except Exception as e:
            return _error("init_tests_directory", e)

    @server.tool()
    def create_template_directory(
        output_dir: str = "",
        from_dir: str = "",
        write: bool = False,
        workspace_root: str = "",
    ) -> dict:
        """Write a template (index.yaml + template.testcase.yaml), optionally from an existing suite dir."""
        try:
            return workspace(workspace_root).create_template_directory(
                output_dir or None, from_dir or None, write=write
            )
        except Exception as e:
            return _error("create_template_directory", e)

    # --- Resources ---

    @server.resource("tlog://schema")
    def schema_resource() -> str:
        """Full tlog schema: suite, case, issue and test definitions with enum values."""
        return json.dumps(build_schema_payload())

    @server.resource("tlog://schema/examples")
    def schema_examples_resource() -> str:
        """Minimal and recommended examples for every topic."""
        return json.dumps(get_examples_by_topic("all"))

    # --- Prompts ---

    @server.prompt()
    def tlog_instruction_template() -> list[base.Message]:
        """Reusable instruction shapes for suite and case generation."""
        return [base.AssistantMessage(INSTRUCTION_TEMPLATE)]

    @server.prompt()
    def tlog_schema_usage_template(use_case: str = "create_suite") -> list[base.Message]:
        """Step-by-step schema-safe call sequence for create_suite, create_case or update_case."""
        return [base.AssistantMessage(get_schema_usage_template(use_case))]

    return server

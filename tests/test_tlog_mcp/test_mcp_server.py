"""Tests for MCP server tool registration and tool handlers."""

import json
from unittest.mock import patch

import pytest

from tlog_core.config import TlogConfig
from tlog_mcp.server import create_server


@pytest.fixture
def srv(workspace_root):
    return create_server(TlogConfig(workspace_root=workspace_root))


@pytest.fixture
def tools(srv):
    """Tool callables keyed by registered name."""
    return {name: tool_obj.fn for name, tool_obj in srv._tool_manager._tools.items()}


class TestServerSetup:
    def test_server_name(self, srv):
        assert srv.name == "tlog-mcp"

    def test_config_exposed(self, srv, workspace_root):
        assert srv._tlog_config.workspace_root == workspace_root

    @pytest.mark.asyncio
    async def test_expected_tools_present(self, srv):
        names = {t.name for t in await srv.list_tools()}
        expected = {
            "get_tlog_schema", "get_tlog_schema_examples", "collect_missing_context",
            "create_suite_from_prompt", "create_testcase_from_prompt",
            "create_suite_file", "create_case_file", "update_suite", "update_case",
            "validate_tests_directory", "list_templates", "list_suites", "list_cases",
            "resolve_entity_path_by_id", "resolve_related_targets", "sync_related",
            "get_workspace_snapshot", "suite_stats", "delete_suite", "delete_case",
            "init_tests_directory", "create_template_directory",
            "expand_testcase", "organize_test_execution_targets",
        }
        assert expected.issubset(names), f"Missing: {expected - names}"

    @pytest.mark.asyncio
    async def test_schema_resource(self, srv):
        uris = {str(r.uri).rstrip("/") for r in await srv.list_resources()}
        assert "tlog://schema" in uris
        resource = next(
            r for key, r in srv._resource_manager._resources.items() if key.rstrip("/") == "tlog://schema"
        )
        payload = json.loads(resource.fn())
        assert payload["version"] == "1.0.0"
        assert "suite" in payload and "case" in payload


    @pytest.mark.asyncio
    async def test_prompts(self, srv):
        names = {p.name for p in await srv.list_prompts()}
        assert {"tlog_instruction_template", "tlog_schema_usage_template"} <= names
        result = await srv.get_prompt("tlog_schema_usage_template", {"use_case": "update_case"})
        message = result.messages[0]
        assert message.role == "assistant"
        assert "Tool: update_case" in message.content.text

    @pytest.mark.asyncio
    async def test_instruction_prompt(self, srv):
        result = await srv.get_prompt("tlog_instruction_template")
        assert result.messages[0].content.text.startswith("Suite template: id: <suite-id>")

# ---------------------------------------------------------------------------
# Schema tools
# ---------------------------------------------------------------------------


class TestSchemaTools:
    def test_case_topic(self, tools):
        result = tools["get_tlog_schema"](topic="case")
        assert result["topic"] == "case"
        assert "completedDay" in result["required_fields"]

    def test_invalid_topic_is_error(self, tools):
        result = tools["get_tlog_schema"](topic="nope")
        assert result["error"]["code"] == "INVALID_ARGUMENT"
        assert result["error"]["category"] == "validation"

    def test_examples(self, tools):
        result = tools["get_tlog_schema_examples"](topic="suite")
        assert result["examples"]["minimal"]["id"]

    def test_collect_missing_context_accepts_json_text(self, tools):
        result = tools["collect_missing_context"](
            operation="update_case", draft='{"id": "case-1"}'
        )
        assert result["missing_fields"] == ["patch"]


# ---------------------------------------------------------------------------
# Prompt-driven creation
# ---------------------------------------------------------------------------


class TestCreateFromPrompt:
    def test_suite_preview(self, tools, workspace_root):
        result = tools["create_suite_from_prompt"](
            target_dir="tests", instruction="id: suite-search\ntitle: Search Suite"
        )
        assert result["path"] == "tests/suite-search-search-suite/index.yaml"
        assert result["written_file"] is None
        assert "id" in result["schema_hints"]
        assert not (workspace_root / "tests" / "suite-search-search-suite").exists()

    def test_suite_inferred_metadata_warns(self, tools):
        result = tools["create_suite_from_prompt"](target_dir="tests", instruction="Search suite. Covers filters")
        assert result["entity"]["id"] == "suite-search-suite"
        assert result["warnings"][:2] == ["title was inferred from instruction", "id was inferred from title"]

    def test_suite_missing_target_dir(self, tools):
        result = tools["create_suite_from_prompt"](target_dir="", instruction="id: suite-x")
        assert result["error"]["code"] == "MISSING_REQUIRED_CONTEXT"
        assert result["error"]["details"]["missing_fields"] == ["target_dir"]

    def test_case_write(self, tools, workspace_root):
        result = tools["create_testcase_from_prompt"](
            suite_dir="tests/login",
            instruction="id: case-login-010\ntitle: Logout",
            context={"operations": ["click logout"], "expected": "login page shown"},
            write=True,
        )
        assert result["written_file"] == "tests/login/case-login-010-logout.testcase.yaml"
        written = (workspace_root / result["written_file"]).read_text()
        assert "login page shown" in written
        assert result["entity"]["tests"][0]["name"] == "expected-1"

    def test_case_missing_context(self, tools):
        result = tools["create_testcase_from_prompt"](
            suite_dir="tests/login", instruction="id: case-x", context={"operations": ["go"]}
        )
        assert result["error"]["details"]["missing_fields"] == ["context.tests[].expected"]

    def test_instruction_too_long(self, tools):
        result = tools["create_suite_from_prompt"](target_dir="tests", instruction="x" * 10_001)
        assert result["error"]["code"] == "INVALID_ARGUMENT"


# ---------------------------------------------------------------------------
# Errors come back as structured payloads
# ---------------------------------------------------------------------------


class TestErrors:
    def test_conflict(self, tools):
        result = tools["create_case_file"](dir="tests/login", id="case-login-001", title="Dup")
        assert result["error"]["category"] == "conflict"

    def test_path_outside_workspace(self, tools):
        result = tools["list_cases"](dir="../..")
        assert result["error"]["code"] == "PATH_OUTSIDE_WORKSPACE"

    def test_bad_json_filters(self, tools):
        result = tools["list_suites"](dir="tests", filters="{not json")
        assert result["error"]["code"] == "INVALID_ARGUMENT"

    def test_unexpected_exception(self, tools):
        with patch("tlog_mcp.server.TlogWorkspace.list_suites", side_effect=RuntimeError("boom")):
            result = tools["list_suites"](dir="tests")
        assert result["error"]["code"] == "INTERNAL_ERROR"
        assert result["error"]["details"]["type"] == "RuntimeError"


# ---------------------------------------------------------------------------
# Workspace tools
# ---------------------------------------------------------------------------


class TestWorkspaceTools:
    def test_list_cases_with_issue_filters(self, tools):
        result = tools["list_cases"](dir="tests", issue_status="open")
        assert [i["id"] for i in result["items"]] == ["case-login-002"]

    def test_list_cases_by_suite_owner(self, tools):
        result = tools["list_cases"](dir="tests", suite_owners=["dev"])
        assert [i["id"] for i in result["items"]] == ["case-checkout-001"]

    def test_update_case_preview(self, tools):
        result = tools["update_case"](dir="tests", id="case-login-002", patch={"status": "done"})
        assert result["after"]["status"] == "done"
        assert result["written_file"] is None

    def test_delete_needs_confirmation(self, tools, workspace_root):
        result = tools["delete_case"](dir="tests", id="case-login-002", dry_run=False)
        assert result["error"]["code"] == "CONFIRMATION_REQUIRED"
        assert (workspace_root / "tests" / "login" / "case-login-002-locked-account.testcase.yaml").exists()

    def test_sync_related_preview(self, tools):
        result = tools["sync_related"](dir="tests")
        assert result["synced_count"] == 2
        assert result["write"] is False

    def test_explicit_workspace_root(self, tools, tmp_path, write_yaml, make_suite):
        other = tmp_path / "other"
        write_yaml(other / "suites" / "index.yaml", make_suite(id="suite-other"))
        result = tools["list_suites"](dir="suites", workspace_root=str(other))
        assert [i["id"] for i in result["items"]] == ["suite-other"]

    def test_suite_stats(self, tools):
        result = tools["suite_stats"](dir="tests", id="suite-checkout")
        # The only checkout case is unscoped
        assert result["status_counts"]["total"] == 0
        assert "no_target_cases" in result["scheduled"]["anomalies"]

    def test_snapshot_defaults_to_tests_dir(self, tools):
        assert tools["get_workspace_snapshot"]()["dir"] == "tests"


# ---------------------------------------------------------------------------
# Expand / organize
# ---------------------------------------------------------------------------


class TestExpandAndOrganize:
    def test_expand_preview(self, tools, workspace_root):
        result = tools["expand_testcase"](dir="tests", id="case-login-002", instruction="Check audit log")
        assert result["after"]["operations"][-1] == "review: Check audit log"
        assert result["after"]["tests"][-1]["name"] == "generated-1"
        assert result["written_file"] is None

    def test_expand_blank_instruction(self, tools):
        result = tools["expand_testcase"](dir="tests", id="case-login-002", instruction="  ")
        assert result["error"]["code"] == "INVALID_ARGUMENT"

    def test_expand_unknown_id(self, tools):
        result = tools["expand_testcase"](dir="tests", id="case-missing", instruction="x")
        assert result["error"]["code"] == "NOT_FOUND"

    def test_organize_inline_testcase(self, tools, make_case):
        result = tools["organize_test_execution_targets"](testcase=make_case(), strategy="risk-based")
        assert [t["name"] for t in result["proposed_tests"]] == [
            "risk-based-critical-path", "risk-based-edge-cases",
        ]
        assert result["applied_mode"] == "append"
        assert result["written_file"] is None

    def test_organize_needs_a_case(self, tools):
        result = tools["organize_test_execution_targets"]()
        assert result["error"]["category"] == "validation"

    def test_organize_bad_strategy(self, tools):
        result = tools["organize_test_execution_targets"](dir="tests", id="case-login-001", strategy="random")
        assert result["error"]["code"] == "VALIDATION_FAILED"

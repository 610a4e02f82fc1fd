"""Tests for configuration and operational logging."""

import json
import logging
from pathlib import Path

from tlog_core.config import TlogConfig, get_config
from tlog_core.oplog import _StructuredFormatter, setup_logging


class TestConfig:
    def test_defaults(self):
        cfg = get_config()
        assert cfg.workspace_root == Path.cwd()
        assert cfg.tests_dir == "tests"
        assert cfg.templates_dir == "templates"
        assert cfg.trash_dir == ".tlog-trash"

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TLOG_WORKSPACE_ROOT", str(tmp_path))
        monkeypatch.setenv("TLOG_TESTS_DIR", "qa/tests")
        monkeypatch.setenv("TLOG_TEMPLATES_DIR", "qa/templates")
        monkeypatch.setenv("TLOG_TRASH_DIR", ".trash")
        cfg = TlogConfig.from_env()
        assert cfg.workspace_root == tmp_path
        assert cfg.tests_dir == "qa/tests"
        assert cfg.templates_dir == "qa/templates"
        assert cfg.trash_dir == ".trash"


def _record(level=logging.INFO, msg="hello"):
    return logging.LogRecord(
        name="tlog_core.workspace",
        level=level,
        pathname="workspace.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestStructuredFormatter:
    def test_info_fields(self):
        parsed = json.loads(_StructuredFormatter("tlog-cli").format(_record()))
        assert parsed["service"] == "tlog-cli"
        assert parsed["logger"] == "tlog_core.workspace"
        assert parsed["message"] == "hello"
        assert "location" not in parsed

    def test_warning_has_location(self):
        parsed = json.loads(_StructuredFormatter().format(_record(logging.WARNING)))
        assert parsed["location"]["line"] == 10

    def test_workspace_field(self, tmp_path):
        parsed = json.loads(_StructuredFormatter("tlog-mcp", tmp_path).format(_record()))
        assert parsed["workspace"] == str(tmp_path)

    def test_workspace_omitted_when_unset(self):
        assert "workspace" not in json.loads(_StructuredFormatter().format(_record()))


class TestSetupLogging:
    def test_attaches_to_service_and_core_loggers(self):
        setup_logging("tlog-mcp", json_format=True, log_to_file=False)
        for name in ("tlog_mcp", "tlog_core"):
            logger = logging.getLogger(name)
            assert logger.propagate is False
            assert len(logger.handlers) == 1
            assert isinstance(logger.handlers[0].formatter, _StructuredFormatter)

    def test_workspace_root_reaches_formatter(self, tmp_path):
        setup_logging("tlog-cli", json_format=True, log_to_file=False, workspace_root=tmp_path)
        formatter = logging.getLogger("tlog_core").handlers[0].formatter
        assert formatter.workspace == str(tmp_path)

    def test_text_format_from_env(self, monkeypatch):
        monkeypatch.setenv("TLOG_LOG_FORMAT", "text")
        setup_logging("tlog-cli", log_to_file=False)
        handler = logging.getLogger("tlog_cli").handlers[0]
        assert not isinstance(handler.formatter, _StructuredFormatter)

    def test_file_logging(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("TLOG_LOG_FILE", "true")
        setup_logging("tlog-cli")
        logging.getLogger("tlog_cli").warning("disk check")
        for handler in logging.getLogger("tlog_cli").handlers:
            handler.flush()
        log_file = tmp_path / ".tlog" / "logs" / "tlog-cli.jsonl"
        assert log_file.exists()
        assert "disk check" in log_file.read_text()
        for handler in logging.getLogger("tlog_cli").handlers:
            handler.close()

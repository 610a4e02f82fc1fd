"""Operational logging for tlog.

Structured JSON logging to stderr and optionally to ~/.tlog/logs/.
Shared by the CLI and the MCP server.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Engine package whose records are routed alongside the service's own.
_CORE_LOGGER = "tlog_core"


class _StructuredFormatter(logging.Formatter):
    """JSON log formatter tagging records with the service and workspace root."""

    def __init__(self, service_name: str = "tlog", workspace_root: Path | str | None = None) -> None:
        super().__init__()
        self.service_name = service_name
        self.workspace = str(workspace_root) if workspace_root is not None else None

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }
        if self.workspace is not None:
            log_data["workspace"] = self.workspace
        if record.levelno >= logging.WARNING:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info and record.exc_info[0]:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }
        return json.dumps(log_data, default=str)


def setup_logging(
    service_name: str = "tlog",
    *,
    level: int = logging.INFO,
    json_format: bool | None = None,
    log_to_file: bool | None = None,
    workspace_root: Path | str | None = None,
) -> None:
    """Configure operational logging.

    Args:
        service_name: Service name for log entries ("tlog-mcp", "tlog-cli").
        level: Logging level.
        json_format: Use JSON formatting. If None, checks TLOG_LOG_FORMAT env
            var (default: "json"). Set to "text" for plain text.
        log_to_file: Write to ~/.tlog/logs/{service_name}.jsonl. If None,
            checks TLOG_LOG_FILE env var (default: "false").
        workspace_root: Added to every JSON record as ``workspace``.
    """
    if json_format is None:
        json_format = os.environ.get("TLOG_LOG_FORMAT", "json").lower() != "text"
    if log_to_file is None:
        log_to_file = os.environ.get("TLOG_LOG_FILE", "false").lower() in (
            "true",
            "1",
            "yes",
        )

    formatter: logging.Formatter
    if json_format:
        formatter = _StructuredFormatter(service_name, workspace_root)
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handlers: list[logging.Handler] = []

    # Always log to stderr; stdout carries command output and the MCP transport
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    handlers.append(stderr_handler)

    setup_warning: str | None = None
    if log_to_file:
        try:
            log_dir = Path.home() / ".tlog" / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                log_dir / f"{service_name}.jsonl",
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(_StructuredFormatter(service_name, workspace_root))
            handlers.append(file_handler)
        except OSError as exc:
            setup_warning = f"Failed to set up file logging to ~/.tlog/logs/: {type(exc).__name__}: {exc}"

    for name in dict.fromkeys((service_name.replace("-", "_"), _CORE_LOGGER)):
        pkg_logger = logging.getLogger(name)
        pkg_logger.setLevel(level)
        pkg_logger.handlers.clear()
        for handler in handlers:
            pkg_logger.addHandler(handler)
        pkg_logger.propagate = False

    if setup_warning:
        logging.getLogger(_CORE_LOGGER).warning(setup_warning)

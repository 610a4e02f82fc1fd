"""Entry point for tlog-mcp server."""

import argparse
import logging
from pathlib import Path

from tlog_core.config import get_config
from tlog_core.oplog import setup_logging
from tlog_mcp.server import create_server

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the tlog MCP server over stdio."""
    parser = argparse.ArgumentParser(description="tlog-mcp server")
    parser.add_argument(
        "--workspace-root",
        default=None,
        help="Workspace root used when a tool call omits workspace_root (default: TLOG_WORKSPACE_ROOT or cwd)",
    )
    args = parser.parse_args()

    config = get_config()
    if args.workspace_root:
        config.workspace_root = Path(args.workspace_root).expanduser()
    setup_logging("tlog-mcp", workspace_root=config.workspace_root)
    logger.info("Starting tlog-mcp server (workspace_root=%s)", config.workspace_root)
    server = create_server(config)
    server.run()


if __name__ == "__main__":
    main()

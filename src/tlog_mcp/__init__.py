"""tlog MCP server: suite and testcase tools for AI agents."""

__version__ = "0.1.0"

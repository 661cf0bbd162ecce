"""ZenTao MCP server: exposes tasks, bugs, projects and executions as MCP tools."""

__version__ = "0.3.0"

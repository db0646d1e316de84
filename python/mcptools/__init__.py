"""MCP server hosting the calculator and execute_python tools."""

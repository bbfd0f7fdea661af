"""iMessage MCP server: send and read iMessages through MCP tools."""

__version__ = "0.1.0"

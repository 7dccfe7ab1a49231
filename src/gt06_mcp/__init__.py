"""GT06/Concox GPS tracker wire protocol toolkit and MCP server."""

__version__ = "0.1.0"

"""Long-running server mode: session state, background monitor, MCP tools."""

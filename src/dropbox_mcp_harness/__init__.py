"""
Dropbox MCP Harness - end-to-end tests for a Dropbox MCP server.

This package drives a Model Context Protocol server that proxies Dropbox
file operations:
- one server process per tools/call request over stdio
- typed unwrapping of the MCP content envelope
- one transparent retry after refreshing an expired access token
- a fifteen-step upload/download/share/copy/move/delete scenario
"""

__version__ = "0.1.0"

__all__ = [
    '__version__',
]

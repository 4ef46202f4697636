"""
Test fixtures for the Dropbox MCP harness.

Provides the scripted fake MCP server run as a real subprocess.
"""

from pathlib import Path

FAKE_SERVER = Path(__file__).parent / "fake_mcp_server.py"

__all__ = [
    "FAKE_SERVER",
]

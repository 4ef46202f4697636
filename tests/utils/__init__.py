"""
Test utilities for the Dropbox MCP harness.
"""

from .fake_dropbox import FakeDropboxTransport

__all__ = [
    "FakeDropboxTransport",
]

"""Transport layer

Request/response transports used to deliver tools/call messages to the
MCP server under test.
"""

from .base import Transport
from .process_call import ProcessCallTransport

__all__ = [
    "Transport",
    "ProcessCallTransport",
]

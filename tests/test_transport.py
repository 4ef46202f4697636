"""
Tests for the process-per-call transport, run against a scripted server
in a real subprocess.
"""

import sys
import time

import pytest

from dropbox_mcp_harness.protocol import build_tool_call
from dropbox_mcp_harness.transport import ProcessCallTransport
from dropbox_mcp_harness.utils.errors import (
    ResponseParseError,
    ServerProcessError,
    ServerTimeoutError,
)

from tests.fixtures import FAKE_SERVER


class TestProcessCallTransport:
    """Test one request/response pair per process."""

    @pytest.mark.asyncio
    async def test_exchange_returns_parsed_response(self, fake_server_transport):
        request = build_tool_call("echo", {"path": "/a"}, request_id="42")

        response = await fake_server_transport.exchange(request)

        assert response["id"] == "42"
        content = response["result"]["content"][0]
        assert content["type"] == "text"
        assert '"path": "/a"' in content["text"]
        assert '"method": "tools/call"' in content["text"]

    @pytest.mark.asyncio
    async def test_each_exchange_spawns_new_process(self, fake_server_transport):
        await fake_server_transport.exchange(build_tool_call("plain"))
        first_pid = fake_server_transport.get_process_info()["pid"]

        await fake_server_transport.exchange(build_tool_call("plain"))
        second_pid = fake_server_transport.get_process_info()["pid"]

        assert first_pid != second_pid
        assert fake_server_transport.get_stats()["exchanges"] == 2
        assert fake_server_transport.get_process_info()["returncode"] == 0

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_server_process_error(self, fake_server_transport):
        with pytest.raises(ServerProcessError) as exc_info:
            await fake_server_transport.exchange(build_tool_call("crash"))

        assert exc_info.value.exit_code == 3
        assert "boom: server exploded" in exc_info.value.stderr
        assert fake_server_transport.get_stats()["failures"] == 1

    @pytest.mark.asyncio
    async def test_non_json_output_raises_parse_error(self, fake_server_transport):
        with pytest.raises(ResponseParseError) as exc_info:
            await fake_server_transport.exchange(build_tool_call("garbage"))

        assert exc_info.value.raw.strip() == "this is not json"

    @pytest.mark.asyncio
    async def test_hung_server_is_terminated(self):
        transport = ProcessCallTransport(
            sys.executable, [str(FAKE_SERVER)], timeout=0.5, terminate_grace=1.0
        )

        started = time.monotonic()
        with pytest.raises(ServerTimeoutError) as exc_info:
            await transport.exchange(build_tool_call("hang"))

        assert exc_info.value.timeout == 0.5
        assert time.monotonic() - started < 10
        assert transport.get_process_info()["pid"] is not None

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        transport = ProcessCallTransport("/nonexistent/dropbox-mcp-server")

        with pytest.raises(ServerProcessError) as exc_info:
            await transport.exchange(build_tool_call("plain"))

        assert exc_info.value.exit_code is None
        assert "Failed to launch" in exc_info.value.message

    def test_repr(self):
        transport = ProcessCallTransport("node", ["build/index.js"])
        assert repr(transport) == "ProcessCallTransport(command=node, args=['build/index.js'])"

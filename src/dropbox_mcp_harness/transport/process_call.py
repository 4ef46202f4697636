"""Process-per-call STDIO transport for MCP tool calls"""

import asyncio
import json
import os
from typing import Any, Dict, Optional, List

from .base import Transport
from ..utils.logging import get_logger
from ..utils.errors import ServerProcessError, ServerTimeoutError, ResponseParseError

logger = get_logger(__name__)


class ProcessCallTransport(Transport):
    """Process-per-call STDIO transport

    Launches a new server subprocess for every exchange, writes one
    newline-terminated JSON-RPC request to its stdin, closes stdin and
    parses everything the process printed on stdout before exiting as a
    single JSON document.
    """

    def __init__(self, command: str, args: Optional[List[str]] = None,
                 env: Optional[Dict[str, str]] = None, cwd: Optional[str] = None,
                 timeout: Optional[float] = 60.0, terminate_grace: float = 5.0,
                 name: Optional[str] = None):
        super().__init__(name)
        self.command = command
        self.args = args or []
        self.env = env or {}
        self.cwd = cwd
        self.timeout = timeout
        self.terminate_grace = terminate_grace
        self._last_pid: Optional[int] = None
        self._last_returncode: Optional[int] = None

    async def _exchange(self, message: Dict[str, Any]) -> Dict[str, Any]:
        payload = (json.dumps(message) + "\n").encode("utf-8")

        try:
            process = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **self.env},
                cwd=self.cwd
            )
        except OSError as e:
            raise ServerProcessError(
                None,
                message=f"Failed to launch server process {self.command!r}: {e}",
                cause=e,
            ) from e

        self._last_pid = process.pid
        logger.debug("server_process_started", pid=process.pid, command=self.command,
                     method=message.get("method"), id=message.get("id"))

        try:
            # communicate() writes the request, closes stdin and drains both pipes
            stdout, stderr = await asyncio.wait_for(
                process.communicate(payload), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            raise ServerTimeoutError(self.timeout)
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        self._last_returncode = process.returncode
        stdout_text = stdout.decode("utf-8", errors="replace")
        stderr_text = stderr.decode("utf-8", errors="replace")

        if stderr_text.strip():
            logger.debug("server_stderr", pid=process.pid, text=stderr_text.strip()[:2000])

        if process.returncode != 0:
            logger.warning("server_process_failed", pid=process.pid, returncode=process.returncode)
            raise ServerProcessError(process.returncode, stderr_text)

        try:
            response = json.loads(stdout_text)
        except json.JSONDecodeError as e:
            raise ResponseParseError(stdout_text, reason=str(e), cause=e) from e

        if not isinstance(response, dict):
            raise ResponseParseError(stdout_text, reason=f"expected object, got {type(response).__name__}")

        logger.debug("server_process_finished", pid=process.pid, bytes=len(stdout))
        return response

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Terminate a hung server process, killing it if it ignores SIGTERM"""
        if process.returncode is not None:
            return

        logger.warning("terminating_server_process", pid=process.pid, timeout=self.timeout)
        try:
            process.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self.terminate_grace)
        except asyncio.TimeoutError:
            logger.warning("Process did not terminate, killing", pid=process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    def get_process_info(self) -> Dict[str, Any]:
        """Get information about the most recent server process"""
        return {
            "command": self.command,
            "args": self.args,
            "pid": self._last_pid,
            "returncode": self._last_returncode,
        }

    def __repr__(self) -> str:
        return f"ProcessCallTransport(command={self.command}, args={self.args})"

"""
Pytest configuration and shared fixtures for the Dropbox MCP harness tests.
"""

import io
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from rich.console import Console

from dropbox_mcp_harness.client import ToolClient
from dropbox_mcp_harness.credentials import TokenStore
from dropbox_mcp_harness.scenario import ScenarioContext
from dropbox_mcp_harness.transport import ProcessCallTransport
from dropbox_mcp_harness.utils.config import ScenarioConfig

from tests.fixtures import FAKE_SERVER
from tests.utils.fake_dropbox import FakeDropboxTransport


VALID_TOKEN = "good-token"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def token_file(temp_dir: Path) -> Path:
    """A token file holding the token the fake servers accept."""
    path = temp_dir / "token"
    path.write_text(f"  {VALID_TOKEN}\n")
    return path


@pytest.fixture
def token_store(token_file: Path) -> TokenStore:
    return TokenStore(token_file)


@pytest.fixture
def fake_dropbox() -> FakeDropboxTransport:
    """In-memory Dropbox server with no token set yet."""
    return FakeDropboxTransport(valid_token=VALID_TOKEN)


@pytest.fixture
def tool_client(fake_dropbox: FakeDropboxTransport, token_store: TokenStore) -> ToolClient:
    return ToolClient(fake_dropbox, token_store)


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def scenario_context(tool_client: ToolClient, token_store: TokenStore, output: io.StringIO) -> ScenarioContext:
    return ScenarioContext(
        client=tool_client,
        tokens=token_store,
        settings=ScenarioConfig(),
        console=Console(file=output, width=200, color_system=None),
    )


@pytest.fixture
def fake_server_transport(temp_dir: Path) -> ProcessCallTransport:
    """Real subprocess transport running the scripted fake server."""
    return ProcessCallTransport(
        sys.executable,
        [str(FAKE_SERVER)],
        env={"FAKE_SERVER_STATE": str(temp_dir / "server-token")},
        timeout=10.0,
        terminate_grace=2.0,
    )

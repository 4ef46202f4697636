"""
Tests for the token file store.
"""

import pytest

from dropbox_mcp_harness.credentials import TokenStore
from dropbox_mcp_harness.utils.errors import CredentialError


@pytest.mark.asyncio
async def test_read_trims_whitespace(token_store):
    assert await token_store.read() == "good-token"


@pytest.mark.asyncio
async def test_reads_fresh_value_every_time(token_file, token_store):
    await token_store.read()
    token_file.write_text("rotated-token\n")

    assert await token_store.read() == "rotated-token"


@pytest.mark.asyncio
async def test_missing_file(temp_dir):
    store = TokenStore(temp_dir / "token")

    with pytest.raises(CredentialError) as exc_info:
        await store.read()

    assert "not found" in exc_info.value.message
    assert exc_info.value.get_suggestions()


@pytest.mark.asyncio
async def test_empty_file(temp_dir):
    path = temp_dir / "token"
    path.write_text("   \n")

    with pytest.raises(CredentialError, match="empty"):
        await TokenStore(path).read()


@pytest.mark.asyncio
async def test_directory_instead_of_file(temp_dir):
    with pytest.raises(CredentialError):
        await TokenStore(temp_dir).read()


def test_default_path():
    assert str(TokenStore().path) == "token"

"""Access token storage."""

from pathlib import Path
from typing import Union

import aiofiles

from .utils.errors import CredentialError
from .utils.logging import get_logger

logger = get_logger("dropbox-mcp-harness.credentials")


class TokenStore:
    """Reads the Dropbox access token from a plain-text file.

    The file is read on every call so a token replaced while a run is in
    progress is picked up by the next refresh.
    """

    def __init__(self, path: Union[str, Path] = "token"):
        self.path = Path(path)

    async def read(self) -> str:
        try:
            async with aiofiles.open(self.path, mode="r", encoding="utf-8") as f:
                token = (await f.read()).strip()
        except FileNotFoundError as e:
            raise CredentialError(f"Token file not found: {self.path}", cause=e) from e
        except (OSError, UnicodeDecodeError) as e:
            raise CredentialError(f"Cannot read token file {self.path}: {e}", cause=e) from e

        if not token:
            raise CredentialError(f"Token file is empty: {self.path}")

        logger.debug("token_loaded", path=str(self.path), length=len(token))
        return token

    def __repr__(self) -> str:
        return f"TokenStore(path={str(self.path)!r})"

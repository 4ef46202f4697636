"""Base transport implementation for tools/call exchanges"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import uuid

from ..utils.logging import get_logger

logger = get_logger(__name__)


class Transport(ABC):
    """Abstract base class for request/response transports

    A transport delivers exactly one JSON-RPC message and returns the one
    JSON document the server answered with.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or f"{self.__class__.__name__}_{uuid.uuid4().hex[:8]}"
        self._stats = {
            "exchanges": 0,
            "failures": 0,
            "last_duration": None,
        }

    @abstractmethod
    async def _exchange(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Deliver one message and return the parsed response"""

    async def exchange(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Send a request and wait for its response, recording statistics"""
        started = time.monotonic()
        self._stats["exchanges"] += 1
        try:
            return await self._exchange(message)
        except Exception:
            self._stats["failures"] += 1
            raise
        finally:
            self._stats["last_duration"] = time.monotonic() - started

    def get_stats(self) -> Dict[str, Any]:
        """Get transport statistics"""
        return {
            "name": self.name,
            **self._stats
        }

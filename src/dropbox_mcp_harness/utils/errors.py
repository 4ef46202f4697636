"""
Error handling framework for the Dropbox MCP harness.

This module provides:
- Hierarchical exception classes for every failure the harness reports
- Error context preservation
- Structured error dictionaries for reports
"""

from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from contextlib import contextmanager
import traceback

from .logging import get_logger


logger = get_logger("dropbox-mcp-harness.errors")


class ErrorSeverity(Enum):
    """Error severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    PROCESS = "process"
    PROTOCOL = "protocol"
    TOOL = "tool"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    VERIFICATION = "verification"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=datetime.utcnow)
    request_id: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    stack_trace: Optional[str] = None


class HarnessError(Exception):
    """Base exception for all harness errors."""

    code: str = "HARNESS_ERROR"
    default_message: str = "An error occurred in the Dropbox MCP harness"
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message or self.default_message
        self.context = context or ErrorContext()
        self.cause = cause

        if not self.context.stack_trace and cause is not None:
            self.context.stack_trace = "".join(
                traceback.format_exception(type(cause), cause, cause.__traceback__)
            )

        super().__init__(self.message)

    def get_suggestions(self) -> List[str]:
        """Get error resolution suggestions."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "severity": self.severity.value,
                "category": self.category.value,
                "suggestions": self.get_suggestions(),
                "context": {
                    "timestamp": self.context.timestamp.isoformat(),
                    "request_id": self.context.request_id,
                    "component": self.context.component,
                    "operation": self.context.operation,
                    "metadata": self.context.metadata
                }
            }
        }


class ConfigurationError(HarnessError):
    """Configuration errors."""
    code = "CONFIG_ERROR"
    default_message = "Configuration error"
    category = ErrorCategory.CONFIGURATION

    def get_suggestions(self) -> List[str]:
        return [
            "Check your configuration file syntax",
            "Check DROPBOX_MCP_* environment variables",
        ]


class CredentialError(HarnessError):
    """The access token file is missing, unreadable or empty."""
    code = "CREDENTIAL_ERROR"
    default_message = "Access token could not be read"
    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.CRITICAL

    def get_suggestions(self) -> List[str]:
        return [
            "Create a file named 'token' at the project root containing a Dropbox access token",
            "Or point credentials.token_file at an existing token file",
        ]


# Transport errors

class TransportError(HarnessError):
    """Base exception for transport errors."""
    code = "TRANSPORT_ERROR"
    default_message = "Transport error"
    category = ErrorCategory.PROCESS


class ServerProcessError(TransportError):
    """The server process could not start or exited with a non-zero code."""
    code = "SERVER_PROCESS_ERROR"
    default_message = "Server process failed"

    def __init__(self, exit_code: Optional[int], stderr: str = "", message: Optional[str] = None, **kwargs):
        self.exit_code = exit_code
        self.stderr = stderr
        if message is None:
            message = f"Server process exited with code {exit_code}"
            if stderr.strip():
                message += f": {stderr.strip()}"
        super().__init__(message, **kwargs)


class ServerTimeoutError(TransportError):
    """The server process did not exit within the call timeout."""
    code = "SERVER_TIMEOUT"
    default_message = "Server process timed out"

    def __init__(self, timeout: float, **kwargs):
        self.timeout = timeout
        super().__init__(f"Server process did not exit within {timeout:g}s and was terminated", **kwargs)

    def get_suggestions(self) -> List[str]:
        return ["Raise server.timeout or check the server for hangs"]


class ResponseParseError(TransportError):
    """The server's output is not a single JSON document."""
    code = "RESPONSE_PARSE_ERROR"
    default_message = "Malformed server response"
    category = ErrorCategory.PROTOCOL

    def __init__(self, raw: str, reason: str = "", **kwargs):
        self.raw = raw
        message = "Failed to parse server response as JSON"
        if reason:
            message += f" ({reason})"
        preview = raw.strip()[:200]
        message += f": {preview!r}"
        super().__init__(message, **kwargs)


# Tool errors

class ToolError(HarnessError):
    """The JSON-RPC response carried an error field."""
    code = "TOOL_ERROR"
    default_message = "Tool call failed"
    category = ErrorCategory.TOOL

    def __init__(self, tool_name: str, error: Any, **kwargs):
        self.tool_name = tool_name
        self.error = error
        if isinstance(error, dict) and "message" in error:
            detail = str(error["message"])
            if error.get("data") is not None:
                detail += f" {error['data']}"
        else:
            detail = str(error)
        super().__init__(f"Tool '{tool_name}' failed: {detail}", **kwargs)


class AuthenticationError(HarnessError):
    """Authentication still fails after the token refresh retry."""
    code = "AUTH_ERROR"
    default_message = "Authentication failed"
    category = ErrorCategory.AUTHENTICATION
    severity = ErrorSeverity.WARNING

    def get_suggestions(self) -> List[str]:
        return ["Replace the contents of the token file with a fresh Dropbox access token"]


class VerificationError(HarnessError):
    """A tool result did not match what the scenario expected."""
    code = "VERIFICATION_ERROR"
    default_message = "Verification failed"
    category = ErrorCategory.VERIFICATION


@contextmanager
def error_context(component: str, operation: str, **metadata):
    """
    Context manager for error handling with context.

    Harness errors get the component and operation attached; anything else
    is wrapped in a HarnessError.

    Args:
        component: Component name
        operation: Operation name
        **metadata: Additional context metadata
    """
    context = ErrorContext(
        component=component,
        operation=operation,
        metadata=metadata
    )

    try:
        yield context
    except HarnessError as e:
        e.context.component = e.context.component or component
        e.context.operation = e.context.operation or operation
        e.context.metadata.update(metadata)
        logger.debug("harness_error_in_context", code=e.code, component=component, operation=operation)
        raise
    except Exception as e:
        logger.error(
            "unexpected_error_in_context",
            component=component,
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HarnessError(
            message=f"{type(e).__name__}: {e}",
            context=context,
            cause=e
        ) from e


__all__ = [
    'HarnessError',
    'ErrorContext',
    'ErrorSeverity',
    'ErrorCategory',
    'ConfigurationError',
    'CredentialError',
    'TransportError',
    'ServerProcessError',
    'ServerTimeoutError',
    'ResponseParseError',
    'ToolError',
    'AuthenticationError',
    'VerificationError',
    'error_context',
]

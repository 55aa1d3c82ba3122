"""
Protocol-level error taxonomy.

Every failure that leaves the dispatcher (or the resource views) is one of
the ``ToolError`` subclasses below. Each one carries:

- ``code``: machine-checkable ``ErrorCode`` (e.g. ``NOT_FOUND``)
- ``message``: human-readable text
- ``error``: MCP ``ErrorData`` with the matching JSON-RPC code, so the error
  can travel as a JSON-RPC error as well as an ``isError`` tool result

``normalize_error`` is the single place where client failures, validation
failures and unexpected exceptions are turned into a ``ToolError``.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND, ErrorData
from pydantic import ValidationError

from src.kanta.errors import (
    KantaAPIError,
    KantaResponseError,
    KantaTimeoutError,
    KantaTransportError,
)


# JSON-RPC server-defined error range (-32000 to -32099)
SERVER_UNAVAILABLE = -32000
UNAUTHORIZED = -32001
FORBIDDEN = -32003
NOT_FOUND = -32004


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to MCP clients."""
    INVALID_PARAMS = "INVALID_PARAMS"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    UPSTREAM_VALIDATION = "UPSTREAM_VALIDATION"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    UNAVAILABLE = "UNAVAILABLE"
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"


class ToolError(McpError):
    """Base class of every normalized error."""

    code: ErrorCode = ErrorCode.EXECUTION_ERROR
    rpc_code: int = INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(
            ErrorData(
                code=self.rpc_code,
                message=message,
                data={"kind": self.code.value, **self.details},
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        """Structured form, as returned to the caller."""
        result = {"code": self.code.value, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class ParameterError(ToolError):
    """Arguments failed local validation, or Kanta rejected them (HTTP 400)."""
    code = ErrorCode.INVALID_PARAMS
    rpc_code = INVALID_PARAMS

    @classmethod
    def from_validation(cls, error: ValidationError, prefix: str = "Invalid parameters") -> "ParameterError":
        """Build the error from a pydantic failure, listing every offending field."""
        fields = format_validation_errors(error.errors(include_url=False, include_context=False))
        return cls(f"{prefix}: " + "; ".join(fields), details={"fields": fields})


class UnauthorizedError(ToolError):
    code = ErrorCode.UNAUTHORIZED
    rpc_code = UNAUTHORIZED


class ForbiddenError(ToolError):
    code = ErrorCode.FORBIDDEN
    rpc_code = FORBIDDEN


class NotFoundError(ToolError):
    code = ErrorCode.NOT_FOUND
    rpc_code = NOT_FOUND


class RequestTimeoutError(ToolError):
    code = ErrorCode.TIMEOUT
    rpc_code = INTERNAL_ERROR


class UpstreamValidationError(ToolError):
    """Kanta answered 2xx with a body that does not match the expected schema."""
    code = ErrorCode.UPSTREAM_VALIDATION
    rpc_code = INTERNAL_ERROR


class ExecutionError(ToolError):
    code = ErrorCode.EXECUTION_ERROR
    rpc_code = INTERNAL_ERROR


class UnavailableError(ToolError):
    """Issued for every call once shutdown has begun."""
    code = ErrorCode.UNAVAILABLE
    rpc_code = SERVER_UNAVAILABLE


class UnknownOperationError(ToolError):
    code = ErrorCode.UNKNOWN_OPERATION
    rpc_code = METHOD_NOT_FOUND


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    """Render pydantic errors as ``path: message`` strings."""
    rendered = []
    for err in errors:
        path = ".".join(str(part) for part in err.get("loc", ())) or "(root)"
        rendered.append(f"{path}: {err.get('msg', 'invalid value')}")
    return rendered


def _from_api_error(error: KantaAPIError) -> ToolError:
    details = {"status": error.status, "body": error.body}
    if error.status == 400:
        return ParameterError(f"Invalid parameters: {error.body}", details)
    if error.status == 401:
        return UnauthorizedError("Unauthorized, check the Kanta API key", details)
    if error.status == 403:
        return ForbiddenError(f"Forbidden: {error.body}", details)
    if error.status == 404:
        return NotFoundError(f"Not found: {error.body}", details)
    return ExecutionError(f"HTTP {error.status}: {error.body}", details)


def normalize_error(error: BaseException) -> ToolError:
    """
    Map any failure onto the protocol taxonomy.

    Args:
        error: Exception raised while serving a call

    Returns:
        The matching ``ToolError`` (``error`` itself if already normalized)
    """
    if isinstance(error, ToolError):
        return error
    if isinstance(error, ValidationError):
        return ParameterError.from_validation(error)
    if isinstance(error, KantaAPIError):
        return _from_api_error(error)
    if isinstance(error, KantaTimeoutError):
        return RequestTimeoutError(str(error), {"timeout_ms": error.timeout_ms})
    if isinstance(error, KantaResponseError):
        fields = format_validation_errors(error.errors)
        return UpstreamValidationError(
            f"Malformed response from Kanta: {error}",
            {"fields": fields} if fields else None,
        )
    if isinstance(error, KantaTransportError):
        return ExecutionError(f"Could not reach Kanta: {error}")
    return ExecutionError(str(error) or type(error).__name__)

"""
Typed failures raised by the Kanta client.

The client never lets a raw ``httpx`` or pydantic exception escape: every
failure of a remote call is one of the classes below. Mapping them onto
protocol error codes is the dispatcher's job (see ``src.mcp.errors``).
"""

from typing import Any, Dict, List, Optional


class KantaClientError(Exception):
    """Base class for every failure of a remote call."""


class KantaAPIError(KantaClientError):
    """Kanta answered with a non-success status code."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body}")


class KantaTimeoutError(KantaClientError):
    """The request deadline elapsed and the call was aborted."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Request timeout after {timeout_ms}ms")


class KantaTransportError(KantaClientError):
    """The request never got a response (connection refused, DNS, reset...)."""


class KantaResponseError(KantaClientError):
    """
    Kanta answered 2xx but the body is not what we expect.

    Carries the pydantic error list (``loc``/``msg``) when the body was JSON
    but did not match the response schema.
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(message)

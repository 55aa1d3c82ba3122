"""
Kanta API access layer.

- ``schemas``: pydantic models for every Kanta resource and request payload
- ``client``: async HTTP client returning validated models
- ``errors``: typed failures raised by the client
- ``config``: immutable credential / base URL configuration
"""

from .client import KantaClient
from .config import KantaConfig, ConfigurationError, configure_logging, DEFAULT_BASE_URL
from .errors import (
    KantaClientError,
    KantaAPIError,
    KantaTimeoutError,
    KantaTransportError,
    KantaResponseError,
)

__all__ = [
    "KantaClient",
    "KantaConfig",
    "ConfigurationError",
    "configure_logging",
    "DEFAULT_BASE_URL",
    "KantaClientError",
    "KantaAPIError",
    "KantaTimeoutError",
    "KantaTransportError",
    "KantaResponseError",
]

"""
Configuration for the Kanta MCP server.

The credential and base URL are read once at startup and frozen. Every
component that needs them receives the same immutable ``KantaConfig``.
"""

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv
from loguru import logger


DEFAULT_BASE_URL = "https://app.kanta.fr/api/v1"
DEFAULT_TIMEOUT_MS = 30000


class ConfigurationError(Exception):
    """Raised when the server cannot start because configuration is missing or invalid."""


@dataclass(frozen=True)
class KantaConfig:
    """Credential and endpoint of one Kanta account."""
    api_key: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __post_init__(self):
        if not self.api_key:
            raise ConfigurationError("Kanta API key must not be empty")
        if self.timeout_ms <= 0:
            raise ConfigurationError(f"timeout_ms must be positive, got {self.timeout_ms}")
        # frozen dataclass: bypass __setattr__ to normalize
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "KantaConfig":
        """
        Build the configuration from environment variables.

        Reads ``KANTA_API_KEY`` (required), ``KANTA_API_URL`` and
        ``KANTA_TIMEOUT_MS`` (optional). A ``.env`` file is loaded first if present.

        Raises:
            ConfigurationError: If the API key is missing or a value is malformed
        """
        load_dotenv(env_file)

        api_key = os.getenv("KANTA_API_KEY", "").strip()
        logger.info("KANTA_API_KEY found: {} (length {})", "yes" if api_key else "no", len(api_key))
        if not api_key:
            raise ConfigurationError(
                "KANTA_API_KEY environment variable is required. "
                "Please set it to your Kanta API key."
            )

        timeout_raw = os.getenv("KANTA_TIMEOUT_MS")
        try:
            timeout_ms = int(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_MS
        except ValueError:
            raise ConfigurationError(f"KANTA_TIMEOUT_MS must be an integer, got {timeout_raw!r}")

        return cls(
            api_key=api_key,
            base_url=os.getenv("KANTA_API_URL") or DEFAULT_BASE_URL,
            timeout_ms=timeout_ms,
        )


def configure_logging(level: Optional[str] = None) -> None:
    """Send logs to stderr only; stdout belongs to the stdio transport."""
    logger.remove()
    logger.add(sys.stderr, level=(level or os.getenv("KANTA_LOG_LEVEL", "INFO")).upper())

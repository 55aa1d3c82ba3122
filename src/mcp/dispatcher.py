"""
Tool-call dispatcher.

Single entry point for tool calls: ``(name, arguments) -> result``.

Routing uses an explicit registry built once from the tool groups, mapping
each exact tool name to its ``(group, tool)`` pair. Two groups declaring the
same name is a startup error, so lookups never depend on group order.

Each call goes through the same steps:
1. Reject immediately if shutdown has begun (``UnavailableError``)
2. Look up the tool (``UnknownOperationError`` if absent)
3. Validate the arguments (``ParameterError``, no network call)
4. Run the handler and normalize any failure (``normalize_error``)
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from pydantic import ValidationError

from src.kanta.client import KantaClient
from src.kanta.errors import KantaClientError
from src.kanta.schemas import dump
from src.tools import DEFAULT_GROUPS, ToolDefinition, ToolGroup

from .errors import (
    ParameterError,
    ToolError,
    UnavailableError,
    UnknownOperationError,
    normalize_error,
)


@dataclass(frozen=True)
class Route:
    """Registry entry: the owning group and the tool definition."""
    group: ToolGroup
    tool: ToolDefinition


class Dispatcher:
    """
    Routes tool calls to resource group handlers.

    Stateless between calls apart from the shutdown gate.
    """

    def __init__(self, client: KantaClient, groups: Optional[Iterable[ToolGroup]] = None):
        """
        Initialize the dispatcher.

        Args:
            client: Shared Kanta client
            groups: Tool groups to register, in order (default: all groups)

        Raises:
            ValueError: If two groups declare the same tool name
        """
        self.client = client
        self.groups: List[ToolGroup] = list(DEFAULT_GROUPS if groups is None else groups)
        self._routes: Dict[str, Route] = {}
        self._closing = False

        for group in self.groups:
            for tool in group.tools:
                existing = self._routes.get(tool.name)
                if existing is not None:
                    raise ValueError(
                        f"Tool '{tool.name}' is declared by both "
                        f"'{existing.group.name}' and '{group.name}' groups"
                    )
                self._routes[tool.name] = Route(group=group, tool=tool)

    @property
    def is_closing(self) -> bool:
        return self._closing

    def shutdown(self) -> None:
        """Close the gate: every later call fails with ``UnavailableError``."""
        if not self._closing:
            logger.info("Dispatcher shutting down, rejecting new tool calls")
        self._closing = True

    def ensure_available(self) -> None:
        if self._closing:
            raise UnavailableError("Server is shutting down")

    def route(self, name: str) -> Route:
        """
        Find the owner of a tool name.

        Raises:
            UnknownOperationError: If no group declares ``name``
        """
        route = self._routes.get(name)
        if route is None:
            raise UnknownOperationError(f"Unknown tool: {name}")
        return route

    def list_tools(self) -> List[ToolDefinition]:
        """All registered tools, in group order."""
        return [route.tool for route in self._routes.values()]

    async def call(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """
        Execute a tool call.

        Args:
            name: Tool name
            arguments: Raw tool arguments

        Returns:
            JSON-ready result

        Raises:
            ToolError: Any failure, already normalized
        """
        try:
            self.ensure_available()
            route = self.route(name)
            try:
                args = route.tool.arguments.model_validate(arguments or {})
            except ValidationError as e:
                raise ParameterError.from_validation(e)

            logger.debug("Calling tool {} ({} group)", name, route.group.name)
            result = await route.tool.handler(self.client, args)
            return dump(result)
        except ToolError as e:
            logger.warning("Tool {} failed: {}", name, e)
            raise
        except Exception as e:
            error = normalize_error(e)
            if isinstance(e, KantaClientError):
                logger.warning("Tool {} failed: {}", name, error)
            else:
                logger.exception("Tool {} failed unexpectedly", name)
            raise error from e

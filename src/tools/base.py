"""
Building blocks for resource tool groups.

A ``ToolGroup`` is the fixed set of operations exposed for one Kanta
resource. Operations are declared with the ``@group.tool(...)`` decorator,
binding a name, a description, the argument model and the handler:

    customer_tools = ToolGroup("customer", "Customer files")

    @customer_tools.tool("get_customer", "Get one customer", IdArgs)
    async def get_customer(client: KantaClient, args: IdArgs) -> Customer:
        return await client.get_customer(args.id)

Handlers receive already-validated arguments. The dispatcher validates them
against ``ToolDefinition.arguments`` before the handler is reached.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from mcp import types

from src.kanta.client import KantaClient
from src.kanta.schemas import NoArgs, RequestModel


Handler = Callable[[KantaClient, Any], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    """One callable operation of a resource group."""
    name: str
    description: str
    arguments: Type[RequestModel]
    handler: Handler

    def input_schema(self) -> Dict[str, Any]:
        """JSON Schema of the arguments, as advertised in tools/list."""
        schema = self.arguments.model_json_schema()
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        return schema

    def to_mcp_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema(),
        )


class ToolGroup:
    """
    Ordered collection of the operations of one resource.

    Names are unique inside a group; uniqueness across groups is checked by
    the dispatcher when it builds its registry.
    """

    def __init__(self, name: str, description: str):
        """
        Initialize the group.

        Args:
            name: Resource name (e.g. "customer")
            description: Human-readable description
        """
        self.name = name
        self.description = description
        self._tools: Dict[str, ToolDefinition] = {}

    def tool(
        self,
        name: str,
        description: str,
        arguments: Type[RequestModel] = NoArgs,
    ) -> Callable[[Handler], Handler]:
        """Register the decorated coroutine as the handler of ``name``."""
        def decorator(handler: Handler) -> Handler:
            if name in self._tools:
                raise ValueError(f"Tool '{name}' is already declared in group '{self.name}'")
            self._tools[name] = ToolDefinition(
                name=name,
                description=description,
                arguments=arguments,
                handler=handler,
            )
            return handler
        return decorator

    @property
    def tools(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"ToolGroup({self.name!r}, tools={list(self._tools)})"

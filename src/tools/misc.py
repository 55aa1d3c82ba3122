"""Firm and structure tools: the organization owning the Kanta account."""

from typing import Any, Dict

from src.kanta.client import KantaClient
from src.kanta.schemas import NoArgs, PaginationArgs, Structure

from .base import ToolGroup


firm_tools = ToolGroup("firm", "Firms (offices) of the structure")
structure_tools = ToolGroup("structure", "Account-level structure information")


@firm_tools.tool("get_firms", "List the firms of the structure", PaginationArgs)
async def get_firms(client: KantaClient, args: PaginationArgs) -> Dict[str, Any]:
    return await client.get_firms(per_page=args.per_page, page=args.page)


@structure_tools.tool(
    "get_structure",
    "Get the structure: remaining customer files, users and validators, subscription",
    NoArgs,
)
async def get_structure(client: KantaClient, args: NoArgs) -> Structure:
    return await client.get_structure()

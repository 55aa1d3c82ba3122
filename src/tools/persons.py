"""Person tools (read-only): individuals linked to customer files."""

from typing import Any, Dict

from src.kanta.client import KantaClient
from src.kanta.schemas import IdArgs, PaginationArgs, Person

from .base import ToolGroup


person_tools = ToolGroup("person", "Persons linked to customers")


@person_tools.tool("get_persons", "List persons with optional pagination", PaginationArgs)
async def get_persons(client: KantaClient, args: PaginationArgs) -> Dict[str, Any]:
    return await client.get_persons(per_page=args.per_page, page=args.page)


@person_tools.tool("get_person", "Get the details of a person by its id", IdArgs)
async def get_person(client: KantaClient, args: IdArgs) -> Person:
    return await client.get_person(args.id)

"""User tools: accounts of the firm's staff."""

from typing import Any, Dict

from src.kanta.client import KantaClient
from src.kanta.schemas import CreateUserRequest, DeletedUser, IdArgs, PaginationArgs, User

from .base import ToolGroup


user_tools = ToolGroup("user", "Users of the Kanta account")


@user_tools.tool("get_users", "List users with optional pagination", PaginationArgs)
async def get_users(client: KantaClient, args: PaginationArgs) -> Dict[str, Any]:
    return await client.get_users(per_page=args.per_page, page=args.page)


@user_tools.tool("get_user", "Get the details of a user by its id", IdArgs)
async def get_user(client: KantaClient, args: IdArgs) -> User:
    return await client.get_user(args.id)


@user_tools.tool(
    "create_user",
    "Create a user. role is one of: certified accountant, controller, collaborator",
    CreateUserRequest,
)
async def create_user(client: KantaClient, args: CreateUserRequest) -> User:
    return await client.create_user(args)


@user_tools.tool("delete_user", "Delete a user", IdArgs)
async def delete_user(client: KantaClient, args: IdArgs) -> DeletedUser:
    return await client.delete_user(args.id)

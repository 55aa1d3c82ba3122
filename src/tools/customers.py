"""
Customer tools.

Customer files are the core of Kanta: company identity, risk assessment,
persons, missions and assigned users.
"""

from typing import Any, Dict, List

from src.kanta.client import KantaClient
from src.kanta.schemas import (
    AssignmentRequest,
    CreateCustomerRequest,
    Customer,
    CustomerRiskSummary,
    IdArgs,
    PaginationArgs,
    SearchCustomersArgs,
    UpdateCustomerArgs,
)

from .base import ToolGroup


customer_tools = ToolGroup("customer", "Customer files (companies followed by the firm)")


@customer_tools.tool(
    "get_customers",
    "List customers with optional pagination",
    PaginationArgs,
)
async def get_customers(client: KantaClient, args: PaginationArgs) -> Dict[str, Any]:
    return await client.get_customers(per_page=args.per_page, page=args.page)


@customer_tools.tool(
    "get_customer",
    "Get the details of a customer by its id",
    IdArgs,
)
async def get_customer(client: KantaClient, args: IdArgs) -> Customer:
    return await client.get_customer(args.id)


@customer_tools.tool(
    "create_customer",
    "Create a customer from its company number (SIREN/SIRET). "
    "bypass_RBE and documents_auto_get default to true.",
    CreateCustomerRequest,
)
async def create_customer(client: KantaClient, args: CreateCustomerRequest) -> Customer:
    return await client.create_customer(args)


@customer_tools.tool(
    "update_customer",
    "Update an existing customer; only the fields provided are changed",
    UpdateCustomerArgs,
)
async def update_customer(client: KantaClient, args: UpdateCustomerArgs) -> Customer:
    return await client.update_customer(args.id, args)


@customer_tools.tool(
    "search_customers",
    "Search customers by company number, company name or customer code",
    SearchCustomersArgs,
)
async def search_customers(client: KantaClient, args: SearchCustomersArgs) -> Dict[str, Any]:
    return await client.search_customers(
        company_number=args.company_number,
        company_name=args.company_name,
        code=args.code,
        per_page=args.per_page,
        page=args.page,
    )


@customer_tools.tool(
    "assign_customers",
    "Assign a supervisor, contributors and firm to customers. "
    "Omitted fields are left unchanged; null (or an empty contributors list) unassigns.",
    AssignmentRequest,
)
async def assign_customers(client: KantaClient, args: AssignmentRequest) -> List[Customer]:
    return await client.assign_customers(args)


@customer_tools.tool(
    "get_customer_risk_summary",
    "Get the computed risk breakdown of a customer",
    IdArgs,
)
async def get_customer_risk_summary(client: KantaClient, args: IdArgs) -> CustomerRiskSummary:
    return await client.get_customer_risk_summary(args.id)

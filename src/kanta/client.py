"""
Async client for the Kanta REST API.

One ``KantaClient`` wraps one ``httpx.AsyncClient`` bound to one immutable
``KantaConfig``. It holds no other state and is safe to share between
concurrent tool calls.

Every call:
- carries the ``X-API-Key`` credential header
- runs under a total deadline (``config.timeout_ms``); on expiry the in-flight
  request is cancelled and ``KantaTimeoutError`` is raised
- raises ``KantaAPIError`` with the status and raw body on non-2xx answers
  (no retry)
- validates the JSON body against the caller-supplied response model and
  raises ``KantaResponseError`` on mismatch
"""

import asyncio
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from .config import KantaConfig
from .errors import KantaAPIError, KantaResponseError, KantaTimeoutError, KantaTransportError
from .schemas import (
    AssignmentEnvelope,
    AssignmentRequest,
    CreateCustomerRequest,
    CreateUserRequest,
    Customer,
    CustomerEnvelope,
    CustomerListEnvelope,
    CustomerRiskSummary,
    DeletedUser,
    DeletedUserEnvelope,
    FirmListEnvelope,
    Person,
    PersonEnvelope,
    PersonListEnvelope,
    RiskSummaryEnvelope,
    Structure,
    StructureEnvelope,
    UpdateCustomerRequest,
    User,
    UserEnvelope,
    UserListEnvelope,
)


M = TypeVar("M", bound=BaseModel)


def _page_params(per_page: Optional[int] = None, page: Optional[int] = None) -> Dict[str, int]:
    params = {}
    if per_page is not None:
        params["per_page"] = per_page
    if page is not None:
        params["page"] = page
    return params


class KantaClient:
    """
    Client for the Kanta API.

    Usage:
        async with KantaClient(config) as client:
            page = await client.get_customers(per_page=20)
    """

    def __init__(
        self,
        config: KantaConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            config: Immutable credential / base URL / timeout
            transport: Optional httpx transport (tests inject ``httpx.MockTransport``)
        """
        self.config = config
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "X-API-Key": config.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=config.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "KantaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release the connection pool."""
        await self._http.aclose()

    async def request(
        self,
        path: str,
        response_model: Type[M],
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Any] = None,
    ) -> M:
        """
        Perform one call and validate the response.

        Args:
            path: Endpoint path relative to the base URL (e.g. ``/customers``)
            response_model: Pydantic model the JSON body must match
            method: HTTP method
            params: Query parameters
            body: JSON body (ignored for GET)

        Returns:
            The validated response model

        Raises:
            KantaTimeoutError: Deadline elapsed
            KantaTransportError: No response received
            KantaAPIError: Non-2xx status
            KantaResponseError: Body is not JSON or does not match ``response_model``
        """
        json_body = body if body is not None and method != "GET" else None
        logger.debug("Kanta {} {} params={}", method, path, params)

        try:
            response = await asyncio.wait_for(
                self._http.request(method, path, params=params or None, json=json_body),
                timeout=self.config.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise KantaTimeoutError(self.config.timeout_ms)
        except httpx.HTTPError as e:
            raise KantaTransportError(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise KantaAPIError(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise KantaResponseError(f"Kanta returned a non-JSON body for {method} {path}: {e}") from e

        try:
            return response_model.model_validate(payload)
        except ValidationError as e:
            raise KantaResponseError(
                f"Unexpected response shape for {method} {path}: {e.error_count()} error(s)",
                errors=e.errors(include_url=False, include_context=False),
            ) from e

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    async def get_customers(self, per_page: Optional[int] = None, page: Optional[int] = None) -> Dict[str, Any]:
        response = await self.request("/customers", CustomerListEnvelope, params=_page_params(per_page, page))
        return response.page()

    async def get_customer(self, customer_id: str) -> Customer:
        response = await self.request(f"/customers/{customer_id}", CustomerEnvelope)
        return response.data

    async def create_customer(self, data: CreateCustomerRequest) -> Customer:
        response = await self.request("/customers", CustomerEnvelope, method="POST", body=data.to_body())
        return response.data

    async def update_customer(self, customer_id: str, data: UpdateCustomerRequest) -> Customer:
        response = await self.request(
            f"/customers/{customer_id}",
            CustomerEnvelope,
            method="PUT",
            body=data.to_body(exclude={"id"}),
        )
        return response.data

    async def search_customers(
        self,
        company_number: Optional[str] = None,
        company_name: Optional[str] = None,
        code: Optional[str] = None,
        per_page: Optional[int] = None,
        page: Optional[int] = None,
    ) -> Dict[str, Any]:
        params = {}
        if company_number:
            params["company_number"] = company_number
        if company_name:
            params["company_name"] = company_name
        if code:
            params["code"] = code
        params.update(_page_params(per_page, page))

        response = await self.request("/customers/search", CustomerListEnvelope, params=params)
        return response.page()

    async def assign_customers(self, data: AssignmentRequest) -> List[Customer]:
        response = await self.request(
            "/customers/assignment",
            AssignmentEnvelope,
            method="POST",
            body=data.to_body(),
        )
        return response.data

    async def get_customer_risk_summary(self, customer_id: str) -> CustomerRiskSummary:
        response = await self.request(f"/customers/{customer_id}/risk-summary", RiskSummaryEnvelope)
        return response.data

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def get_users(self, per_page: Optional[int] = None, page: Optional[int] = None) -> Dict[str, Any]:
        response = await self.request("/users", UserListEnvelope, params=_page_params(per_page, page))
        return response.page()

    async def get_user(self, user_id: str) -> User:
        response = await self.request(f"/users/{user_id}", UserEnvelope)
        return response.data

    async def create_user(self, data: CreateUserRequest) -> User:
        response = await self.request("/users", UserEnvelope, method="POST", body=data.to_body())
        return response.data

    async def delete_user(self, user_id: str) -> DeletedUser:
        response = await self.request(f"/users/{user_id}", DeletedUserEnvelope, method="DELETE")
        return response.data

    # -------------------------------------------------------------------------
    # Persons
    # -------------------------------------------------------------------------

    async def get_persons(self, per_page: Optional[int] = None, page: Optional[int] = None) -> Dict[str, Any]:
        response = await self.request("/persons", PersonListEnvelope, params=_page_params(per_page, page))
        return response.page()

    async def get_person(self, person_id: str) -> Person:
        response = await self.request(f"/persons/{person_id}", PersonEnvelope)
        return response.data

    # -------------------------------------------------------------------------
    # Firms & structure
    # -------------------------------------------------------------------------

    async def get_firms(self, per_page: Optional[int] = None, page: Optional[int] = None) -> Dict[str, Any]:
        response = await self.request("/firms", FirmListEnvelope, params=_page_params(per_page, page))
        return response.page()

    async def get_structure(self) -> Structure:
        response = await self.request("/structure", StructureEnvelope)
        return response.data

"""
Read-only aggregate views exposed as MCP resources.

- ``kanta://organization``: structure, firms and users
- ``kanta://customers/summary``: flattened customer roster
- ``kanta://customers/risk-summaries``: every customer's risk summary (best effort)
- ``kanta://customers/{id}/risk-summary``: one customer's risk summary

The risk-summaries view fans out one request per customer. A failing item
degrades that item only: the view reports the customers that succeeded plus
the counts, and never fails as a whole because of a per-item error.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from loguru import logger
from mcp import types

from src.kanta.client import KantaClient
from src.kanta.schemas import dump, is_uuid

from .errors import ParameterError, UnknownOperationError, normalize_error


ORGANIZATION_URI = "kanta://organization"
CUSTOMER_SUMMARY_URI = "kanta://customers/summary"
RISK_SUMMARIES_URI = "kanta://customers/risk-summaries"
CUSTOMER_RISK_SUMMARY_TEMPLATE = "kanta://customers/{id}/risk-summary"

_CUSTOMER_RISK_SUMMARY_RE = re.compile(r"^kanta://customers/(?P<id>[^/]+)/risk-summary$")

# Largest page Kanta accepts; used when walking the whole roster
ROSTER_PAGE_SIZE = 100

# Per-customer requests in flight at once; stays well under the httpx pool size
# so a queued request never spends its deadline waiting for a connection
FAN_OUT_LIMIT = 10

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class ItemOutcome(Generic[K, V]):
    """Result of one item of a fan-out: either a value or the error."""
    key: K
    value: Optional[V] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(
    keys: List[K],
    fetch: Callable[[K], Awaitable[V]],
    limit: int = FAN_OUT_LIMIT,
) -> List[ItemOutcome[K, V]]:
    """
    Run ``fetch`` for every key concurrently and collect every outcome.

    At most ``limit`` fetches run at the same time. Exceptions are captured
    per item and never cross the gather boundary. Outcomes are returned in
    the order of ``keys``.
    """
    semaphore = asyncio.Semaphore(limit)

    async def settle(key: K) -> ItemOutcome[K, V]:
        async with semaphore:
            try:
                return ItemOutcome(key=key, value=await fetch(key))
            except Exception as e:
                return ItemOutcome(key=key, error=e)

    return list(await asyncio.gather(*(settle(key) for key in keys)))


@dataclass
class RiskSummaryReport:
    """Aggregate of a risk-summary fan-out."""
    total: int
    risk_summaries: List[Dict[str, Any]] = field(default_factory=list)
    unavailable: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.risk_summaries)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "unavailable": self.unavailable,
            "risk_summaries": self.risk_summaries,
        }


def _summarize_customer(customer: Any) -> Dict[str, Any]:
    return {
        "id": customer.id,
        "company_name": customer.company_name,
        "state": customer.state,
        "vigilance_level": customer.vigilance_level,
        "code": customer.code,
        "creation_date": customer.creation_date,
    }


class ResourceViews:
    """
    Aggregate read views over the Kanta client.

    Args:
        client: Shared Kanta client
        ensure_available: Called before each read; raises once shutdown has begun
    """

    def __init__(self, client: KantaClient, ensure_available: Optional[Callable[[], None]] = None):
        self.client = client
        self._ensure_available = ensure_available

    def list_resources(self) -> List[types.Resource]:
        return [
            types.Resource(
                uri=ORGANIZATION_URI,
                name="organization",
                description="Structure, firms and users of the Kanta account",
                mimeType="application/json",
            ),
            types.Resource(
                uri=CUSTOMER_SUMMARY_URI,
                name="customer-summary",
                description="All customers: id, name, state, vigilance level, code, creation date",
                mimeType="application/json",
            ),
            types.Resource(
                uri=RISK_SUMMARIES_URI,
                name="customer-risk-summaries",
                description="Risk summary of every customer (customers whose summary is unavailable are listed apart)",
                mimeType="application/json",
            ),
        ]

    def list_resource_templates(self) -> List[types.ResourceTemplate]:
        return [
            types.ResourceTemplate(
                uriTemplate=CUSTOMER_RISK_SUMMARY_TEMPLATE,
                name="customer-risk-summary",
                description="Risk summary of one customer, by UUID",
                mimeType="application/json",
            ),
        ]

    async def read(self, uri: str) -> Any:
        """
        Read one view.

        Args:
            uri: Resource URI

        Returns:
            JSON-ready content

        Raises:
            ToolError: Any failure, already normalized
        """
        try:
            if self._ensure_available is not None:
                self._ensure_available()
            uri = uri.rstrip("/")

            if uri == ORGANIZATION_URI:
                return await self.organization()
            if uri == CUSTOMER_SUMMARY_URI:
                return {"customers": await self.customer_summary()}
            if uri == RISK_SUMMARIES_URI:
                report = await self.risk_summaries()
                return report.to_dict()

            match = _CUSTOMER_RISK_SUMMARY_RE.match(uri)
            if match:
                return await self.customer_risk_summary(match.group("id"))

            raise UnknownOperationError(f"Unknown resource: {uri}")
        except Exception as e:
            error = normalize_error(e)
            logger.warning("Resource {} failed: {}", uri, error)
            raise error from e

    async def organization(self) -> Dict[str, Any]:
        structure, firms, users = await asyncio.gather(
            self.client.get_structure(),
            self.client.get_firms(per_page=ROSTER_PAGE_SIZE),
            self.client.get_users(per_page=ROSTER_PAGE_SIZE),
        )
        return {
            "structure": dump(structure),
            "firms": dump(firms["data"]),
            "users": dump(users["data"]),
        }

    async def customer_summary(self) -> List[Dict[str, Any]]:
        """Walk every page of the customer list and flatten it."""
        first = await self.client.get_customers(per_page=ROSTER_PAGE_SIZE, page=1)
        customers = list(first["data"])

        remaining = range(2, first["total_page"] + 1)
        if remaining:
            pages = await asyncio.gather(
                *(self.client.get_customers(per_page=ROSTER_PAGE_SIZE, page=n) for n in remaining)
            )
            for page in pages:
                customers.extend(page["data"])

        return [_summarize_customer(customer) for customer in customers]

    async def risk_summaries(self) -> RiskSummaryReport:
        """
        Fetch the risk summary of every customer of the roster.

        Customer ids are de-duplicated first: pages fetched concurrently can
        overlap when the roster changes in between, and each customer is
        fetched and counted in ``total`` once.
        """
        roster = await self.customer_summary()
        names = {customer["id"]: customer["company_name"] for customer in roster}
        if len(names) < len(roster):
            logger.info("Customer roster had {} duplicate entries, ignored", len(roster) - len(names))

        outcomes = await settle_all(list(names), self.client.get_customer_risk_summary)

        report = RiskSummaryReport(total=len(outcomes))
        for outcome in outcomes:
            if outcome.ok:
                report.risk_summaries.append({
                    "customer_id": outcome.key,
                    "company_name": names[outcome.key],
                    "risk_summary": dump(outcome.value),
                })
            else:
                logger.warning("Risk summary unavailable for customer {}: {}", outcome.key, outcome.error)
                report.unavailable.append(outcome.key)

        logger.info("Risk summaries: {}/{} available", report.succeeded, report.total)
        return report

    async def customer_risk_summary(self, customer_id: str) -> Dict[str, Any]:
        if not is_uuid(customer_id):
            raise ParameterError(
                f"Invalid parameters: id: '{customer_id}' is not a valid UUID",
                details={"fields": ["id: not a valid UUID"]},
            )
        summary = await self.client.get_customer_risk_summary(customer_id)
        return {"customer_id": customer_id, "risk_summary": dump(summary)}

"""
Shared fixtures: a fake Kanta API served through ``httpx.MockTransport``
and factories for realistic Kanta payloads.
"""

import asyncio
import inspect
import json
import os
import sys
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.kanta.client import KantaClient
from src.kanta.config import KantaConfig


BASE_URL = "https://kanta.test/api/v1"
BASE_PATH = "/api/v1"

CUSTOMER_ID = "3f2b8c1e-7a4d-4e2b-9c1a-0d5e6f7a8b9c"
OTHER_CUSTOMER_ID = "8a1d2e3f-4b5c-4d6e-8f70-1a2b3c4d5e6f"
THIRD_CUSTOMER_ID = "c0ffee00-1234-4abc-8def-0123456789ab"
USER_ID = "5e6f7a8b-9c0d-4e1f-a2b3-c4d5e6f7a8b9"
FIRM_ID = "9b8a7c6d-5e4f-4a3b-8c2d-1e0f9a8b7c6d"
PERSON_ID = "1a2b3c4d-5e6f-4a7b-8c9d-0e1f2a3b4c5d"


def make_config(timeout_ms: int = 2000) -> KantaConfig:
    return KantaConfig(api_key="test-api-key", base_url=BASE_URL, timeout_ms=timeout_ms)


class KantaStub:
    """
    In-memory Kanta API.

    Routes are keyed by ``(method, path)`` where ``path`` is relative to the
    API base (``/customers/...``). Every request received is recorded, so
    tests can assert what was (or was not) sent upstream.
    """

    def __init__(self):
        self.routes: Dict[tuple, Callable] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        status: int = 200,
        text: Optional[str] = None,
        handler: Optional[Callable] = None,
    ) -> None:
        if handler is None:
            if text is not None:
                handler = lambda request: httpx.Response(status, text=text)
            else:
                handler = lambda request: httpx.Response(status, json=json_body)
        self.routes[(method, path)] = handler

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith(BASE_PATH):
            path = path[len(BASE_PATH):]
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    @property
    def paths(self) -> List[str]:
        return [r.url.path[len(BASE_PATH):] for r in self.requests]

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


# =============================================================================
# Payload factories
# =============================================================================


def envelope(data: Any, url: str = "/", obj: str = "object") -> Dict[str, Any]:
    return {"url": url, "object": obj, "data": data}


def list_envelope(
    data: List[Any],
    url: str = "/",
    per_page: int = 20,
    current_page: int = 1,
    total_page: int = 1,
    total_data: Optional[int] = None,
) -> Dict[str, Any]:
    return {
        "url": url,
        "object": "list",
        "data": data,
        "total_data": len(data) if total_data is None else total_data,
        "per_page": per_page,
        "current_page": current_page,
        "total_page": total_page,
    }


def customer_payload(customer_id: str = CUSTOMER_ID, **overrides) -> Dict[str, Any]:
    data = {
        "id": customer_id,
        "legal_type_code": 5499,
        "legal_type_label": "SARL",
        "code": "C001",
        "company_name": "Boulangerie Martin",
        "company_number": "123456789",
        "company_country": "FR",
        "creation_date": "2015-03-01",
        "fiscal_year_end_date": "2024-12-31",
        "activity_list": [
            {"code": "1071C", "label": "Boulangerie et boulangerie-patisserie", "is_main_activity": True, "risk": "Low"},
        ],
        "address_list": [
            {
                "street": "1 rue de la Paix",
                "zip_code": "75002",
                "city": "Paris",
                "country": {"label": "France", "risk": "low"},
                "is_headquarter": True,
                "address_area": None,
            },
        ],
        "person_list": [],
        "mission_list": [
            {
                "label": "Tenue comptable",
                "description": None,
                "start_date": "2020-01-01",
                "end_date": None,
                "risk": "Medium",
            },
        ],
        "relationship_start_date": "2020-01-01",
        "state": "valid",
        "vigilance_level": "Enhanced",
        "risk_summary": {"location": "low", "activity": "LOW", "mission": "medium", "customer": "High"},
        "diligences": [],
        "affectation_list": [
            {
                "id": 12,
                "object": "affectation",
                "first_name": "Anne",
                "last_name": "Durand",
                "email": "anne.durand@kanta.fr",
                "is_validator": False,
                "is_supervisor": True,
            },
        ],
        "document_list": [],
    }
    data.update(overrides)
    return data


def user_payload(user_id: str = USER_ID, **overrides) -> Dict[str, Any]:
    data = {
        "id": user_id,
        "first_name": "Anne",
        "last_name": "Durand",
        "email": "anne.durand@kanta.fr",
        "role": "controller",
    }
    data.update(overrides)
    return data


def firm_payload(firm_id: str = FIRM_ID) -> Dict[str, Any]:
    return {
        "id": firm_id,
        "libelle": "Cabinet Durand",
        "is_main": True,
        "email": "contact@cabinet-durand.fr",
        "telephone": "0102030405",
        "type_juridique": "SAS",
        "siret": "12345678900012",
        "entite_rattachement": "Cabinet Durand",
        "adresse_entite_rattachement": "10 avenue Foch, Lyon",
        "numero_tva": "FR12345678901",
        "adresse": {"adresse_1": "10 avenue Foch", "code_postal": "69006", "ville": "Lyon"},
    }


def structure_payload() -> Dict[str, Any]:
    return {
        "name": "Cabinet Durand",
        "remaining_customer_files": 120,
        "remaining_user": 4,
        "remaining_validator": None,
        "subscription": "premium",
        "subscription_status": "active",
    }


def person_payload(person_id: str = PERSON_ID) -> Dict[str, Any]:
    return {
        "id": person_id,
        "first_name": "Jean",
        "last_name": "Martin",
        "date_of_birth": "1970-05-14",
        "city_of_birth": "Lyon",
        "birth_country": {"label": "France", "risk": "Low"},
        "nationality": None,
        "met_and_certify_identity": True,
        "address_list": [],
        "politically_exposed_person": False,
        "integrity_reputation_doubts": False,
        "document_list": [],
        "assets_freeze": False,
        "linked_customer_list": [
            {
                "id": CUSTOMER_ID,
                "company_name": "Boulangerie Martin",
                "file_code": "C001",
                "person_acting_on_behalf": False,
                "beneficial_owner": True,
                "legal_representative": True,
                "role": "Gérant",
            },
        ],
    }


def risk_summary_payload(**overrides) -> Dict[str, Any]:
    data = {"location": "low", "activity": "medium", "mission": "low", "customer": "standard"}
    data.update(overrides)
    return data


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def stub():
    return KantaStub()


@pytest.fixture
def client(stub):
    kanta = KantaClient(make_config(), transport=stub.transport())
    yield kanta
    run(kanta.aclose())

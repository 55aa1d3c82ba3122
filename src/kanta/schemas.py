"""
Kanta API data model.

Pydantic models for every resource returned by the Kanta API and every
request payload sent to it. These models are the single validation layer of
the server, used in both directions:

- Inbound tool arguments are validated against the request models before any
  network call is made. Request models forbid unknown fields.
- Upstream responses are validated against the resource models. Resource
  models keep unknown upstream fields (passthrough) so nothing is dropped.

Optional fields keep the difference between "absent" and "present but null":
serialize with ``exclude_unset=True`` (see ``dump``) and a field the upstream
omitted stays omitted.
"""

import re
from enum import Enum
from typing import Annotated, Any, Dict, Generic, List, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)


UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

_UUID_RE = re.compile(UUID_PATTERN)


def is_uuid(value: str) -> bool:
    """Return True if value has the 8-4-4-4-12 hyphenated hex layout."""
    return bool(_UUID_RE.match(value))


UUIDStr = Annotated[str, StringConstraints(pattern=UUID_PATTERN)]
DateStr = Annotated[str, StringConstraints(pattern=DATE_PATTERN)]

# Address format check for data read from Kanta. Unlike EmailStr it keeps the
# value exactly as received (no domain normalization) and accepts internal
# domains such as .local.
_EMAIL_RE = re.compile(r"^[A-Za-z0-9_'+\-.]*[A-Za-z0-9_+\-]@([A-Za-z0-9][A-Za-z0-9\-]*\.)+[A-Za-z]{2,}$")


def check_email(value: str) -> str:
    if value.startswith(".") or ".." in value or not _EMAIL_RE.match(value):
        raise ValueError("value is not a valid email address")
    return value


EmailText = Annotated[str, AfterValidator(check_email)]


# =============================================================================
# Enumerations
# =============================================================================


class RiskLevel(str, Enum):
    """Canonical risk / vigilance levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    NOT_ESTABLISHED = "not_established"
    STANDARD = "standard"
    ENHANCED = "enhanced"


# Fixed lookup applied after case-folding. Anything else is rejected.
RISK_LEVEL_SYNONYMS: Dict[str, RiskLevel] = {
    "low": RiskLevel.LOW,
    "medium": RiskLevel.MEDIUM,
    "high": RiskLevel.HIGH,
    "not_established": RiskLevel.NOT_ESTABLISHED,
    "not established": RiskLevel.NOT_ESTABLISHED,
    "not-established": RiskLevel.NOT_ESTABLISHED,
    "standard": RiskLevel.STANDARD,
    "enhanced": RiskLevel.ENHANCED,
}


def normalize_risk_level(value: Any) -> Any:
    """Map a raw risk token onto its canonical value.

    Non-string input is passed through untouched so the enum validator
    reports the type error.
    """
    if isinstance(value, RiskLevel):
        return value
    if isinstance(value, str):
        canonical = RISK_LEVEL_SYNONYMS.get(value.strip().lower())
        if canonical is not None:
            return canonical
    return value


RiskLevelField = Annotated[RiskLevel, BeforeValidator(normalize_risk_level)]


class CustomerState(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    VALID = "valid"
    ENDED = "ended"
    TO_VALIDATE = "to_validate"


class UserRole(str, Enum):
    CERTIFIED_ACCOUNTANT = "certified accountant"
    CONTROLLER = "controller"
    COLLABORATOR = "collaborator"


# =============================================================================
# Base classes
# =============================================================================


class ResourceModel(BaseModel):
    """Base for data received from Kanta. Unknown fields pass through."""
    model_config = ConfigDict(extra="allow", use_enum_values=True)


class RequestModel(BaseModel):
    """Base for data sent to Kanta. Unknown fields are rejected."""
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    def to_body(self, exclude: Optional[set] = None) -> Dict[str, Any]:
        """
        Build the outgoing JSON body.

        Contains the fields the caller set, plus fields that carry a
        documented non-null default. Unset optional fields are left out, so
        "omitted" never turns into an explicit null upstream.

        Args:
            exclude: Field names to keep out of the body (e.g. path params)

        Returns:
            JSON-ready dictionary
        """
        include = set(self.model_fields_set)
        for name, info in type(self).model_fields.items():
            if not info.is_required() and info.default is not None:
                include.add(name)
        if exclude:
            include -= set(exclude)
        return self.model_dump(mode="json", include=include)


def dump(value: Any) -> Any:
    """Convert validated models (or containers of them) into JSON-ready data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_unset=True)
    if isinstance(value, list):
        return [dump(item) for item in value]
    if isinstance(value, dict):
        return {key: dump(item) for key, item in value.items()}
    if isinstance(value, Enum):
        return value.value
    return value


# =============================================================================
# Shared nested resources
# =============================================================================


class Country(ResourceModel):
    label: str
    risk: RiskLevelField


class AddressArea(ResourceModel):
    label: str
    risk: RiskLevelField


class CustomerAddress(ResourceModel):
    street: str
    zip_code: str
    city: str
    country: Country
    is_headquarter: bool
    address_area: Optional[AddressArea]
    additional_information: Optional[str] = None


class PersonAddress(ResourceModel):
    street: Optional[str]
    zip_code: Optional[str]
    city: Optional[str]
    country: Optional[Country]
    is_main_residence: bool
    address_area: Optional[AddressArea]
    additional_information: Optional[str] = None


class Activity(ResourceModel):
    code: str
    label: str
    is_main_activity: bool
    risk: RiskLevelField


class Mission(ResourceModel):
    label: str
    description: Optional[str]
    start_date: Optional[str]
    end_date: Optional[str]
    risk: RiskLevelField


class Affectation(ResourceModel):
    """A user assigned to a customer file (supervisor, contributor, validator)."""
    id: str
    object: str
    first_name: str
    last_name: str
    email: EmailText
    is_validator: bool
    is_supervisor: bool

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        # Kanta sends numeric ids for some affectations
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class Diligence(ResourceModel):
    title: str
    description: str
    threat_vulnerability_origin: str
    threat_vulnerability_description: str


class CustomerDocument(ResourceModel):
    type: Optional[str]
    title: Optional[str]
    issue_date: Optional[DateStr]
    expiration_date: Optional[DateStr] = None
    comment: Optional[str] = None
    file_list: List[UUIDStr]


class PersonDocument(ResourceModel):
    type: str
    title: str
    issue_date: Optional[DateStr]
    expiration_date: Optional[DateStr] = None
    # may be omitted, never null
    comment: str = None
    file_list: List[UUIDStr]
    person_id: Optional[UUIDStr] = None


class RiskSummary(BaseModel):
    """The four risk axes. Exactly these four, nothing else."""
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    location: RiskLevelField
    activity: RiskLevelField
    mission: RiskLevelField
    customer: RiskLevelField


class CustomerRiskSummary(ResourceModel):
    """Answer of the risk-summary endpoint: the four axes, plus whatever else Kanta sends."""
    location: RiskLevelField
    activity: RiskLevelField
    mission: RiskLevelField
    customer: RiskLevelField


# =============================================================================
# Entities
# =============================================================================


class PersonBase(ResourceModel):
    id: UUIDStr
    first_name: str
    last_name: str
    date_of_birth: Optional[str]
    city_of_birth: Optional[str]
    birth_country: Optional[Country]
    nationality: Optional[Country]
    met_and_certify_identity: bool
    address_list: List[PersonAddress]
    other_activities: Optional[str] = None
    politically_exposed_person: bool
    integrity_reputation_doubts: bool
    observation: Optional[str] = None
    document_list: List[PersonDocument]


class CustomerPerson(PersonBase):
    """A person embedded in a customer file, with its role in that file."""
    person_acting_on_behalf: bool
    beneficial_owner: bool
    legal_representative: bool
    role: Optional[str]
    assets_freeze: Optional[bool] = None


class LinkedCustomer(ResourceModel):
    id: UUIDStr
    company_name: str
    file_code: Optional[str]
    person_acting_on_behalf: bool
    beneficial_owner: bool
    legal_representative: bool
    role: Optional[str]


class Person(PersonBase):
    """A standalone person with back-references to the customers it belongs to."""
    assets_freeze: bool
    linked_customer_list: List[LinkedCustomer]


class Customer(ResourceModel):
    id: UUIDStr
    legal_type_code: Optional[int]
    legal_type_label: Optional[str]
    code: Optional[str]
    company_name: str
    company_number: Optional[str]
    company_country: Optional[str]
    email: Optional[EmailText] = None
    phone: Optional[str] = None
    creation_date: Optional[str]
    fiscal_year_end_date: Optional[str]
    activity_list: List[Activity]
    address_list: List[CustomerAddress]
    person_list: List[CustomerPerson]
    mission_list: List[Mission]
    relationship_start_date: Optional[str]
    state: CustomerState
    relationship_end_date: Optional[str] = None
    accountant_choice_reason: Optional[str] = None
    relationship_description: Optional[str] = None
    vigilance_level: RiskLevelField
    risk_summary: RiskSummary
    diligences: List[Diligence]
    observation: Optional[str] = None
    turnover: Optional[float] = None
    affectation_list: List[Affectation]
    document_list: List[CustomerDocument]


class User(ResourceModel):
    id: UUIDStr
    first_name: str
    last_name: str
    email: EmailText
    role: str


class FirmAddress(ResourceModel):
    adresse_1: str
    adresse_2: Optional[str] = None
    adresse_3: Optional[str] = None
    code_postal: str
    ville: str


class Firm(ResourceModel):
    id: UUIDStr
    libelle: str
    is_main: bool
    email: EmailText
    telephone: str
    type_juridique: str
    siret: str
    entite_rattachement: str
    adresse_entite_rattachement: str
    numero_tva: str
    adresse: FirmAddress


class Structure(ResourceModel):
    name: str
    remaining_customer_files: Optional[int]
    remaining_user: Optional[int]
    remaining_validator: Optional[int]
    subscription: str
    subscription_status: str


class DeletedUser(ResourceModel):
    id: str
    deleted: bool


# =============================================================================
# Response envelopes
# =============================================================================


T = TypeVar("T")


class Envelope(ResourceModel, Generic[T]):
    """Single-object response: ``{url, object, data}``."""
    url: str
    object: str
    data: T


class ListEnvelope(ResourceModel, Generic[T]):
    """Paginated response: ``{url, object, data[], total_data, ...}``."""
    url: str
    object: str
    data: List[T]
    total_data: int
    per_page: int
    current_page: int
    total_page: int

    def page(self) -> Dict[str, Any]:
        """The page handed back to callers, without the url/object envelope."""
        return {
            "data": self.data,
            "total_data": self.total_data,
            "per_page": self.per_page,
            "current_page": self.current_page,
            "total_page": self.total_page,
        }


# =============================================================================
# Tool argument / request payloads
# =============================================================================


class NoArgs(RequestModel):
    pass


class PaginationArgs(RequestModel):
    per_page: Optional[int] = Field(default=None, ge=1, le=100, description="Items per page (1-100)")
    page: Optional[int] = Field(default=None, ge=1, description="Page number")


class IdArgs(RequestModel):
    id: UUIDStr = Field(description="UUID of the resource")


class CreateCustomerRequest(RequestModel):
    company_number: str = Field(description="Company number (SIREN or SIRET)")
    supervisor: Optional[UUIDStr] = Field(default=None, description="Supervisor user id")
    contributors: Optional[List[UUIDStr]] = Field(default=None, description="Contributor user ids")
    firm: Optional[UUIDStr] = Field(default=None, description="Firm id")
    fiscal_year_end_date: Optional[DateStr] = Field(default=None, description="Fiscal year end (YYYY-MM-DD)")
    turnover: Optional[float] = Field(default=None, description="Turnover")
    bypass_RBE: bool = Field(default=True, description="Skip the beneficial-owner register duplicate check")
    documents_auto_get: bool = Field(default=True, description="Fetch company documents automatically")


class UpdateCustomerRequest(RequestModel):
    company_number: Optional[str] = Field(default=None, description="Company number (SIREN or SIRET)")
    code: Optional[str] = Field(default=None, description="Customer code")
    name: Optional[str] = Field(default=None, description="Name")
    firstname: Optional[str] = Field(default=None, description="First name")
    lastname: Optional[str] = Field(default=None, description="Last name")
    creation_date: Optional[DateStr] = Field(default=None, description="Creation date (YYYY-MM-DD)")
    fiscal_year_end_date: Optional[DateStr] = Field(default=None, description="Fiscal year end (YYYY-MM-DD)")
    turnover: Optional[float] = Field(default=None, description="Turnover")
    contact_email: Optional[EmailStr] = Field(default=None, description="Contact email")
    contact_name: Optional[str] = Field(default=None, description="Contact name")
    contact_phone: Optional[str] = Field(default=None, description="Contact phone")


class UpdateCustomerArgs(UpdateCustomerRequest):
    id: UUIDStr = Field(description="UUID of the customer to update")


class SearchCustomersArgs(PaginationArgs):
    company_number: Optional[str] = Field(default=None, description="Company number to search for")
    company_name: Optional[str] = Field(default=None, description="Company name to search for")
    code: Optional[str] = Field(default=None, description="Customer code to search for")

    @model_validator(mode="after")
    def _require_criterion(self) -> "SearchCustomersArgs":
        if not (self.company_number or self.company_name or self.code):
            raise ValueError("at least one of company_number, company_name or code is required")
        return self


class AssignmentRequest(RequestModel):
    """
    Customer assignment.

    Omitting a field leaves it unchanged upstream. Passing ``null`` for
    supervisor/firm, or ``[]`` for contributors, unassigns.
    """
    customers: List[UUIDStr] = Field(min_length=1, description="Customer ids to assign")
    supervisor: Optional[UUIDStr] = Field(default=None, description="Supervisor id (null to unassign)")
    contributors: Optional[List[UUIDStr]] = Field(default=None, description="Contributor ids (empty list to unassign all)")
    firm: Optional[UUIDStr] = Field(default=None, description="Firm id (null to unassign)")


class CreateUserRequest(RequestModel):
    firstname: str = Field(description="First name")
    lastname: str = Field(description="Last name")
    email: EmailStr = Field(description="Email address")
    role: UserRole = Field(description="Role of the user")
    default_supervisor: Optional[UUIDStr] = Field(default=None, description="Default supervisor id")
    default_contributor: Optional[UUIDStr] = Field(default=None, description="Default contributor id")
    firms: Optional[List[UUIDStr]] = Field(default=None, description="Firm ids of the user")
    trigram: Optional[str] = Field(default=None, description="User trigram")


# Ready-made envelope types used by the client
CustomerEnvelope = Envelope[Customer]
CustomerListEnvelope = ListEnvelope[Customer]
UserEnvelope = Envelope[User]
UserListEnvelope = ListEnvelope[User]
PersonEnvelope = Envelope[Person]
PersonListEnvelope = ListEnvelope[Person]
FirmListEnvelope = ListEnvelope[Firm]
StructureEnvelope = Envelope[Structure]
DeletedUserEnvelope = Envelope[DeletedUser]
AssignmentEnvelope = Envelope[List[Customer]]
RiskSummaryEnvelope = Envelope[CustomerRiskSummary]

"""
Pydantic validation schemas
"""
from datetime import date
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from caseintake.utils.validators import ZIP_CODE_PATTERN, is_temp_reference, parse_iso_date

# ============================================================================
# References to directory rows (insurers, providers)
# ============================================================================

class ExistingReference(BaseModel):
    """A row that already exists; resolves to its id unchanged"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["existing"] = "existing"
    id: int


class PendingReference(BaseModel):
    """A placeholder the wizard created; resolving it inserts a new row"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["pending"] = "pending"
    marker: str
    display_name: str = ""


Reference = Union[ExistingReference, PendingReference]

# Directory ids are 32-bit INTEGER columns
MAX_REFERENCE_ID = 2**31 - 1


def _invalid_reference(value: Any) -> PydanticCustomError:
    return PydanticCustomError(
        "invalid_reference",
        "Invalid reference {value!r}: expected a positive 32-bit id or a temp- marker",
        {"value": value},
    )


def parse_reference(value: Any) -> Optional[Reference]:
    """
    Turn a raw payload value into a Reference.

    ``None``, ``0`` and ``""`` mean no reference. Positive integers and digit
    strings are existing ids, ``temp-...`` strings (optionally wrapped as
    ``{"id": "temp-...", "name": "..."}``) are pending rows. Anything else is
    rejected rather than coerced.
    """
    if isinstance(value, (ExistingReference, PendingReference)):
        return value
    if value is None:
        return None
    if isinstance(value, bool):
        raise _invalid_reference(value)
    if isinstance(value, int):
        if value == 0:
            return None
        if value < 0 or value > MAX_REFERENCE_ID:
            raise _invalid_reference(value)
        return ExistingReference(id=value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if is_temp_reference(text):
            return PendingReference(marker=text)
        if text.isdecimal():
            return parse_reference(int(text))
        raise _invalid_reference(value)
    if isinstance(value, dict):
        marker = value.get("id", value.get("tempId"))
        name = value.get("name") or ""
        if not isinstance(name, str):
            raise _invalid_reference(value)
        if is_temp_reference(marker):
            return PendingReference(marker=marker, display_name=name.strip())
        if isinstance(marker, int) and not isinstance(marker, bool) and 0 < marker <= MAX_REFERENCE_ID:
            return ExistingReference(id=marker)
        raise _invalid_reference(value)
    raise _invalid_reference(value)


def _required_reference(value: Any) -> Reference:
    reference = parse_reference(value)
    if reference is None:
        raise PydanticCustomError("missing_reference", "A reference is required")
    return reference


OptionalReference = Annotated[Optional[Reference], BeforeValidator(parse_reference)]
RequiredReference = Annotated[Reference, BeforeValidator(_required_reference)]


# ============================================================================
# Intake payload
# ============================================================================

def _blank_if_none(value: Any) -> Any:
    return "" if value is None else value


def _none_if_blank(value: Any) -> Any:
    return None if value in (None, "") else value


def _strict_date(value: Any) -> Any:
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(value)
    except ValueError:
        raise PydanticCustomError("date_format", "Expected a date in YYYY-MM-DD format")


OptStr = Annotated[str, BeforeValidator(_blank_if_none)]
IsoDate = Annotated[date, BeforeValidator(_strict_date)]
OptIsoDate = Annotated[Optional[IsoDate], BeforeValidator(_none_if_blank)]


def _check_optional_email(value: str) -> str:
    if value:
        validate_email(value)
    return value


OptEmail = Annotated[OptStr, AfterValidator(_check_optional_email)]


class IntakeModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class IntakeClient(IntakeModel):
    is_driver: StrictBool = False

    # Identity
    first_name: str = Field(..., min_length=1, max_length=100)
    middle_name: OptStr = Field("", max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: IsoDate
    ssn: OptStr = ""
    marital_status: OptStr = ""

    # Contact
    street_address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=50)
    zip_code: str = Field(..., max_length=10, pattern=ZIP_CODE_PATTERN.pattern)
    primary_phone: str = Field(..., min_length=1, max_length=20)
    secondary_phone: OptStr = Field("", max_length=20)
    email: OptEmail = Field("", max_length=255)
    referrer: OptStr = Field("", max_length=255)
    referrer_relationship: OptStr = Field("", max_length=100)

    # Medical history
    injury_description: OptStr = ""
    prior_accidents: OptStr = ""
    prior_injuries: OptStr = ""
    work_impact: OptStr = ""

    # Health insurance
    has_health_insurance: StrictBool = False
    health_insurance_id: OptionalReference = None
    health_member_id: OptStr = Field("", max_length=100)

    # Auto insurance (first party)
    has_auto_insurance: StrictBool = False
    auto_insurance_id: OptionalReference = None
    auto_policy_number: OptStr = Field("", max_length=100)
    auto_claim_number: OptStr = Field("", max_length=100)
    has_medpay: StrictBool = False
    medpay_amount: OptStr = Field("", max_length=50)
    has_um_coverage: StrictBool = False
    um_amount: OptStr = Field("", max_length=50)

    selected_providers: List[RequiredReference] = Field(default_factory=list)

    relationship_to_primary: OptStr = Field("", max_length=50)
    uses_primary_address: StrictBool = False
    uses_primary_phone: StrictBool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class IntakeDefendant(IntakeModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    is_policyholder: StrictBool = False
    policyholder_first_name: OptStr = Field("", max_length=100)
    policyholder_last_name: OptStr = Field("", max_length=100)
    auto_insurance_id: OptionalReference = None
    policy_number: OptStr = Field("", max_length=100)
    claim_number: OptStr = Field("", max_length=100)
    liability_percentage: Optional[StrictInt] = Field(None, ge=0, le=100)
    notes: OptStr = ""

    # 1-based defendant_number of another defendant in this submission
    related_to_defendant_id: Optional[StrictInt] = Field(None, gt=0, le=MAX_REFERENCE_ID)
    relationship_type: OptStr = Field("", max_length=50)

    # Adjuster for the third-party claim
    auto_adjuster_id: Optional[StrictInt] = Field(None, gt=0, le=MAX_REFERENCE_ID)
    adjuster_first_name: OptStr = Field("", max_length=100)
    adjuster_last_name: OptStr = Field("", max_length=100)
    adjuster_email: OptEmail = Field("", max_length=255)
    adjuster_phone: OptStr = Field("", max_length=20)
    adjuster_mailing_address: OptStr = Field("", max_length=255)
    adjuster_city: OptStr = Field("", max_length=100)
    adjuster_state: OptStr = Field("", max_length=50)
    adjuster_zip_code: OptStr = Field("", max_length=10)

    @model_validator(mode="after")
    def default_liability(self) -> "IntakeDefendant":
        if self.liability_percentage is None:
            self.liability_percentage = 100
        return self

    @property
    def has_adjuster_info(self) -> bool:
        return any((
            self.adjuster_first_name,
            self.adjuster_last_name,
            self.adjuster_email,
            self.adjuster_phone,
            self.adjuster_mailing_address,
            self.adjuster_city,
            self.adjuster_state,
            self.adjuster_zip_code,
        ))


class IntakeForm(IntakeModel):
    # Accident
    date_of_loss: IsoDate
    time_of_wreck: OptStr = Field("", max_length=20)
    wreck_type: OptStr = Field("", max_length=100)
    wreck_street: OptStr = Field("", max_length=255)
    wreck_city: OptStr = Field("", max_length=100)
    wreck_county: OptStr = Field("", max_length=100)
    wreck_state: OptStr = Field("", max_length=50)
    is_police_involved: StrictBool = False
    police_force: OptStr = Field("", max_length=100)
    is_police_report: StrictBool = False
    police_report_number: OptStr = Field("", max_length=100)
    vehicle_description: OptStr = Field("", max_length=500)
    damage_level: OptStr = Field("", max_length=50)
    wreck_description: OptStr = ""
    sign_up_date: OptIsoDate = None

    clients: List[IntakeClient] = Field(..., min_length=1)
    medical_providers: List[Any] = Field(default_factory=list)
    defendants: List[IntakeDefendant] = Field(default_factory=list)

    @field_validator("date_of_loss")
    @classmethod
    def date_of_loss_not_in_future(cls, v: date) -> date:
        if v > date.today():
            raise PydanticCustomError("future_date", "Date of loss cannot be in the future")
        return v


class CreateCaseRequest(IntakeModel):
    intake_data: IntakeForm
    documents: List[Any] = Field(default_factory=list)


# ============================================================================
# Responses
# ============================================================================

class CreateCaseResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    casefile_id: int
    clients: List[int]
    defendants: List[int]
    message: str = "Case created successfully"

import re

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from registration_api.models.domain.registration_domain import (
    Availability,
    BusinessType,
    ContactData,
    ContactStatus,
    PreferredTime,
    RegistrationData,
    RegistrationStatus,
    YearsInBusiness,
)

PHONE_PATTERN = re.compile(r"^\+234[0-9]{10}$")
REGISTRATION_ID_PATTERN = re.compile(r"^REG-\d{4}-\d{3,}$")


class CamelRequest(BaseModel):
    """camelCase JSON in, snake_case attributes; unknown keys are dropped."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    @field_validator("email", mode="after", check_fields=False)
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class RegistrationRequest(CamelRequest):
    """Request body for POST /api/register."""

    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str
    about_business: str = Field(..., min_length=10, max_length=1000)
    cac_no: str | None = Field(None, max_length=50)
    kaseda_cert_no: str | None = Field(None, max_length=50)
    business_name: str = Field(..., min_length=2, max_length=255)
    business_type: BusinessType
    business_address: str = Field(..., min_length=10, max_length=500)
    years_in_business: YearsInBusiness
    expectations: str = Field(..., min_length=10, max_length=1000)
    availability: Availability
    preferred_time: PreferredTime
    additional_info: str | None = Field(None, max_length=1000)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value):
            raise ValueError("Please provide a valid Nigerian phone number (+234XXXXXXXXXX)")
        return value

    @field_validator("cac_no", "kaseda_cert_no", "additional_info")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        return value or None

    def to_domain(self) -> RegistrationData:
        return RegistrationData(**self.model_dump())


class StatusUpdateRequest(CamelRequest):
    """Request body for PATCH /api/admin/registrations/{id}/status."""

    status: RegistrationStatus


class ContactStatusUpdateRequest(CamelRequest):
    """Request body for PATCH /api/admin/contact-messages/{id}/status."""

    status: ContactStatus
    admin_notes: str | None = Field(None, max_length=1000)

    @field_validator("admin_notes")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        return value or None


class SendConfirmationRequest(CamelRequest):
    """Request body for POST /api/register/send-confirmation."""

    email: EmailStr
    registration_id: str

    @field_validator("registration_id")
    @classmethod
    def validate_registration_id(cls, value: str) -> str:
        if not REGISTRATION_ID_PATTERN.match(value):
            raise ValueError("Invalid registration ID format")
        return value


class ContactRequest(CamelRequest):
    """Request body for POST /api/contact."""

    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    subject: str = Field(..., min_length=5, max_length=255)
    message: str = Field(..., min_length=10, max_length=2000)

    def to_domain(self) -> ContactData:
        return ContactData(**self.model_dump())

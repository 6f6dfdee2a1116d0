from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from registration_api.models.domain.registration_domain import (
    CONFIRMED_TO_ATTEND,
    IntakeRecord,
)


class CamelResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RegistrationReceipt(CamelResponse):
    registration_id: str
    participant_id: str
    email: str
    status: Literal["confirmed_to_attend"] = CONFIRMED_TO_ATTEND


class RegistrationCreatedResponse(CamelResponse):
    """Response for POST /api/register (201)."""

    success: bool = True
    message: str = "Registration successful - You are confirmed to attend!"
    data: RegistrationReceipt

    @classmethod
    def from_record(cls, record: IntakeRecord) -> "RegistrationCreatedResponse":
        return cls(
            data=RegistrationReceipt(
                registration_id=record.registration_id,
                participant_id=record.participant_id,
                email=record.email,
            )
        )


class PublicRegistration(CamelResponse):
    """Public-safe view of a registration for GET /api/register/{id}."""

    id: UUID
    first_name: str
    last_name: str
    email: str
    phone: str
    about_business: str
    cac_no: str | None
    kaseda_cert_no: str | None
    business_name: str
    business_type: str
    business_address: str
    years_in_business: str
    expectations: str
    availability: str
    preferred_time: str
    additional_info: str | None
    status: str
    registration_id: str
    participant_id: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: IntakeRecord) -> "PublicRegistration":
        return cls(**record.model_dump())


class RegistrationDetailResponse(CamelResponse):
    success: bool = True
    data: PublicRegistration


class MessageResponse(CamelResponse):
    """Generic `{success, message}` body."""

    success: bool = True
    message: str


class ConfirmationSentData(CamelResponse):
    email: str
    registration_id: str


class ConfirmationSentResponse(CamelResponse):
    success: bool = True
    message: str = "Confirmation email sent successfully"
    data: ConfirmationSentData


class QueueStatusResponse(CamelResponse):
    success: bool = True
    data: dict[str, Any]


class EmailLogResponse(CamelResponse):
    """Response for GET /api/admin/email-logs."""

    success: bool = True
    count: int
    data: list[dict[str, Any]]


class EmailLogByKindResponse(EmailLogResponse):
    """Response for GET /api/admin/email-logs/{kind}."""

    kind: str

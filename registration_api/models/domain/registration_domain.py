from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

BusinessType = Literal[
    "retail",
    "manufacturing",
    "services",
    "technology",
    "healthcare",
    "education",
    "food",
    "agriculture",
    "other",
]
YearsInBusiness = Literal["0-1", "2-3", "4-5", "6-10", "10+"]
Availability = Literal["immediately", "1-month", "2-3-months", "3-6-months", "flexible"]
PreferredTime = Literal["morning", "afternoon", "evening", "weekend", "flexible"]
RegistrationStatus = Literal["pending", "confirmed", "rejected"]
ContactStatus = Literal["unread", "read", "replied", "archived"]

# Reported by the intake endpoint regardless of the stored status
CONFIRMED_TO_ATTEND = "confirmed_to_attend"


class RegistrationData(BaseModel):
    """Applicant-provided fields, already validated and normalized."""

    first_name: str
    last_name: str
    email: str
    phone: str
    about_business: str
    cac_no: str | None = None
    kaseda_cert_no: str | None = None
    business_name: str
    business_type: BusinessType
    business_address: str
    years_in_business: YearsInBusiness
    expectations: str
    availability: Availability
    preferred_time: PreferredTime
    additional_info: str | None = None


class IntakeRecord(RegistrationData):
    """Persisted registration (one applicant's submission)."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    registration_id: str
    participant_id: str
    status: RegistrationStatus = "pending"
    created_at: datetime
    updated_at: datetime

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class ContactData(BaseModel):
    first_name: str
    last_name: str
    email: str
    subject: str
    message: str


class ContactMessage(ContactData):
    """Persisted contact-form submission."""

    id: UUID
    status: ContactStatus = "unread"
    admin_notes: str | None = None
    replied_at: datetime | None = None
    replied_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

from datetime import datetime

from registration_api.models.api.registration_response import CamelResponse
from registration_api.models.domain.registration_domain import IntakeRecord


class MonthlyCount(CamelResponse):
    month: str
    count: int


class ContactCounts(CamelResponse):
    total: int
    unread: int


class RegistrationAnalytics(CamelResponse):
    total_registrations: int
    confirmed_registrations: int
    pending_registrations: int
    rejected_registrations: int
    registrations_by_type: dict[str, int]
    registrations_by_experience: dict[str, int]
    registrations_by_availability: dict[str, int]
    registrations_by_preferred_time: dict[str, int]
    monthly_trends: list[MonthlyCount]
    recent_registrations: int
    contact_messages: ContactCounts


class RegistrationAnalyticsResponse(CamelResponse):
    """Response for GET /api/analytics/registrations."""

    success: bool = True
    data: RegistrationAnalytics


class PeriodSummary(CamelResponse):
    today: int
    this_week: int
    this_month: int


class BusinessTypeCount(CamelResponse):
    type: str
    count: int


class RecentActivity(CamelResponse):
    registration_id: str
    first_name: str
    last_name: str
    business_name: str
    status: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: IntakeRecord) -> "RecentActivity":
        return cls(
            registration_id=record.registration_id,
            first_name=record.first_name,
            last_name=record.last_name,
            business_name=record.business_name,
            status=record.status,
            created_at=record.created_at,
        )


class DashboardSummary(CamelResponse):
    summary: PeriodSummary
    status_distribution: dict[str, int]
    top_business_types: list[BusinessTypeCount]
    recent_activity: list[RecentActivity]


class DashboardResponse(CamelResponse):
    """Response for GET /api/analytics/dashboard."""

    success: bool = True
    data: DashboardSummary

"""
Admin analytics over registrations and contact messages.

All period boundaries are UTC. Weeks start on Sunday.
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import get_args

from registration_api.infrastructure.observability.logging import get_logger
from registration_api.models.api.analytics_response import (
    BusinessTypeCount,
    ContactCounts,
    DashboardSummary,
    MonthlyCount,
    PeriodSummary,
    RecentActivity,
    RegistrationAnalytics,
)
from registration_api.models.domain.registration_domain import YearsInBusiness
from registration_api.repositories.contact_repository import ContactStore
from registration_api.repositories.registration_repository import RegistrationStore

logger = get_logger(__name__)

TREND_MONTHS = 12
RECENT_DAYS = 7
TOP_BUSINESS_TYPES = 5
RECENT_ACTIVITY_LIMIT = 10
EXPERIENCE_ORDER = get_args(YearsInBusiness)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def start_of_day(now: datetime) -> datetime:
    return now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime) -> datetime:
    today = start_of_day(now)
    # weekday(): Monday is 0, so Sunday is 6
    return today - timedelta(days=(today.weekday() + 1) % 7)


def start_of_month(now: datetime, months_back: int = 0) -> datetime:
    today = start_of_day(now)
    month_index = today.year * 12 + (today.month - 1) - months_back
    return today.replace(year=month_index // 12, month=month_index % 12 + 1, day=1)


class AnalyticsService:
    def __init__(
        self,
        registrations: RegistrationStore,
        contacts: ContactStore,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.registrations = registrations
        self.contacts = contacts
        self._clock = clock

    async def registration_overview(self) -> RegistrationAnalytics:
        now = self._clock()
        (
            by_status,
            by_type,
            by_experience,
            by_availability,
            by_preferred_time,
            monthly,
            recent_count,
            contacts_by_status,
        ) = await asyncio.gather(
            self.registrations.count_by("status"),
            self.registrations.count_by("business_type"),
            self.registrations.count_by("years_in_business"),
            self.registrations.count_by("availability"),
            self.registrations.count_by("preferred_time"),
            self.registrations.monthly_counts(start_of_month(now, TREND_MONTHS - 1)),
            self.registrations.count_since(now - timedelta(days=RECENT_DAYS)),
            self.contacts.count_by_status(),
        )

        logger.info("Registration analytics computed", total=sum(by_status.values()))
        return RegistrationAnalytics(
            total_registrations=sum(by_status.values()),
            confirmed_registrations=by_status.get("confirmed", 0),
            pending_registrations=by_status.get("pending", 0),
            rejected_registrations=by_status.get("rejected", 0),
            registrations_by_type=by_type,
            registrations_by_experience={
                bucket: by_experience[bucket] for bucket in EXPERIENCE_ORDER if bucket in by_experience
            },
            registrations_by_availability=by_availability,
            registrations_by_preferred_time=by_preferred_time,
            monthly_trends=[MonthlyCount(month=month, count=count) for month, count in monthly],
            recent_registrations=recent_count,
            contact_messages=ContactCounts(
                total=sum(contacts_by_status.values()),
                unread=contacts_by_status.get("unread", 0),
            ),
        )

    async def dashboard(self) -> DashboardSummary:
        now = self._clock()
        today, this_week, this_month, by_status, by_type, recent = await asyncio.gather(
            self.registrations.count_since(start_of_day(now)),
            self.registrations.count_since(start_of_week(now)),
            self.registrations.count_since(start_of_month(now)),
            self.registrations.count_by("status"),
            self.registrations.count_by("business_type"),
            self.registrations.recent(RECENT_ACTIVITY_LIMIT),
        )

        return DashboardSummary(
            summary=PeriodSummary(today=today, this_week=this_week, this_month=this_month),
            status_distribution=by_status,
            top_business_types=[
                BusinessTypeCount(type=business_type, count=count)
                for business_type, count in list(by_type.items())[:TOP_BUSINESS_TYPES]
            ],
            recent_activity=[RecentActivity.from_record(record) for record in recent],
        )

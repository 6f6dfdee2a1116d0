import asyncio
from collections import Counter
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import jwt
import pytest
from fastapi.testclient import TestClient

from registration_api.config import Settings
from registration_api.errors import DuplicateKeyError, RecordNotFoundError
from registration_api.main import create_app
from registration_api.middleware.rate_limiter import RateLimiter
from registration_api.models.domain.notification_domain import DeliveryResult
from registration_api.models.domain.registration_domain import (
    ContactData,
    ContactMessage,
    IntakeRecord,
    RegistrationData,
)
from registration_api.services.analytics_service import AnalyticsService
from registration_api.services.contact_service import ContactService
from registration_api.services.identifiers import (
    ParticipantIdGenerator,
    next_registration_id,
    registration_sequence,
)
from registration_api.services.notification_service import NotificationService
from registration_api.services.registration_pipeline import RegistrationPipeline

ADMIN_SECRET = "test-admin-secret-with-at-least-32-bytes"
ADMIN_EMAIL = "ops@msmeclinic.test"


class FakeRegistrationStore:
    """In-memory RegistrationStore; same duplicate and sequence rules as the Postgres store."""

    def __init__(self, year: int = 2024):
        self.year = year
        self.records: dict[UUID, IntakeRecord] = {}
        self.participant_ids = ParticipantIdGenerator()
        self.create_error: Exception | None = None
        self.create_delay = 0.0
        self.create_calls = 0
        self.deleted: list[UUID] = []

    def _now(self) -> datetime:
        return datetime(self.year, 6, 1, 9, 0, tzinfo=UTC) + timedelta(seconds=len(self.records))

    def count_email(self, email: str) -> int:
        return sum(1 for r in self.records.values() if r.email.lower() == email.lower())

    async def find_by_email(self, email: str) -> IntakeRecord | None:
        return next((r for r in self.records.values() if r.email.lower() == email.lower()), None)

    async def find_by_id(self, record_id: UUID) -> IntakeRecord | None:
        return self.records.get(record_id)

    async def find_by_registration_id(self, registration_id: str) -> IntakeRecord | None:
        return next(
            (r for r in self.records.values() if r.registration_id == registration_id), None
        )

    async def create(self, data: RegistrationData) -> IntakeRecord:
        self.create_calls += 1
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.create_error is not None:
            raise self.create_error
        if self.count_email(data.email):
            raise DuplicateKeyError("email")

        prefix = f"REG-{self.year}-"
        issued = [r.registration_id for r in self.records.values() if r.registration_id.startswith(prefix)]
        last_sequence = max((registration_sequence(rid) for rid in issued), default=0)
        now = self._now()
        record = IntakeRecord(
            **data.model_dump(),
            id=uuid4(),
            registration_id=next_registration_id(self.year, last_sequence),
            participant_id=self.participant_ids(),
            created_at=now,
            updated_at=now,
        )
        self.records[record.id] = record
        return record

    async def update_status(self, record_id: UUID, status: str) -> IntakeRecord:
        record = self.records.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Registration {record_id} not found")
        updated = record.model_copy(update={"status": status, "updated_at": self._now()})
        self.records[record_id] = updated
        return updated

    async def delete_by_id(self, record_id: UUID) -> bool:
        self.deleted.append(record_id)
        return self.records.pop(record_id, None) is not None

    async def count_by(self, column: str) -> dict[str, int]:
        counts = Counter(getattr(r, column) for r in self.records.values())
        return dict(counts.most_common())

    async def count_since(self, since: datetime) -> int:
        return sum(1 for r in self.records.values() if r.created_at >= since)

    async def monthly_counts(self, since: datetime) -> list[tuple[str, int]]:
        counts = Counter(
            r.created_at.strftime("%Y-%m") for r in self.records.values() if r.created_at >= since
        )
        return sorted(counts.items())

    async def recent(self, limit: int) -> list[IntakeRecord]:
        return sorted(self.records.values(), key=lambda r: r.created_at, reverse=True)[:limit]


class FakeContactStore:
    def __init__(self):
        self.messages: list[ContactMessage] = []

    async def create(self, data: ContactData) -> ContactMessage:
        now = datetime(2024, 6, 1, 9, 0, tzinfo=UTC)
        message = ContactMessage(**data.model_dump(), id=uuid4(), created_at=now, updated_at=now)
        self.messages.append(message)
        return message

    async def update_status(self, contact_id, status, admin_notes=None, replied_by=None) -> ContactMessage:
        index = next((i for i, m in enumerate(self.messages) if m.id == contact_id), None)
        if index is None:
            raise RecordNotFoundError(f"Contact message {contact_id} not found")
        current = self.messages[index]
        update = {"status": status, "admin_notes": admin_notes or current.admin_notes}
        if status == "replied":
            update["replied_at"] = current.replied_at or datetime(2024, 6, 2, 9, 0, tzinfo=UTC)
            update["replied_by"] = replied_by or current.replied_by
        self.messages[index] = current.model_copy(update=update)
        return self.messages[index]

    async def count_by_status(self) -> dict[str, int]:
        return dict(Counter(m.status for m in self.messages))


class RecordingQueue:
    """Stands in for NotificationQueue in route and pipeline tests: records, never sends."""

    def __init__(self):
        self.messages: list = []
        self.direct: list = []
        self.result = DeliveryResult.ok("fake", "msg-1")
        self.enqueue_error: Exception | None = None

    def enqueue(self, message, priority="normal") -> str:
        if self.enqueue_error is not None:
            raise self.enqueue_error
        self.messages.append((message, priority))
        return f"job-{len(self.messages)}"

    async def deliver_now(self, message):
        self.direct.append(message)
        return self.result

    def status(self) -> dict:
        return {
            "queued": len(self.messages),
            "processing": False,
            "scheduled_retries": 0,
            "completed": 0,
            "failed": 0,
            "channels": ["fake"],
            "recent_failures": [],
        }

    @property
    def kinds(self) -> list[str]:
        return [message.kind for message, _ in self.messages]


class ScriptedChannel:
    """
    Channel whose outcomes are scripted per call: True (delivered), False
    (failed), or an exception instance to raise. Defaults to success.
    """

    def __init__(self, name: str = "scripted", outcomes=None, delay: float = 0.0, configured: bool = True):
        self.name = name
        self.configured = configured
        self.delay = delay
        self._outcomes = list(outcomes or [])
        self.sent: list = []

    async def send(self, message):
        self.sent.append(message)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self._outcomes.pop(0) if self._outcomes else True
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return DeliveryResult.ok(self.name, f"{self.name}-{len(self.sent)}")
        return DeliveryResult.failed(self.name, "connection refused")


class FakeRedis:
    """Evaluates the limiter's sliding-window script in Python."""

    def __init__(self):
        self.zsets: dict[str, dict[str, int]] = {}
        self.fail = False

    async def eval(self, script, numkeys, key, limit, window_seconds, current_time, unique_id):
        if self.fail:
            raise ConnectionError("redis unavailable")
        entries = self.zsets.setdefault(key, {})
        for member, score in list(entries.items()):
            if score <= current_time - window_seconds:
                del entries[member]
        if len(entries) >= limit:
            oldest = min(entries.values()) if entries else 0
            return [0, len(entries), oldest]
        entries[unique_id] = current_time
        return [1, len(entries), 0]

    async def ping(self) -> bool:
        return not self.fail


def make_registration_data(**overrides) -> RegistrationData:
    fields = {
        "first_name": "Amina",
        "last_name": "Bello",
        "email": "a@b.com",
        "phone": "+2348012345678",
        "about_business": "We sell groceries and household goods in Katsina.",
        "business_name": "Amina Stores",
        "business_type": "retail",
        "business_address": "12 Ibrahim Taiwo Road, Katsina",
        "years_in_business": "2-3",
        "expectations": "Learn how to access affordable finance.",
        "availability": "immediately",
        "preferred_time": "morning",
    }
    fields.update(overrides)
    return RegistrationData(**fields)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        environment="test",
        ADMIN_JWT_SECRET=ADMIN_SECRET,
        ADMIN_EMAIL=ADMIN_EMAIL,
        RATE_LIMIT_IP_PER_MINUTE=100,
        TIMEOUT_MULTIPLIER=1.0,
    )


@pytest.fixture
def registration_store():
    return FakeRegistrationStore()


@pytest.fixture
def contact_store():
    return FakeContactStore()


@pytest.fixture
def recording_queue():
    return RecordingQueue()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def notification_service(recording_queue, test_settings):
    return NotificationService(recording_queue, test_settings)


@pytest.fixture
def pipeline(registration_store, notification_service):
    return RegistrationPipeline(registration_store, notification_service, request_timeout_seconds=1.0)


@pytest.fixture
def app(
    test_settings,
    pipeline,
    registration_store,
    contact_store,
    notification_service,
    recording_queue,
    fake_redis,
):
    app = create_app(test_settings, with_lifespan=False)
    app.state.rate_limiter = RateLimiter(fake_redis, default_limit=100, window_seconds=60)
    app.state.notification_queue = recording_queue
    app.state.registration_pipeline = pipeline
    app.state.contact_service = ContactService(contact_store, notification_service)
    app.state.analytics_service = AnalyticsService(registration_store, contact_store)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def registration_payload():
    return {
        "firstName": "Amina",
        "lastName": "Bello",
        "email": "a@b.com",
        "phone": "+2348012345678",
        "aboutBusiness": "We sell groceries and household goods in Katsina.",
        "businessName": "Amina Stores",
        "businessType": "retail",
        "businessAddress": "12 Ibrahim Taiwo Road, Katsina",
        "yearsInBusiness": "2-3",
        "expectations": "Learn how to access affordable finance.",
        "availability": "immediately",
        "preferredTime": "morning",
    }


def make_token(role: str = "admin", expires_in: timedelta = timedelta(hours=1), secret: str = ADMIN_SECRET) -> str:
    return jwt.encode(
        {"sub": "admin-1", "role": role, "exp": datetime.now(UTC) + expires_in},
        secret,
        algorithm="HS256",
    )


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token()}"}

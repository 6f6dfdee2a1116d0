"""
Intake record store.

The unique index on lower(email) is the authoritative uniqueness guarantee;
the pipeline's pre-check only avoids a wasted write. Identifier assignment
happens here, inside the insert transaction.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from registration_api.db.helpers import execute_query, fetch_all, fetch_one, fetch_val, with_db_retry
from registration_api.db.pool import DatabasePoolManager
from registration_api.errors import RecordNotFoundError
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.models.domain.registration_domain import (
    IntakeRecord,
    RegistrationData,
    RegistrationStatus,
)
from registration_api.services.identifiers import ParticipantIdGenerator, next_registration_id

logger = get_logger(__name__)

# First key of pg_advisory_xact_lock(int, int); the second key is the year
REGISTRATION_SEQUENCE_LOCK = 7301

# Columns the analytics endpoints may group by
GROUPABLE_COLUMNS = frozenset(
    {"status", "business_type", "years_in_business", "availability", "preferred_time"}
)

_INSERT_COLUMNS = (
    "registration_id",
    "participant_id",
    "first_name",
    "last_name",
    "email",
    "phone",
    "about_business",
    "cac_no",
    "kaseda_cert_no",
    "business_name",
    "business_type",
    "business_address",
    "years_in_business",
    "expectations",
    "availability",
    "preferred_time",
    "additional_info",
    "created_at",
    "updated_at",
)


class RegistrationStore(Protocol):
    async def find_by_email(self, email: str) -> IntakeRecord | None: ...

    async def find_by_id(self, record_id: UUID) -> IntakeRecord | None: ...

    async def find_by_registration_id(self, registration_id: str) -> IntakeRecord | None: ...

    async def create(self, data: RegistrationData) -> IntakeRecord: ...

    async def update_status(self, record_id: UUID, status: RegistrationStatus) -> IntakeRecord: ...

    async def delete_by_id(self, record_id: UUID) -> bool: ...

    async def count_by(self, column: str) -> dict[str, int]: ...

    async def count_since(self, since: datetime) -> int: ...

    async def monthly_counts(self, since: datetime) -> list[tuple[str, int]]: ...

    async def recent(self, limit: int) -> list[IntakeRecord]: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PostgresRegistrationStore:
    """RegistrationStore backed by the `registrations` table."""

    def __init__(
        self,
        db_pool: DatabasePoolManager,
        participant_ids: Callable[[], str] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._db = db_pool
        self._participant_ids = participant_ids or ParticipantIdGenerator()
        self._clock = clock

    @with_db_retry()
    async def find_by_email(self, email: str) -> IntakeRecord | None:
        async with self._db.connection() as conn:
            row = await fetch_one(
                conn,
                "SELECT * FROM registrations WHERE lower(email) = lower(%s)",
                (email,),
            )
        return IntakeRecord.model_validate(row) if row else None

    @with_db_retry()
    async def find_by_id(self, record_id: UUID) -> IntakeRecord | None:
        async with self._db.connection() as conn:
            row = await fetch_one(conn, "SELECT * FROM registrations WHERE id = %s", (record_id,))
        return IntakeRecord.model_validate(row) if row else None

    @with_db_retry()
    async def find_by_registration_id(self, registration_id: str) -> IntakeRecord | None:
        async with self._db.connection() as conn:
            row = await fetch_one(
                conn,
                "SELECT * FROM registrations WHERE registration_id = %s",
                (registration_id,),
            )
        return IntakeRecord.model_validate(row) if row else None

    async def create(self, data: RegistrationData) -> IntakeRecord:
        """
        Insert a registration and assign its identifiers.

        The yearly sequence is the highest suffix issued this year + 1, so a
        gap left by a compensating delete is skipped rather than reissued.
        A transaction-scoped advisory lock per year serializes concurrent
        creates so two submissions can't compute the same sequence.

        Raises:
            DuplicateKeyError: email (or a generated identifier) already exists
            StoreUnavailableError: connectivity / timeout failure
        """
        now = self._clock()

        async with self._db.transaction() as conn:
            await execute_query(
                conn,
                "SELECT pg_advisory_xact_lock(%s, %s)",
                (REGISTRATION_SEQUENCE_LOCK, now.year),
            )
            last_sequence = await fetch_val(
                conn,
                """
                SELECT COALESCE(MAX(split_part(registration_id, '-', 3)::int), 0) AS last_sequence
                FROM registrations
                WHERE registration_id LIKE %s
                """,
                (f"REG-{now.year}-%",),
            )

            values = {
                **data.model_dump(),
                "registration_id": next_registration_id(now.year, int(last_sequence or 0)),
                "participant_id": self._participant_ids(),
                "created_at": now,
                "updated_at": now,
            }
            query = f"""
                INSERT INTO registrations ({", ".join(_INSERT_COLUMNS)})
                VALUES ({", ".join(["%s"] * len(_INSERT_COLUMNS))})
                RETURNING *
            """
            row = await fetch_one(conn, query, tuple(values[col] for col in _INSERT_COLUMNS))

        record = IntakeRecord.model_validate(row)
        logger.info(
            "Registration persisted",
            record_id=str(record.id),
            registration_id=record.registration_id,
            participant_id=record.participant_id,
        )
        return record

    @with_db_retry()
    async def update_status(self, record_id: UUID, status: RegistrationStatus) -> IntakeRecord:
        async with self._db.connection() as conn:
            row = await fetch_one(
                conn,
                """
                UPDATE registrations
                SET status = %s, updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (status, record_id),
            )

        if not row:
            raise RecordNotFoundError(f"Registration {record_id} not found", operation="update_status")

        return IntakeRecord.model_validate(row)

    async def delete_by_id(self, record_id: UUID) -> bool:
        async with self._db.connection() as conn:
            deleted = await execute_query(conn, "DELETE FROM registrations WHERE id = %s", (record_id,))

        logger.warning("Registration deleted", record_id=str(record_id), deleted=deleted)
        return deleted > 0

    @with_db_retry()
    async def count_by(self, column: str) -> dict[str, int]:
        """Registration counts per distinct value of `column`, largest first."""
        if column not in GROUPABLE_COLUMNS:
            raise ValueError(f"Cannot group registrations by {column!r}")

        async with self._db.connection() as conn:
            rows = await fetch_all(
                conn,
                f"""
                SELECT {column} AS value, COUNT(*) AS count
                FROM registrations
                GROUP BY {column}
                ORDER BY count DESC, value
                """,
            )
        return {row["value"]: row["count"] for row in rows}

    @with_db_retry()
    async def count_since(self, since: datetime) -> int:
        async with self._db.connection() as conn:
            count = await fetch_val(
                conn, "SELECT COUNT(*) AS count FROM registrations WHERE created_at >= %s", (since,)
            )
        return int(count or 0)

    @with_db_retry()
    async def monthly_counts(self, since: datetime) -> list[tuple[str, int]]:
        """(YYYY-MM, count) per UTC calendar month from `since`, oldest first."""
        async with self._db.connection() as conn:
            rows = await fetch_all(
                conn,
                """
                SELECT to_char(date_trunc('month', created_at AT TIME ZONE 'UTC'), 'YYYY-MM') AS month,
                       COUNT(*) AS count
                FROM registrations
                WHERE created_at >= %s
                GROUP BY month
                ORDER BY month
                """,
                (since,),
            )
        return [(row["month"], row["count"]) for row in rows]

    @with_db_retry()
    async def recent(self, limit: int) -> list[IntakeRecord]:
        async with self._db.connection() as conn:
            rows = await fetch_all(
                conn, "SELECT * FROM registrations ORDER BY created_at DESC LIMIT %s", (limit,)
            )
        return [IntakeRecord.model_validate(row) for row in rows]

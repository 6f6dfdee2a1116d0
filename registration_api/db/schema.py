"""
Schema bootstrap, applied once at startup.

Every statement is idempotent so restarts and multiple replicas are safe.
"""

from registration_api.db.pool import DatabasePoolManager
from registration_api.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SCHEMA_STATEMENTS = [
    "CREATE EXTENSION IF NOT EXISTS pgcrypto",
    """
    CREATE TABLE IF NOT EXISTS registrations (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        registration_id TEXT NOT NULL,
        participant_id TEXT NOT NULL,
        first_name VARCHAR(100) NOT NULL,
        last_name VARCHAR(100) NOT NULL,
        email VARCHAR(320) NOT NULL,
        phone VARCHAR(20) NOT NULL,
        about_business VARCHAR(1000) NOT NULL,
        cac_no VARCHAR(50),
        kaseda_cert_no VARCHAR(50),
        business_name VARCHAR(255) NOT NULL,
        business_type TEXT NOT NULL CHECK (business_type IN (
            'retail', 'manufacturing', 'services', 'technology', 'healthcare',
            'education', 'food', 'agriculture', 'other'
        )),
        business_address VARCHAR(500) NOT NULL,
        years_in_business TEXT NOT NULL CHECK (
            years_in_business IN ('0-1', '2-3', '4-5', '6-10', '10+')
        ),
        expectations VARCHAR(1000) NOT NULL,
        availability TEXT NOT NULL CHECK (availability IN (
            'immediately', '1-month', '2-3-months', '3-6-months', 'flexible'
        )),
        preferred_time TEXT NOT NULL CHECK (preferred_time IN (
            'morning', 'afternoon', 'evening', 'weekend', 'flexible'
        )),
        additional_info VARCHAR(1000),
        status TEXT NOT NULL DEFAULT 'pending' CHECK (
            status IN ('pending', 'confirmed', 'rejected')
        ),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS registrations_email_lower_key ON registrations (lower(email))",
    "CREATE UNIQUE INDEX IF NOT EXISTS registrations_registration_id_key ON registrations (registration_id)",
    "CREATE UNIQUE INDEX IF NOT EXISTS registrations_participant_id_key ON registrations (participant_id)",
    "CREATE INDEX IF NOT EXISTS registrations_status_idx ON registrations (status)",
    "CREATE INDEX IF NOT EXISTS registrations_business_type_idx ON registrations (business_type)",
    "CREATE INDEX IF NOT EXISTS registrations_created_at_idx ON registrations (created_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS contact_messages (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        first_name VARCHAR(100) NOT NULL,
        last_name VARCHAR(100) NOT NULL,
        email VARCHAR(320) NOT NULL,
        subject VARCHAR(255) NOT NULL,
        message VARCHAR(2000) NOT NULL,
        status TEXT NOT NULL DEFAULT 'unread' CHECK (
            status IN ('unread', 'read', 'replied', 'archived')
        ),
        admin_notes VARCHAR(1000),
        replied_at TIMESTAMPTZ,
        replied_by TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS contact_messages_created_at_idx ON contact_messages (created_at DESC)",
    "CREATE INDEX IF NOT EXISTS contact_messages_email_idx ON contact_messages (email)",
    # Tables created before admin triage existed
    "ALTER TABLE contact_messages ADD COLUMN IF NOT EXISTS admin_notes VARCHAR(1000)",
    "ALTER TABLE contact_messages ADD COLUMN IF NOT EXISTS replied_at TIMESTAMPTZ",
    "ALTER TABLE contact_messages ADD COLUMN IF NOT EXISTS replied_by TEXT",
    "CREATE INDEX IF NOT EXISTS contact_messages_status_idx ON contact_messages (status)",
]


async def ensure_schema(db_pool: DatabasePoolManager) -> None:
    """Create tables and indexes if they don't exist yet."""
    async with db_pool.transaction() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(statement)

    logger.info("Database schema ensured", statements=len(SCHEMA_STATEMENTS))

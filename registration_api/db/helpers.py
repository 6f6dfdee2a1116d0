"""
Database helper functions for common patterns.
Reduces boilerplate in the repositories and maps psycopg failures onto
the store error taxonomy.
"""

import asyncio
import functools
from typing import Any

import psycopg
from psycopg import errors as pg_errors

from registration_api.errors import DatabaseError, DuplicateKeyError, StoreUnavailableError
from registration_api.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Unique constraint name -> public field name
CONSTRAINT_FIELDS = {
    "registrations_email_lower_key": "email",
    "registrations_registration_id_key": "registrationId",
    "registrations_participant_id_key": "participantId",
}


def translate_error(error: psycopg.Error, operation: str) -> DatabaseError:
    """Map a psycopg error to DuplicateKeyError / StoreUnavailableError / DatabaseError."""
    if isinstance(error, pg_errors.UniqueViolation):
        constraint = getattr(error.diag, "constraint_name", None) or ""
        field = CONSTRAINT_FIELDS.get(constraint, constraint or "value")
        return DuplicateKeyError(field, operation=operation)

    if isinstance(error, psycopg.OperationalError):
        return StoreUnavailableError(f"Database unavailable: {error}", operation=operation)

    return DatabaseError(f"Query failed: {error}", operation=operation, recoverable=False)


async def fetch_one(
    connection: psycopg.AsyncConnection, query: str, params: tuple | dict = ()
) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        connection: Pooled connection (dict_row factory)
        query: SQL query with %s placeholders
        params: Query parameters

    Returns:
        Dict with row data or None if no results
    """
    try:
        async with connection.cursor() as cur:
            await cur.execute(query, params)
            row = await cur.fetchone()
            return row if row else None
    except psycopg.Error as e:
        logger.error("Database fetch_one error", query=query[:100], error=str(e))
        raise translate_error(e, "fetch_one") from e


async def fetch_all(
    connection: psycopg.AsyncConnection, query: str, params: tuple | dict = ()
) -> list[dict[str, Any]]:
    """
    Execute query and return all rows as list of dicts.

    Args:
        connection: Pooled connection (dict_row factory)
        query: SQL query with %s placeholders
        params: Query parameters

    Returns:
        List of dicts with row data
    """
    try:
        async with connection.cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchall()
    except psycopg.Error as e:
        logger.error("Database fetch_all error", query=query[:100], error=str(e))
        raise translate_error(e, "fetch_all") from e


async def fetch_val(connection: psycopg.AsyncConnection, query: str, params: tuple | dict = ()) -> Any:
    """Execute query and return the first column of the first row."""
    try:
        async with connection.cursor() as cur:
            await cur.execute(query, params)
            row = await cur.fetchone()
            return list(row.values())[0] if row else None
    except psycopg.Error as e:
        logger.error("Database fetch_val error", query=query[:100], error=str(e))
        raise translate_error(e, "fetch_val") from e


async def execute_query(connection: psycopg.AsyncConnection, query: str, params: tuple | dict = ()) -> int:
    """
    Execute query and return number of affected rows.
    """
    try:
        cursor = await connection.execute(query, params)
        return cursor.rowcount
    except psycopg.Error as e:
        logger.error("Database execute error", query=query[:100], error=str(e))
        raise translate_error(e, "execute") from e


def with_db_retry(max_retries: int = 2, base_delay: float = 0.1):
    """
    Decorator to retry store operations on temporary failures.

    Only StoreUnavailableError is retried (exponential backoff); duplicate
    keys and other permanent errors propagate immediately.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries (exponential backoff)
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except StoreUnavailableError as e:
                    if attempt >= max_retries:
                        logger.error(
                            "Store operation failed after all retries",
                            operation=func.__name__,
                            attempts=max_retries + 1,
                            error=str(e),
                        )
                        raise

                    delay = base_delay * (2**attempt)
                    logger.warning(
                        "Store operation failed, retrying",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator

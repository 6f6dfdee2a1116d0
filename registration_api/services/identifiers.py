"""
Human-facing identifiers for registrations.

registrationId: REG-<year>-<sequence>, sequence zero-padded to 3 digits and
scoped to the calendar year. participantId: PART-<epoch-millis>-<token>,
token is 5 characters from [A-Z0-9].
"""

import secrets
import string
import time
from collections.abc import Callable

PARTICIPANT_TOKEN_ALPHABET = string.ascii_uppercase + string.digits
PARTICIPANT_TOKEN_LENGTH = 5


def format_registration_id(year: int, sequence: int) -> str:
    if sequence < 1:
        raise ValueError(f"Registration sequence must be positive, got {sequence}")
    return f"REG-{year}-{sequence:03d}"


def next_registration_id(year: int, last_sequence: int) -> str:
    """Sequence follows the highest one already issued this year, so gaps are never reused."""
    return format_registration_id(year, last_sequence + 1)


def registration_sequence(registration_id: str) -> int:
    """Numeric suffix of a REG-<year>-<sequence> id."""
    return int(registration_id.rsplit("-", 1)[1])


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class ParticipantIdGenerator:
    """
    Generates participant IDs whose embedded timestamp never goes backwards
    within this process, even if the wall clock does.
    """

    def __init__(self, clock: Callable[[], int] = _epoch_millis):
        self._clock = clock
        self._last_millis = 0

    def __call__(self) -> str:
        millis = max(self._clock(), self._last_millis)
        self._last_millis = millis
        token = "".join(
            secrets.choice(PARTICIPANT_TOKEN_ALPHABET) for _ in range(PARTICIPANT_TOKEN_LENGTH)
        )
        return f"PART-{millis}-{token}"


def participant_timestamp(participant_id: str) -> int:
    """Extract the epoch-millis component of a participant ID."""
    try:
        prefix, millis, _token = participant_id.split("-")
    except ValueError as e:
        raise ValueError(f"Malformed participant ID: {participant_id}") from e
    if prefix != "PART":
        raise ValueError(f"Malformed participant ID: {participant_id}")
    return int(millis)

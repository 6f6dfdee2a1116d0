import re

import pytest

from registration_api.services.identifiers import (
    ParticipantIdGenerator,
    format_registration_id,
    next_registration_id,
    participant_timestamp,
    registration_sequence,
)

PARTICIPANT_RE = re.compile(r"^PART-\d+-[A-Z0-9]{5}$")


def test_registration_id_is_zero_padded():
    assert format_registration_id(2024, 3) == "REG-2024-003"
    assert format_registration_id(2024, 42) == "REG-2024-042"


def test_registration_id_grows_past_three_digits():
    assert format_registration_id(2025, 1000) == "REG-2025-1000"


def test_next_registration_id_follows_last_issued():
    assert next_registration_id(2024, 0) == "REG-2024-001"
    assert next_registration_id(2024, 2) == "REG-2024-003"


def test_registration_sequence_reads_suffix():
    assert registration_sequence("REG-2024-007") == 7
    assert registration_sequence("REG-2025-1000") == 1000


def test_registration_sequence_must_be_positive():
    with pytest.raises(ValueError):
        format_registration_id(2024, 0)


def test_participant_id_format():
    generate = ParticipantIdGenerator(clock=lambda: 1717232400000)
    participant_id = generate()

    assert PARTICIPANT_RE.match(participant_id)
    assert participant_timestamp(participant_id) == 1717232400000


def test_participant_timestamp_never_goes_backwards():
    ticks = iter([1000, 1005, 990, 1002, 1010])
    generate = ParticipantIdGenerator(clock=lambda: next(ticks))

    stamps = [participant_timestamp(generate()) for _ in range(5)]

    assert stamps == [1000, 1005, 1005, 1005, 1010]


def test_participant_ids_are_unique_within_same_millisecond():
    generate = ParticipantIdGenerator(clock=lambda: 1717232400000)

    ids = {generate() for _ in range(100)}

    assert len(ids) == 100


@pytest.mark.parametrize("value", ["REG-2024-001", "PART-abc", "PART-12-ABCDE-X", "XPART-1-ABCDE"])
def test_participant_timestamp_rejects_malformed_ids(value):
    with pytest.raises(ValueError):
        participant_timestamp(value)

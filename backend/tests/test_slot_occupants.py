"""Tests for slot occupancy and the legacy reflection encoding."""
from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from dayplanner.core.errors import EntryNotFoundError, OccupantConflictError
from dayplanner.services.slot_occupants import (
    KIND_REGULAR,
    Occupant,
    SlotOccupancy,
    add_occupant,
    decode_reflection,
    definition_matches_slot,
    encode_reflection,
    occupancy_from_entry,
    recurring_skip_key,
    remove_occupant,
)

BLOCK = "PHYSICAL MENTAL"


def _definition(definition_id: str, name: str, block: str = BLOCK, quarter=None, days=("monday",)):
    return SimpleNamespace(id=definition_id, task_name=name, time_block=block, quarter=quarter, days_of_week=list(days))


def test_two_recurring_occupants_encode_as_multiple() -> None:
    occupancy = add_occupant(SlotOccupancy(), Occupant("Meditate"), time_block=BLOCK, quartile=1)
    occupancy = add_occupant(occupancy, Occupant("Stretch"), time_block=BLOCK, quartile=1)

    assert encode_reflection(occupancy) == "MULTIPLE_TASKS:Meditate|Stretch"


def test_add_then_remove_returns_to_empty() -> None:
    occupancy = add_occupant(SlotOccupancy(), Occupant("Meditate"), time_block=BLOCK, quartile=1)
    assert encode_reflection(occupancy) == "RECURRING_TASK:Meditate"

    result = remove_occupant(occupancy, f"recurring-{BLOCK}-1", time_block=BLOCK, quartile=1)

    assert result.removed.name == "Meditate"
    assert result.now_empty is True
    assert encode_reflection(result.occupancy) is None


def test_removing_one_of_two_collapses_to_single() -> None:
    occupancy = decode_reflection("RECURRING_TASK:A")
    occupancy = add_occupant(occupancy, Occupant("B"), time_block=BLOCK, quartile=2)
    assert encode_reflection(occupancy) == "MULTIPLE_TASKS:A|B"

    result = remove_occupant(occupancy, f"multiple-{BLOCK}-2-1", time_block=BLOCK, quartile=2)

    assert encode_reflection(result.occupancy) == "RECURRING_TASK:A"
    assert result.now_empty is False


def test_second_regular_task_conflicts_without_mutation() -> None:
    occupancy = SlotOccupancy(regular_task_id="t1")

    with pytest.raises(OccupantConflictError) as excinfo:
        add_occupant(occupancy, Occupant("Other", kind=KIND_REGULAR, task_id="t2"), time_block=BLOCK, quartile=1)

    assert excinfo.value.existing_task_id == "t1"
    assert occupancy.regular_task_id == "t1"


def test_regular_task_can_share_slot_with_recurring() -> None:
    occupancy = decode_reflection("RECURRING_TASK:A")
    occupancy = add_occupant(occupancy, Occupant("Report", kind=KIND_REGULAR, task_id="t1"))

    assert occupancy.regular_task_id == "t1"
    assert encode_reflection(occupancy) == "RECURRING_TASK:A"

    result = remove_occupant(occupancy, "t1")
    assert result.removed.kind == KIND_REGULAR
    assert result.occupancy.regular_task_id is None


def test_placeholder_is_replaced_by_new_occupant() -> None:
    occupancy = decode_reflection("PLACEHOLDER:Open slot")
    assert occupancy.is_placeholder
    assert encode_reflection(occupancy) == "PLACEHOLDER:Open slot"

    occupancy = add_occupant(occupancy, Occupant("Walk"))

    assert occupancy.placeholder is None
    assert encode_reflection(occupancy) == "RECURRING_TASK:Walk"


def test_plain_reflection_text_is_not_decoded() -> None:
    assert decode_reflection("Felt productive today") is None
    assert decode_reflection(None) is None


def test_remove_unknown_occupant_raises() -> None:
    occupancy = decode_reflection("MULTIPLE_TASKS:A|B")

    with pytest.raises(EntryNotFoundError):
        remove_occupant(occupancy, "nope", time_block=BLOCK, quartile=1)


def test_remove_by_name_or_definition_id() -> None:
    occupancy = SlotOccupancy(occupants=(Occupant("A", recurring_task_id="r1"), Occupant("B")))

    assert remove_occupant(occupancy, "r1").removed.name == "A"
    assert remove_occupant(occupancy, "b").removed.name == "B"


def test_occupancy_from_entry_prefers_rows_over_reflection() -> None:
    entry = SimpleNamespace(
        planned_task_id="t1",
        actual_task_id=None,
        occupants=[SimpleNamespace(kind="recurring", name="Stretch", recurring_task_id=None)],
        reflection="RECURRING_TASK:Old",
    )

    occupancy = occupancy_from_entry(entry)

    assert occupancy.regular_task_id == "t1"
    assert [occupant.name for occupant in occupancy.occupants] == ["Stretch"]


def test_occupancy_from_entry_reads_legacy_reflection() -> None:
    entry = SimpleNamespace(planned_task_id=None, actual_task_id=None, occupants=[], reflection="MULTIPLE_TASKS:A|B")

    assert [occupant.name for occupant in occupancy_from_entry(entry).occupants] == ["A", "B"]


def test_skip_key_uses_definition_or_name() -> None:
    definitions = [_definition("r1", "Stretch", quarter=2)]

    assert recurring_skip_key(Occupant("stretch"), definitions, time_block=BLOCK, quartile=2) == "r1"
    assert recurring_skip_key(Occupant("stretch"), definitions, time_block=BLOCK, quartile=3) == "name:stretch"
    assert recurring_skip_key(Occupant("X", recurring_task_id="r9"), definitions, time_block=BLOCK, quartile=1) == "r9"


def test_definition_matches_slot_checks_block_quarter_and_day() -> None:
    definition = _definition("r1", "Stretch", block="PHYSICAL MENTAL (7-9AM)", quarter=2, days=("Mon", "wednesday"))
    monday = date(2024, 6, 3)
    tuesday = date(2024, 6, 4)

    assert definition_matches_slot(definition, monday, BLOCK, 2)
    assert not definition_matches_slot(definition, monday, BLOCK, 1)
    assert not definition_matches_slot(definition, tuesday, BLOCK, 2)
    assert not definition_matches_slot(definition, monday, "CHIEF PROJECT", 2)
    assert definition_matches_slot(_definition("r2", "Walk", quarter=None), monday, BLOCK, 4)

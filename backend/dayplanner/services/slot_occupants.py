"""Occupancy of a single schedule slot.

A slot holds at most one regular task (kept on the entry's planned/actual task
columns) plus any number of name-only recurring occupants, stored as
``SlotOccupant`` rows. The ``RECURRING_TASK:`` / ``MULTIPLE_TASKS:`` /
``PLACEHOLDER:`` reflection strings are still understood for rows and clients
that predate the occupant table.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Iterable, Optional, Tuple

from dayplanner.core.errors import EntryNotFoundError, OccupantConflictError
from dayplanner.services.time_grid import resolve_block_label, weekday_token

KIND_REGULAR = "regular"
KIND_RECURRING = "recurring"
KIND_PLACEHOLDER = "placeholder"

RECURRING_PREFIX = "RECURRING_TASK:"
MULTIPLE_PREFIX = "MULTIPLE_TASKS:"
PLACEHOLDER_PREFIX = "PLACEHOLDER:"
NAME_SEPARATOR = "|"
SKIP_NAME_PREFIX = "name:"


@dataclass(frozen=True)
class Occupant:
    name: str
    kind: str = KIND_RECURRING
    task_id: Optional[str] = None
    recurring_task_id: Optional[str] = None


@dataclass(frozen=True)
class SlotOccupancy:
    regular_task_id: Optional[str] = None
    occupants: Tuple[Occupant, ...] = ()
    placeholder: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.regular_task_id is None and not self.occupants

    @property
    def is_placeholder(self) -> bool:
        return self.placeholder is not None and self.is_empty


@dataclass(frozen=True)
class RemovalResult:
    occupancy: SlotOccupancy
    removed: Occupant
    now_empty: bool


def add_occupant(
    occupancy: SlotOccupancy,
    occupant: Occupant,
    *,
    time_block: str = "",
    quartile: int = 0,
) -> SlotOccupancy:
    """Return the occupancy with ``occupant`` added.

    A second regular task raises ``OccupantConflictError`` and leaves the input
    untouched. Recurring names always append, duplicates included. Adding
    anything to a placeholder slot replaces the placeholder.
    """
    if occupant.kind == KIND_REGULAR:
        if not occupant.task_id:
            raise ValueError("Regular occupants need a task id")
        if occupancy.regular_task_id is not None:
            raise OccupantConflictError(time_block, quartile, occupancy.regular_task_id)
        return replace(occupancy, regular_task_id=str(occupant.task_id), placeholder=None)
    if occupant.kind != KIND_RECURRING:
        raise ValueError(f"Unsupported occupant kind: {occupant.kind}")
    name = occupant.name.strip()
    if not name:
        raise ValueError("Recurring occupants need a name")
    return replace(
        occupancy,
        occupants=occupancy.occupants + (replace(occupant, name=name),),
        placeholder=None,
    )


def remove_occupant(
    occupancy: SlotOccupancy,
    candidate_id: Any,
    *,
    time_block: str = "",
    quartile: int = 0,
) -> RemovalResult:
    """Remove the occupant addressed by ``candidate_id``.

    ``candidate_id`` may be the regular task id, a derived
    ``recurring-<block>-<q>`` / ``multiple-<block>-<q>-<i>`` id, a recurring
    definition id, or a bare position in the recurring list.
    """
    key = str(candidate_id).strip()
    if occupancy.regular_task_id is not None and key == occupancy.regular_task_id:
        removed = Occupant(name="", kind=KIND_REGULAR, task_id=occupancy.regular_task_id)
        remaining = replace(occupancy, regular_task_id=None)
        return RemovalResult(remaining, removed, remaining.is_empty)

    position = _locate_recurring(occupancy.occupants, key, time_block, quartile)
    if position is None:
        raise EntryNotFoundError(f"No occupant {key!r} in {time_block} Q{quartile}")
    removed = occupancy.occupants[position]
    remaining = replace(
        occupancy,
        occupants=occupancy.occupants[:position] + occupancy.occupants[position + 1:],
    )
    return RemovalResult(remaining, removed, remaining.is_empty)


def occupant_candidate_id(time_block: str, quartile: int, position: int, total: int) -> str:
    """Derived candidate id of the recurring occupant at ``position`` (0-based)."""
    if total <= 1:
        return f"recurring-{time_block}-{quartile}"
    return f"multiple-{time_block}-{quartile}-{position}"


def encode_reflection(occupancy: SlotOccupancy) -> Optional[str]:
    """Render the recurring occupants in the legacy reflection format."""
    names = [occupant.name for occupant in occupancy.occupants]
    if not names:
        if occupancy.placeholder is not None and occupancy.regular_task_id is None:
            return f"{PLACEHOLDER_PREFIX}{occupancy.placeholder}"
        return None
    if len(names) == 1:
        return f"{RECURRING_PREFIX}{names[0]}"
    return MULTIPLE_PREFIX + NAME_SEPARATOR.join(names)


def decode_reflection(reflection: Optional[str]) -> Optional[SlotOccupancy]:
    """Parse a legacy sentinel string; None when ``reflection`` is plain user text."""
    if not reflection:
        return None
    text = reflection.strip()
    if text.startswith(PLACEHOLDER_PREFIX):
        return SlotOccupancy(placeholder=text[len(PLACEHOLDER_PREFIX):].strip())
    if text.startswith(RECURRING_PREFIX):
        names = [text[len(RECURRING_PREFIX):]]
    elif text.startswith(MULTIPLE_PREFIX):
        names = text[len(MULTIPLE_PREFIX):].split(NAME_SEPARATOR)
    else:
        return None
    occupants = tuple(Occupant(name=name.strip()) for name in names if name.strip())
    return SlotOccupancy(occupants=occupants)


def is_sentinel_reflection(reflection: Optional[str]) -> bool:
    return decode_reflection(reflection) is not None


def occupancy_from_entry(entry: Any) -> SlotOccupancy:
    """Build the occupancy value of a persisted ``DailyScheduleEntry``."""
    if entry is None:
        return SlotOccupancy()
    regular = entry.actual_task_id or entry.planned_task_id
    occupants = []
    placeholder = None
    for row in getattr(entry, "occupants", None) or ():
        if row.kind == KIND_PLACEHOLDER:
            placeholder = row.name
            continue
        occupants.append(
            Occupant(
                name=row.name,
                recurring_task_id=str(row.recurring_task_id) if row.recurring_task_id else None,
            )
        )
    occupancy = SlotOccupancy(
        regular_task_id=str(regular) if regular else None,
        occupants=tuple(occupants),
        placeholder=placeholder,
    )
    if not occupancy.occupants and occupancy.placeholder is None:
        legacy = decode_reflection(entry.reflection)
        if legacy is not None:
            occupancy = replace(occupancy, occupants=legacy.occupants, placeholder=legacy.placeholder)
    return occupancy


def recurring_skip_key(
    occupant: Occupant,
    definitions: Iterable[Any],
    *,
    time_block: str,
    quartile: int,
) -> str:
    """Skip registry key for a recurring occupant.

    The definition id when the occupant carries one or a definition with the same
    name matches this block and quarter; ``name:<name>`` otherwise.
    """
    if occupant.recurring_task_id:
        return str(occupant.recurring_task_id)
    wanted = occupant.name.strip().lower()
    for definition in definitions:
        if definition.task_name.strip().lower() != wanted:
            continue
        if definition_matches_slot(definition, None, time_block, quartile):
            return str(definition.id)
    return f"{SKIP_NAME_PREFIX}{occupant.name.strip()}"


def definition_matches_slot(definition: Any, day: Optional[date], time_block: str, quartile: int) -> bool:
    """True when a recurring definition occurs in this slot (and on ``day``, when given)."""
    if resolve_block_label(definition.time_block) != time_block:
        return False
    if definition.quarter is not None and definition.quarter != quartile:
        return False
    if day is None:
        return True
    today = weekday_token(day)
    for token in definition.days_of_week or ():
        token = str(token).strip().lower()
        if token == today or (len(token) >= 3 and today.startswith(token)):
            return True
    return False


def _locate_recurring(
    occupants: Tuple[Occupant, ...],
    key: str,
    time_block: str,
    quartile: int,
) -> Optional[int]:
    total = len(occupants)
    for position, occupant in enumerate(occupants):
        if key == occupant_candidate_id(time_block, quartile, position, total):
            return position
    for position, occupant in enumerate(occupants):
        if occupant.recurring_task_id and key == occupant.recurring_task_id:
            return position
    if key.isdigit() and int(key) < total:
        return int(key)
    lowered = key.lower()
    for position, occupant in enumerate(occupants):
        if occupant.name.lower() == lowered:
            return position
    return None

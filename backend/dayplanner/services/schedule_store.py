"""Persistence of daily schedule entries and their occupants.

Functions here flush but never commit; the daily planner owns the transaction
so a regenerate is one delete + insert unit.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from dayplanner.core.errors import EntryNotFoundError, SlotConflictError
from dayplanner.db.models.daily_schedule import ENTRY_STATUSES, DailyScheduleEntry, SlotOccupant
from dayplanner.services.schedule_normalizer import ScheduleEntryDraft
from dayplanner.services.slot_occupants import (
    KIND_PLACEHOLDER,
    KIND_RECURRING,
    SlotOccupancy,
    decode_reflection,
    is_sentinel_reflection,
)
from dayplanner.services.time_grid import BLOCK_ORDER, QUARTILES_PER_BLOCK, is_canonical_block

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "time_block",
    "quartile",
    "planned_task_id",
    "actual_task_id",
    "status",
    "energy_impact",
    "reflection",
    "start_time",
    "end_time",
)
NON_NULLABLE_FIELDS = frozenset({"time_block", "quartile", "status", "energy_impact"})


def get_entries(db: Session, user_id: UUID, day: date) -> List[DailyScheduleEntry]:
    """Entries for one user and date in grid order."""
    entries = (
        db.query(DailyScheduleEntry)
        .filter(DailyScheduleEntry.user_id == user_id, DailyScheduleEntry.date == day)
        .all()
    )
    return sorted(entries, key=lambda entry: (BLOCK_ORDER.get(entry.time_block, len(BLOCK_ORDER)), entry.quartile))


def get_entry(db: Session, user_id: UUID, day: date, time_block: str, quartile: int) -> Optional[DailyScheduleEntry]:
    return (
        db.query(DailyScheduleEntry)
        .filter(
            DailyScheduleEntry.user_id == user_id,
            DailyScheduleEntry.date == day,
            DailyScheduleEntry.time_block == time_block,
            DailyScheduleEntry.quartile == quartile,
        )
        .one_or_none()
    )


def get_entry_by_id(db: Session, entry_id: UUID, user_id: UUID) -> DailyScheduleEntry:
    entry = db.get(DailyScheduleEntry, entry_id)
    if entry is None or entry.user_id != user_id:
        raise EntryNotFoundError(f"Schedule entry {entry_id} not found")
    return entry


def replace_entries(
    db: Session,
    user_id: UUID,
    day: date,
    drafts: Sequence[ScheduleEntryDraft],
) -> List[DailyScheduleEntry]:
    """Delete every entry for ``day`` and insert ``drafts`` in their place.

    Raises ``SlotConflictError`` before touching anything when two drafts share a
    slot or a draft belongs to another date.
    """
    seen = set()
    for draft in drafts:
        if draft.date != day:
            raise SlotConflictError(f"Draft for {draft.date} submitted while replacing {day}")
        _validate_slot(draft.time_block, draft.quartile)
        if draft.slot in seen:
            raise SlotConflictError(f"Duplicate slot {draft.time_block} Q{draft.quartile} for {day}")
        seen.add(draft.slot)

    removed = delete_entries(db, user_id, day)

    created: List[DailyScheduleEntry] = []
    for draft in drafts:
        entry = DailyScheduleEntry(
            user_id=user_id,
            date=day,
            time_block=draft.time_block,
            quartile=draft.quartile,
            planned_task_id=_as_uuid(draft.planned_task_id),
            status=draft.status,
        )
        entry.occupants = [
            SlotOccupant(
                kind=KIND_RECURRING,
                name=occupant.name,
                recurring_task_id=_as_uuid(occupant.recurring_task_id),
                position=position,
            )
            for position, occupant in enumerate(draft.occupants)
        ]
        db.add(entry)
        created.append(entry)
    db.flush()
    logger.debug("Replaced %s entries with %s for %s", removed, len(created), day)
    return created


def delete_entries(db: Session, user_id: UUID, day: date) -> int:
    existing = get_entries(db, user_id, day)
    for entry in existing:
        db.delete(entry)
    db.flush()
    return len(existing)


def upsert_entry(db: Session, user_id: UUID, day: date, time_block: str, quartile: int) -> DailyScheduleEntry:
    """Return the entry keyed by (user, date, block, quartile), creating it if absent."""
    _validate_slot(time_block, quartile)
    entry = get_entry(db, user_id, day, time_block, quartile)
    if entry is not None:
        return entry
    entry = DailyScheduleEntry(user_id=user_id, date=day, time_block=time_block, quartile=quartile)
    db.add(entry)
    db.flush()
    return entry


def write_occupancy(db: Session, entry: DailyScheduleEntry, occupancy: SlotOccupancy) -> DailyScheduleEntry:
    """Persist an occupancy value onto ``entry`` and its occupant rows."""
    regular = occupancy.regular_task_id
    current = {str(value) for value in (entry.planned_task_id, entry.actual_task_id) if value}
    if regular is None:
        entry.planned_task_id = None
        entry.actual_task_id = None
    elif regular not in current:
        entry.planned_task_id = _as_uuid(regular)
        entry.actual_task_id = None

    rows = [
        SlotOccupant(
            kind=KIND_RECURRING,
            name=occupant.name,
            recurring_task_id=_as_uuid(occupant.recurring_task_id),
            position=position,
        )
        for position, occupant in enumerate(occupancy.occupants)
    ]
    if occupancy.placeholder is not None and occupancy.is_empty:
        rows.append(SlotOccupant(kind=KIND_PLACEHOLDER, name=occupancy.placeholder, position=0))
    entry.occupants = rows
    if is_sentinel_reflection(entry.reflection):
        entry.reflection = None
    db.add(entry)
    db.flush()
    return entry


def update_entry(db: Session, entry_id: UUID, user_id: UUID, changes: Mapping[str, Any]) -> DailyScheduleEntry:
    """Apply a partial update; sentinel reflection text becomes occupant rows."""
    entry = get_entry_by_id(db, entry_id, user_id)
    values: Dict[str, Any] = {
        key: value
        for key, value in changes.items()
        if key in UPDATABLE_FIELDS and not (value is None and key in NON_NULLABLE_FIELDS)
    }

    if "status" in values and values["status"] not in ENTRY_STATUSES:
        raise ValueError(f"Unknown status {values['status']!r}")

    target_block = values.get("time_block", entry.time_block)
    target_quartile = values.get("quartile", entry.quartile)
    if (target_block, target_quartile) != (entry.time_block, entry.quartile):
        _validate_slot(target_block, target_quartile)
        clash = get_entry(db, user_id, entry.date, target_block, target_quartile)
        if clash is not None and clash.id != entry.id:
            raise SlotConflictError(f"{target_block} Q{target_quartile} already has an entry on {entry.date}")

    legacy = None
    if "reflection" in values:
        legacy = decode_reflection(values["reflection"])
        if legacy is not None:
            values["reflection"] = None

    for key, value in values.items():
        if key in ("planned_task_id", "actual_task_id"):
            value = _as_uuid(value)
        setattr(entry, key, value)

    if legacy is not None:
        regular = entry.actual_task_id or entry.planned_task_id
        write_occupancy(
            db,
            entry,
            SlotOccupancy(
                regular_task_id=str(regular) if regular else None,
                occupants=legacy.occupants,
                placeholder=legacy.placeholder,
            ),
        )
    db.add(entry)
    db.flush()
    return entry


def _validate_slot(time_block: str, quartile: int) -> None:
    if not is_canonical_block(time_block):
        raise ValueError(f"Unknown time block {time_block!r}")
    if not 1 <= int(quartile) <= QUARTILES_PER_BLOCK:
        raise ValueError(f"Quartile must be between 1 and {QUARTILES_PER_BLOCK}")


def _as_uuid(value: Any) -> Optional[UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    return UUID(str(value))

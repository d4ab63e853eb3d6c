"""Daily schedule orchestration: generate, view and edit one user's day."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from threading import Lock
from typing import Any, Dict, Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from dayplanner.core.config import settings
from dayplanner.core.errors import EntryNotFoundError, InvalidTaskReferenceError
from dayplanner.db.models.agent_action_log import AgentActionLog
from dayplanner.db.models.daily_schedule import DailyScheduleEntry
from dayplanner.db.models.recurring_skip import RecurringSkip
from dayplanner.db.models.recurring_task import RecurringTask
from dayplanner.observability.tracing import trace
from dayplanner.services import recurring_service, schedule_store, task_service
from dayplanner.services.candidate_aggregator import SlotView, build_day_view
from dayplanner.services.schedule_generator import generate_raw_schedule
from dayplanner.services.schedule_normalizer import normalize_schedule
from dayplanner.services.slot_occupants import (
    KIND_REGULAR,
    Occupant,
    SlotOccupancy,
    add_occupant,
    occupancy_from_entry,
    recurring_skip_key,
    remove_occupant,
)
from dayplanner.services.task_resolver import build_task_index
from dayplanner.services.time_grid import resolve_block_label
from dayplanner.services.user_service import get_or_create_user, schedule_preferences

logger = logging.getLogger(__name__)

_day_locks: Dict[Tuple[str, str], "_DayLock"] = {}
_day_locks_guard = Lock()


@dataclass
class _DayLock:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


@dataclass
class GenerationResult:
    date: date
    source: str
    entries: List[DailyScheduleEntry]
    log: AgentActionLog
    tasks_considered: int = 0


@dataclass
class DayView:
    date: date
    entries: List[DailyScheduleEntry]
    slots: List[SlotView] = field(default_factory=list)
    tasks_by_id: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RemovalOutcome:
    entry: DailyScheduleEntry
    removed: Occupant
    now_empty: bool
    skip: Optional[RecurringSkip] = None


@contextmanager
def day_lock(user_id: UUID, day: date) -> Iterator[None]:
    """Serialize writes that replace or edit one user's date."""
    key = (str(user_id), day.isoformat())
    with _day_locks_guard:
        entry = _day_locks.setdefault(key, _DayLock())
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _day_locks_guard:
            entry.holders -= 1
            if not entry.holders:
                del _day_locks[key]


def generate_daily_schedule(
    db: Session,
    user_id: UUID,
    day: date,
    *,
    request_id: Optional[str] = None,
) -> GenerationResult:
    """Generate, normalize and persist the schedule for ``day``, replacing any existing one."""
    user = get_or_create_user(db, user_id)
    tasks = task_service.list_eligible_tasks(db, user_id)
    recurring = recurring_service.list_active_recurring(db, user_id, day)

    with trace(
        "daily_schedule.generate",
        metadata={"date": day, "task_count": len(tasks), "recurring_count": len(recurring)},
        user_id=str(user_id),
        request_id=request_id,
    ) as generation_trace:
        payload = generate_raw_schedule(
            tasks,
            recurring,
            schedule_preferences(user),
            day=day,
            user_id=user_id,
            request_id=request_id,
        )
        drafts = normalize_schedule(payload.schedule, day, build_task_index(tasks), recurring)

        with day_lock(user_id, day):
            try:
                entries = schedule_store.replace_entries(db, user_id, day, drafts)
                log = AgentActionLog(
                    user_id=user_id,
                    action_type="daily_schedule_generated",
                    action_payload={
                        "date": day.isoformat(),
                        "source": payload.source,
                        "fallback_reason": payload.error,
                        "entry_count": len(entries),
                        "assigned_count": sum(1 for draft in drafts if draft.planned_task_id),
                        "task_count": len(tasks),
                        "request_id": request_id or "",
                    },
                    reason="Daily schedule generated",
                )
                db.add(log)
                db.commit()
            except Exception:
                db.rollback()
                raise

        if generation_trace:
            generation_trace.update(metadata={"source": payload.source, "entry_count": len(entries)})

    logger.info("Generated %s entries for %s (source=%s)", len(entries), day, payload.source)
    return GenerationResult(
        date=day,
        source=payload.source,
        entries=entries,
        log=log,
        tasks_considered=len(tasks),
    )


def get_day_view(
    db: Session,
    user_id: UUID,
    day: date,
    *,
    limit: Optional[int] = None,
) -> DayView:
    """Entries for ``day`` plus the candidate list of every slot. Read only."""
    entries = schedule_store.get_entries(db, user_id, day)
    recurring = recurring_service.list_active_recurring(db, user_id, day)
    skips = recurring_service.list_skips(db, user_id, day)
    tasks_by_id = task_service.get_tasks_by_ids(
        db,
        [task_id for entry in entries for task_id in (entry.planned_task_id, entry.actual_task_id)],
    )
    slots = build_day_view(
        day,
        entries,
        tasks_by_id,
        recurring,
        skips,
        limit if limit is not None else settings.candidate_display_limit,
    )
    return DayView(date=day, entries=entries, slots=slots, tasks_by_id=tasks_by_id)


def add_task_to_slot(
    db: Session,
    user_id: UUID,
    day: date,
    time_block: str,
    quartile: int,
    *,
    task_id: Optional[UUID] = None,
    name: Optional[str] = None,
    recurring_task_id: Optional[UUID] = None,
    request_id: Optional[str] = None,
) -> DailyScheduleEntry:
    """Put a regular task or a recurring name into a slot, creating the entry if needed.

    Raises ``OccupantConflictError`` when a regular task is added to a slot that
    already holds one; nothing is written in that case.
    """
    block = _canonical_block(time_block)
    if task_id is not None:
        task = task_service.get_task(db, task_id, user_id)
        if task is None or not task.is_schedulable:
            raise InvalidTaskReferenceError(f"Task {task_id} cannot be scheduled")
        occupant = Occupant(name=task.name, kind=KIND_REGULAR, task_id=str(task.id))
    else:
        definition = _find_definition(db, user_id, recurring_task_id) if recurring_task_id else None
        label = definition.task_name if definition is not None else (name or "").strip()
        if not label:
            raise ValueError("Provide task_id, recurring_task_id or name")
        occupant = Occupant(
            name=label,
            recurring_task_id=str(definition.id) if definition is not None else None,
        )

    with day_lock(user_id, day):
        try:
            get_or_create_user(db, user_id)
            entry = schedule_store.upsert_entry(db, user_id, day, block, quartile)
            occupancy = add_occupant(
                occupancy_from_entry(entry),
                occupant,
                time_block=block,
                quartile=quartile,
            )
            schedule_store.write_occupancy(db, entry, occupancy)
            if entry.status == "completed":
                entry.status = "not_started"
            db.add(
                AgentActionLog(
                    user_id=user_id,
                    action_type="slot_occupant_added",
                    action_payload={
                        "date": day.isoformat(),
                        "time_block": block,
                        "quartile": quartile,
                        "kind": occupant.kind,
                        "name": occupant.name,
                        "task_id": occupant.task_id,
                        "recurring_task_id": occupant.recurring_task_id,
                        "request_id": request_id or "",
                    },
                    reason="Occupant added to slot",
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(entry)
    return entry


def remove_occupant_from_slot(
    db: Session,
    user_id: UUID,
    day: date,
    time_block: str,
    quartile: int,
    candidate_id: str,
    *,
    skip_today: bool = False,
    request_id: Optional[str] = None,
) -> RemovalOutcome:
    """Remove one occupant; with ``skip_today`` a recurring occupant is also skipped for the date."""
    return _take_occupant(
        db,
        user_id,
        day,
        time_block,
        quartile,
        candidate_id,
        skip_today=skip_today,
        complete=False,
        request_id=request_id,
    )


def complete_occupant_in_slot(
    db: Session,
    user_id: UUID,
    day: date,
    time_block: str,
    quartile: int,
    candidate_id: str,
    *,
    request_id: Optional[str] = None,
) -> RemovalOutcome:
    """Mark one occupant done.

    A recurring occupant leaves the slot; a regular task is marked completed and
    recorded as the slot's actual task. The entry turns completed once nothing
    unfinished is left in it.
    """
    return _take_occupant(
        db,
        user_id,
        day,
        time_block,
        quartile,
        candidate_id,
        skip_today=False,
        complete=True,
        request_id=request_id,
    )


def skip_recurring_occurrence(
    db: Session,
    user_id: UUID,
    day: date,
    time_block: str,
    quartile: int,
    *,
    recurring_task_id: Optional[UUID] = None,
    name: Optional[str] = None,
    request_id: Optional[str] = None,
) -> RecurringSkip:
    """Hide a recurring occurrence from the candidates of one slot on one date. Idempotent."""
    block = _canonical_block(time_block)
    definition = _find_definition(db, user_id, recurring_task_id) if recurring_task_id else None
    if recurring_task_id and definition is None:
        raise EntryNotFoundError(f"Recurring task {recurring_task_id} not found")
    if definition is not None:
        key = str(definition.id)
    elif name and name.strip():
        key = recurring_skip_key(
            Occupant(name=name.strip()),
            recurring_service.list_active_recurring(db, user_id),
            time_block=block,
            quartile=quartile,
        )
    else:
        raise ValueError("Provide recurring_task_id or name")

    with day_lock(user_id, day):
        try:
            get_or_create_user(db, user_id)
            skip, created = recurring_service.record_skip(
                db,
                user_id=user_id,
                day=day,
                time_block=block,
                quartile=quartile,
                recurring_key=key,
            )
            if created:
                db.add(_skip_log(user_id, day, block, quartile, key, request_id))
            db.commit()
        except Exception:
            db.rollback()
            raise
    return skip


def update_schedule_entry(
    db: Session,
    user_id: UUID,
    entry_id: UUID,
    changes: Dict[str, Any],
) -> DailyScheduleEntry:
    """Partial update of an entry after checking any task ids it now points at."""
    for key in ("planned_task_id", "actual_task_id"):
        task_id = changes.get(key)
        if task_id is None:
            continue
        task = task_service.get_task(db, task_id, user_id)
        if task is None or not task.is_schedulable:
            raise InvalidTaskReferenceError(f"Task {task_id} cannot be scheduled")

    existing = schedule_store.get_entry_by_id(db, entry_id, user_id)
    with day_lock(user_id, existing.date):
        try:
            entry = schedule_store.update_entry(db, entry_id, user_id, changes)
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(entry)
    return entry


def clear_day(db: Session, user_id: UUID, day: date) -> int:
    """Delete every entry of ``day``; skips are kept."""
    with day_lock(user_id, day):
        try:
            removed = schedule_store.delete_entries(db, user_id, day)
            db.commit()
        except Exception:
            db.rollback()
            raise
    return removed


def _take_occupant(
    db: Session,
    user_id: UUID,
    day: date,
    time_block: str,
    quartile: int,
    candidate_id: str,
    *,
    skip_today: bool,
    complete: bool,
    request_id: Optional[str],
) -> RemovalOutcome:
    block = _canonical_block(time_block)
    with day_lock(user_id, day):
        try:
            entry = schedule_store.get_entry(db, user_id, day, block, quartile)
            if entry is None:
                raise EntryNotFoundError(f"No schedule entry for {block} Q{quartile} on {day}")
            occupancy = occupancy_from_entry(entry)

            if complete and occupancy.regular_task_id and str(candidate_id) == occupancy.regular_task_id:
                outcome = _complete_regular(db, user_id, entry, occupancy)
            else:
                result = remove_occupant(occupancy, candidate_id, time_block=block, quartile=quartile)
                schedule_store.write_occupancy(db, entry, result.occupancy)
                outcome = RemovalOutcome(entry=entry, removed=result.removed, now_empty=result.now_empty)
                if complete and not result.occupancy.occupants and _regular_done(db, result.occupancy):
                    entry.status = "completed"

            removed = outcome.removed
            if skip_today and removed.kind != KIND_REGULAR:
                key = recurring_skip_key(
                    removed,
                    recurring_service.list_active_recurring(db, user_id),
                    time_block=block,
                    quartile=quartile,
                )
                outcome.skip, created = recurring_service.record_skip(
                    db,
                    user_id=user_id,
                    day=day,
                    time_block=block,
                    quartile=quartile,
                    recurring_key=key,
                )
                if created:
                    db.add(_skip_log(user_id, day, block, quartile, key, request_id))

            db.add(
                AgentActionLog(
                    user_id=user_id,
                    action_type="slot_occupant_completed" if complete else "slot_occupant_removed",
                    action_payload={
                        "date": day.isoformat(),
                        "time_block": block,
                        "quartile": quartile,
                        "candidate_id": str(candidate_id),
                        "kind": removed.kind,
                        "name": removed.name,
                        "now_empty": outcome.now_empty,
                        "skip_today": skip_today,
                        "request_id": request_id or "",
                    },
                    reason="Occupant completed" if complete else "Occupant removed from slot",
                )
            )
            db.add(entry)
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(outcome.entry)
    return outcome


def _complete_regular(db: Session, user_id: UUID, entry: DailyScheduleEntry, occupancy: SlotOccupancy) -> RemovalOutcome:
    task = task_service.get_task(db, UUID(occupancy.regular_task_id), user_id)
    if task is not None:
        task.status = "completed"
        db.add(task)
    entry.actual_task_id = UUID(occupancy.regular_task_id)
    entry.status = "in_progress" if occupancy.occupants else "completed"
    removed = Occupant(
        name=task.name if task is not None else "",
        kind=KIND_REGULAR,
        task_id=occupancy.regular_task_id,
    )
    return RemovalOutcome(entry=entry, removed=removed, now_empty=not occupancy.occupants)


def _regular_done(db: Session, occupancy: SlotOccupancy) -> bool:
    if occupancy.regular_task_id is None:
        return True
    task = task_service.get_task(db, UUID(occupancy.regular_task_id))
    return task is not None and task.status == "completed"


def _skip_log(user_id: UUID, day: date, block: str, quartile: int, key: str, request_id: Optional[str]) -> AgentActionLog:
    return AgentActionLog(
        user_id=user_id,
        action_type="recurring_occurrence_skipped",
        action_payload={
            "date": day.isoformat(),
            "time_block": block,
            "quartile": quartile,
            "recurring_key": key,
            "request_id": request_id or "",
        },
        reason="Recurring occurrence skipped for the day",
    )


def _find_definition(db: Session, user_id: UUID, recurring_task_id: UUID) -> Optional[RecurringTask]:
    definition = db.get(RecurringTask, recurring_task_id)
    if definition is None or definition.user_id != user_id:
        return None
    return definition


def _canonical_block(time_block: str) -> str:
    block = resolve_block_label(time_block)
    if block is None:
        raise ValueError(f"Unknown time block {time_block!r}")
    return block


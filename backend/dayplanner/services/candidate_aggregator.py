"""Per-slot candidate lists: what is in a slot now and which recurring tasks could be."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from dayplanner.services.slot_occupants import (
    SKIP_NAME_PREFIX,
    SlotOccupancy,
    definition_matches_slot,
    occupancy_from_entry,
    occupant_candidate_id,
)
from dayplanner.services.time_grid import iter_slots

DEFAULT_DISPLAY_LIMIT = 4

KIND_REGULAR = "regular"
KIND_RECURRING = "recurring"

PROVENANCE_ACTIVE = "active"
PROVENANCE_PLANNED = "planned"
PROVENANCE_RECURRING_ACTIVE = "recurring_active"
PROVENANCE_MULTIPLE = "multiple_tasks"
PROVENANCE_RECURRING_CANDIDATE = "recurring_candidate"


@dataclass(frozen=True)
class Candidate:
    id: str
    name: str
    kind: str
    is_active: bool
    provenance: str
    duration_minutes: Optional[int] = None
    entry_id: Optional[str] = None
    task_id: Optional[str] = None
    recurring_task_id: Optional[str] = None


@dataclass
class SlotView:
    time_block: str
    quartile: int
    entry: Any = None
    candidates: List[Candidate] = field(default_factory=list)
    hidden: List[Candidate] = field(default_factory=list)

    @property
    def has_more(self) -> bool:
        return bool(self.hidden)


def candidates_for(
    day: date,
    time_block: str,
    quartile: int,
    entry: Any,
    tasks_by_id: Mapping[str, Any],
    recurring: Sequence[Any],
    skips: Collection[str] = (),
) -> List[Candidate]:
    """Ordered candidates for one slot: active occupants first, then eligible recurring tasks.

    ``entry`` is the persisted ``DailyScheduleEntry`` or None; ``skips`` holds the
    skip registry keys recorded for this slot on ``day``. Nothing is written.
    """
    occupancy = occupancy_from_entry(entry)
    completed = entry is not None and entry.status == "completed"
    entry_id = str(entry.id) if entry is not None and entry.id is not None else None
    definitions_by_id = {str(definition.id): definition for definition in recurring}

    active: List[Candidate] = []
    if entry is not None and not completed and not occupancy.is_placeholder:
        active = _active_candidates(entry, entry_id, occupancy, tasks_by_id, definitions_by_id, time_block, quartile)

    if completed:
        return active

    active_ids: Set[str] = set()
    active_names: Set[str] = set()
    for occupant in occupancy.occupants:
        if occupant.recurring_task_id:
            active_ids.add(occupant.recurring_task_id)
        else:
            active_names.add(occupant.name.strip().lower())
    skipped = {key.lower() for key in skips}

    extra: List[Candidate] = []
    for definition in recurring:
        if not getattr(definition, "is_active", True):
            continue
        if not definition_matches_slot(definition, day, time_block, quartile):
            continue
        definition_id = str(definition.id)
        name = definition.task_name.strip()
        if definition_id in active_ids or name.lower() in active_names:
            continue
        if definition_id.lower() in skipped or f"{SKIP_NAME_PREFIX}{name}".lower() in skipped:
            continue
        extra.append(
            Candidate(
                id=definition_id,
                name=definition.task_name,
                kind=KIND_RECURRING,
                is_active=False,
                provenance=PROVENANCE_RECURRING_CANDIDATE,
                duration_minutes=definition.duration_minutes,
                entry_id=entry_id,
                recurring_task_id=definition_id,
            )
        )
    return active + extra


def truncate_candidates(
    candidates: Sequence[Candidate],
    limit: int = DEFAULT_DISPLAY_LIMIT,
) -> Tuple[List[Candidate], List[Candidate]]:
    """Split into the visible head and the hidden remainder behind a "more" affordance."""
    limit = max(limit, 0)
    return list(candidates[:limit]), list(candidates[limit:])


def build_day_view(
    day: date,
    entries: Iterable[Any],
    tasks_by_id: Mapping[str, Any],
    recurring: Sequence[Any],
    skips: Iterable[Any] = (),
    limit: int = DEFAULT_DISPLAY_LIMIT,
) -> List[SlotView]:
    """Run the aggregator over every slot of the grid for ``day``."""
    entries_by_slot = {(entry.time_block, entry.quartile): entry for entry in entries}
    skips_by_slot: Dict[Tuple[str, int], Set[str]] = {}
    for skip in skips:
        skips_by_slot.setdefault((skip.time_block, skip.quartile), set()).add(skip.recurring_key)

    views: List[SlotView] = []
    for time_block, quartile in iter_slots():
        entry = entries_by_slot.get((time_block, quartile))
        candidates = candidates_for(
            day,
            time_block,
            quartile,
            entry,
            tasks_by_id,
            recurring,
            skips_by_slot.get((time_block, quartile), ()),
        )
        visible, hidden = truncate_candidates(candidates, limit)
        views.append(SlotView(time_block, quartile, entry, visible, hidden))
    return views


def task_display_name(task_id: str, tasks_by_id: Mapping[str, Any]) -> str:
    task = tasks_by_id.get(task_id)
    if task is not None and getattr(task, "name", None):
        return task.name
    return f"Task {task_id[:8]}..."


def _active_candidates(
    entry: Any,
    entry_id: Optional[str],
    occupancy: SlotOccupancy,
    tasks_by_id: Mapping[str, Any],
    definitions_by_id: Mapping[str, Any],
    time_block: str,
    quartile: int,
) -> List[Candidate]:
    candidates: List[Candidate] = []
    if occupancy.regular_task_id:
        task_id = occupancy.regular_task_id
        task = tasks_by_id.get(task_id)
        candidates.append(
            Candidate(
                id=task_id,
                name=task_display_name(task_id, tasks_by_id),
                kind=KIND_REGULAR,
                is_active=True,
                provenance=PROVENANCE_ACTIVE if entry.actual_task_id else PROVENANCE_PLANNED,
                duration_minutes=_estimated_minutes(task),
                entry_id=entry_id,
                task_id=task_id,
            )
        )

    total = len(occupancy.occupants)
    for position, occupant in enumerate(occupancy.occupants):
        definition = definitions_by_id.get(occupant.recurring_task_id or "")
        candidates.append(
            Candidate(
                id=occupant_candidate_id(time_block, quartile, position, total),
                name=occupant.name,
                kind=KIND_RECURRING,
                is_active=True,
                provenance=PROVENANCE_RECURRING_ACTIVE if total == 1 else PROVENANCE_MULTIPLE,
                duration_minutes=definition.duration_minutes if definition is not None else None,
                entry_id=entry_id,
                recurring_task_id=occupant.recurring_task_id,
            )
        )
    return candidates


def _estimated_minutes(task: Any) -> Optional[int]:
    hours = getattr(task, "estimated_time", None)
    if hours is None:
        return None
    return int(round(float(hours) * 60))

"""Turn a generated schedule payload into canonical slot drafts.

Generated schedules arrive as loosely typed JSON in one of two layouts:

* a list of block objects (``[{"timeBlock": "CHIEF PROJECT", "tasks": [...]}]``)
  whose tasks fill quartiles 1..4 by position, or
* a flat mapping of time-range or block labels to a single assignment
  (``{"9:00-11:00": {"assignedTask": "Write report", "quartile": "2nd"}}``).

The payload is classified once at the boundary; nothing past
``normalize_schedule`` sees the untyped shape.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from dayplanner.services.slot_occupants import Occupant, definition_matches_slot
from dayplanner.services.task_resolver import TaskIndex, reference_name, resolve_task_reference
from dayplanner.services.time_grid import (
    BLOCK_ORDER,
    DEFAULT_BLOCK_NAME,
    QUARTILES_PER_BLOCK,
    parse_quartile_label,
    resolve_block_for_clock_time,
    resolve_block_label,
)

logger = logging.getLogger(__name__)

WRAPPER_KEYS = ("schedule", "timeBlocks", "time_blocks", "blocks")
BLOCK_LABEL_KEYS = ("timeBlock", "time_block", "name", "block")
CLOCK_KEYS = ("start", "startTime", "start_time", "time")
# Keys a model sometimes adds next to the slots of a flat payload.
META_KEYS = frozenset({"source", "notes", "summary", "date", "reasoning", "explanation"})


@dataclass(frozen=True)
class ArrayShape:
    blocks: Tuple[Mapping[str, Any], ...]


@dataclass(frozen=True)
class FlatObjectShape:
    slots: Tuple[Tuple[str, Any], ...]


@dataclass(frozen=True)
class EmptyShape:
    pass


RawShape = Union[ArrayShape, FlatObjectShape, EmptyShape]


@dataclass(frozen=True)
class RawSlot:
    time_block: str
    quartile: int
    reference: Any


@dataclass
class ScheduleEntryDraft:
    date: date
    time_block: str
    quartile: int
    planned_task_id: Optional[str] = None
    status: str = "not_started"
    occupants: Tuple[Occupant, ...] = field(default_factory=tuple)

    @property
    def slot(self) -> Tuple[str, int]:
        return self.time_block, self.quartile


def classify_payload(raw: Any) -> RawShape:
    """Inspect ``raw`` and return its tagged shape."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return EmptyShape()
    raw = _unwrap(raw)
    if isinstance(raw, list):
        blocks = tuple(item for item in raw if isinstance(item, Mapping))
        return ArrayShape(blocks) if blocks else EmptyShape()
    if isinstance(raw, Mapping):
        slots = tuple(
            (str(key), value)
            for key, value in raw.items()
            if str(key) not in META_KEYS and value not in (None, "", [], {})
        )
        return FlatObjectShape(slots) if slots else EmptyShape()
    return EmptyShape()


def iter_raw_slots(shape: RawShape) -> Iterator[RawSlot]:
    if isinstance(shape, ArrayShape):
        for block in shape.blocks:
            yield from _slots_from_block(block)
    elif isinstance(shape, FlatObjectShape):
        for label, value in shape.slots:
            yield from _slots_from_flat_item(label, value)


def normalize_schedule(
    raw: Any,
    day: date,
    index: TaskIndex,
    recurring: Sequence[Any] = (),
) -> List[ScheduleEntryDraft]:
    """Normalize a raw schedule payload into one draft per (block, quartile).

    Unresolved references still produce a draft with no task so recurring slots
    survive; when the unresolved name is an active recurring definition for the
    slot, the draft carries it as an occupant. A duplicate slot keeps its first
    occurrence. Drafts pointing at a task outside ``index`` are dropped.
    """
    shape = classify_payload(raw)
    drafts: Dict[Tuple[str, int], ScheduleEntryDraft] = {}
    for raw_slot in iter_raw_slots(shape):
        key = (raw_slot.time_block, raw_slot.quartile)
        if key in drafts:
            logger.debug("Dropping duplicate slot %s Q%s", *key)
            continue
        drafts[key] = _draft_for(raw_slot, day, index, recurring)

    valid = [draft for draft in drafts.values() if _is_valid(draft, index)]
    dropped = len(drafts) - len(valid)
    if dropped:
        logger.info("Dropped %s drafts with ineligible task references", dropped)
    valid.sort(key=lambda draft: (BLOCK_ORDER.get(draft.time_block, len(BLOCK_ORDER)), draft.quartile))
    return valid


def _draft_for(raw_slot: RawSlot, day: date, index: TaskIndex, recurring: Sequence[Any]) -> ScheduleEntryDraft:
    draft = ScheduleEntryDraft(date=day, time_block=raw_slot.time_block, quartile=raw_slot.quartile)
    task_id = resolve_task_reference(raw_slot.reference, index)
    if task_id is not None:
        draft.planned_task_id = task_id
        return draft

    explicit_id = _explicit_id(raw_slot.reference)
    if explicit_id is not None:
        # Kept so the validity pass drops it.
        draft.planned_task_id = explicit_id
        return draft

    name = reference_name(raw_slot.reference)
    definition = _matching_definition(name, day, raw_slot, recurring)
    if definition is not None:
        draft.occupants = (
            Occupant(name=definition.task_name, recurring_task_id=str(definition.id)),
        )
    return draft


def _is_valid(draft: ScheduleEntryDraft, index: TaskIndex) -> bool:
    return draft.planned_task_id is None or draft.planned_task_id in index


def _matching_definition(name: Optional[str], day: date, raw_slot: RawSlot, recurring: Iterable[Any]) -> Any:
    if not name:
        return None
    wanted = name.strip().lower()
    for definition in recurring:
        if not getattr(definition, "is_active", True):
            continue
        if definition.task_name.strip().lower() != wanted:
            continue
        if definition_matches_slot(definition, day, raw_slot.time_block, raw_slot.quartile):
            return definition
    return None


def _unwrap(raw: Any) -> Any:
    for _ in range(3):
        if not isinstance(raw, Mapping):
            return raw
        for key in WRAPPER_KEYS:
            if key in raw:
                raw = raw[key]
                break
        else:
            return raw
    return raw


def _slots_from_block(block: Mapping[str, Any]) -> Iterator[RawSlot]:
    time_block = _block_from_object(block)
    if isinstance(block.get("tasks"), list):
        references = list(block["tasks"])
    elif isinstance(block.get("quartiles"), list):
        references = [_unwrap_quartile(item) for item in block["quartiles"]]
    elif "task" in block:
        quartile = parse_quartile_label(block.get("quartile"))
        if _has_reference(block["task"]):
            yield RawSlot(time_block, quartile, block["task"])
        return
    else:
        return

    for position, reference in enumerate(references[:QUARTILES_PER_BLOCK], start=1):
        if _has_reference(reference):
            yield RawSlot(time_block, position, reference)


def _slots_from_flat_item(label: str, value: Any) -> Iterator[RawSlot]:
    time_block = resolve_block_label(label) or DEFAULT_BLOCK_NAME
    if isinstance(value, list):
        for position, reference in enumerate(value[:QUARTILES_PER_BLOCK], start=1):
            if _has_reference(reference):
                yield RawSlot(time_block, position, reference)
        return
    if isinstance(value, Mapping):
        quartile = parse_quartile_label(value.get("quartile"))
        if "task" in value:
            reference = value["task"]
        elif "assignedTask" in value:
            reference = value["assignedTask"]
        else:
            reference = value.get("taskName") or value.get("name")
        if _has_reference(reference):
            yield RawSlot(time_block, quartile, reference)
        return
    if _has_reference(value):
        yield RawSlot(time_block, 1, value)


def _block_from_object(block: Mapping[str, Any]) -> str:
    for key in BLOCK_LABEL_KEYS:
        resolved = resolve_block_label(block.get(key))
        if resolved:
            return resolved
    for key in CLOCK_KEYS:
        if block.get(key):
            return resolve_block_for_clock_time(block[key])
    return DEFAULT_BLOCK_NAME


def _unwrap_quartile(item: Any) -> Any:
    if isinstance(item, Mapping) and "task" in item:
        return item["task"]
    return item


def _has_reference(reference: Any) -> bool:
    if reference is None:
        return False
    if isinstance(reference, str):
        return bool(reference.strip())
    if isinstance(reference, Mapping):
        return any(reference.get(key) for key in ("id", "taskId", "task_id", "name", "title", "taskName", "task_name"))
    return True


def _explicit_id(reference: Any) -> Optional[str]:
    if isinstance(reference, Mapping):
        for key in ("id", "taskId", "task_id"):
            if reference.get(key):
                return str(reference[key])
    return None

"""Raw schedule proposals from OpenAI, with a deterministic local fallback."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import openai

from dayplanner.core.config import settings
from dayplanner.db.models.task import DELIVERABLE_TYPES
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services.schedule_normalizer import EmptyShape, classify_payload
from dayplanner.services.slot_occupants import definition_matches_slot
from dayplanner.services.time_grid import TIME_BLOCKS, iter_slots, quartile_span

logger = logging.getLogger(__name__)

SOURCE_OPENAI = "openai"
SOURCE_LOCAL_FALLBACK = "local_fallback"

PRIORITY_TIERS: Dict[str, Tuple[str, ...]] = {
    "High": ("CHIEF PROJECT", "HOUR OF POWER"),
    "Medium": ("PRODUCTION WORK", "COMPANY BLOCK", "BUSINESS AUTOMATION"),
    "Low": ("ENVIRONMENTAL", "FLEXIBLE BLOCK"),
}
PRIORITY_RANK = {"High": 0, "Medium": 1, "Low": 2}
QUARTILE_LABELS = ("1st", "2nd", "3rd", "4th")


@dataclass
class RawSchedulePayload:
    schedule: Any
    source: str
    error: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.source == SOURCE_LOCAL_FALLBACK


def generate_raw_schedule(
    tasks: Sequence[Any],
    recurring: Sequence[Any] = (),
    preferences: Optional[Dict[str, Any]] = None,
    *,
    day: Optional[date] = None,
    user_id: Optional[Any] = None,
    request_id: Optional[str] = None,
) -> RawSchedulePayload:
    """Ask the LLM for a schedule; any failure falls back to ``build_local_schedule``.

    One attempt only, bounded by ``OPENAI_TIMEOUT_SECONDS``. Errors are logged and
    reported through ``source``; they never propagate to the caller.
    """
    with trace(
        "daily_schedule.llm",
        metadata={"task_count": len(tasks), "recurring_count": len(recurring), "date": day},
        user_id=user_id,
        request_id=request_id,
    ) as llm_trace:
        payload = _request_schedule_from_llm(tasks, recurring, preferences or {}, day)
        if llm_trace:
            llm_trace.update(metadata={"source": payload.source, "error": payload.error or ""})

    if payload.used_fallback:
        log_metric(
            "daily_schedule.fallback.used",
            1,
            metadata={"reason": payload.error or "no_api_key", "user_id": user_id},
        )
    return payload


def build_local_schedule(
    tasks: Iterable[Any],
    recurring: Sequence[Any] = (),
    preferences: Optional[Dict[str, Any]] = None,
    *,
    day: Optional[date] = None,
) -> Dict[str, Dict[str, Any]]:
    """Distribute tasks over the grid by priority tier, in flat-object shape.

    High priority fills CHIEF PROJECT then HOUR OF POWER, Medium the mid-day
    blocks, Low the evening blocks. Within a tier tasks are ordered by due date.
    A full tier spills into the later tiers. Slots held by a recurring task on
    ``day`` are left free.
    """
    reserved: Set[Tuple[str, int]] = set()
    if day is not None:
        for time_block, quartile in iter_slots():
            if any(
                getattr(definition, "is_active", True)
                and definition_matches_slot(definition, day, time_block, quartile)
                for definition in recurring
            ):
                reserved.add((time_block, quartile))

    tier_names = list(PRIORITY_TIERS)
    taken: Set[Tuple[str, int]] = set(reserved)
    schedule: Dict[str, Dict[str, Any]] = {}
    for task in _ordered_tasks(tasks):
        priority = _attr(task, "priority") if _attr(task, "priority") in PRIORITY_TIERS else "Medium"
        blocks = [block for tier in tier_names[tier_names.index(priority):] for block in PRIORITY_TIERS[tier]]
        slot = _first_free_slot(blocks, taken)
        if slot is None:
            logger.debug("No free slot left for task %s", _attr(task, "id"))
            continue
        taken.add(slot)
        time_block, quartile = slot
        start, end = quartile_span(time_block)[quartile - 1]
        name = _attr(task, "name") or ""
        schedule[f"{start}-{end}"] = {
            "timeBlock": time_block,
            "quartile": QUARTILE_LABELS[quartile - 1],
            "task": {"id": str(_attr(task, "id")), "name": name},
            "assignedTask": name,
        }
    return schedule


def _request_schedule_from_llm(
    tasks: Sequence[Any],
    recurring: Sequence[Any],
    preferences: Dict[str, Any],
    day: Optional[date],
) -> RawSchedulePayload:
    """Call OpenAI once or fall back deterministically."""
    api_key = settings.openai_api_key or os.environ.get("OPENAI_API_KEY")
    if not api_key:
        return _fallback(tasks, recurring, preferences, day, error=None)

    system_prompt = (
        "You plan one day for a single person. Assign tasks to the named time blocks, "
        "at most four tasks per block, one per quartile. Respond with a JSON object "
        "whose 'schedule' key is a list of {timeBlock, tasks: [{id, name}]}."
    )
    user_prompt = json.dumps(
        {
            "date": day.isoformat() if day else None,
            "time_blocks": [
                {"name": block.name, "start": block.start, "end": block.end} for block in TIME_BLOCKS
            ],
            "tasks": [_task_prompt_view(task) for task in tasks],
            "recurring_tasks": [
                {
                    "name": definition.task_name,
                    "time_block": definition.time_block,
                    "quarter": definition.quarter,
                }
                for definition in recurring
            ],
            "preferences": preferences,
        },
        default=str,
    )

    try:
        client = openai.OpenAI(
            api_key=api_key,
            timeout=settings.openai_timeout_seconds,
            max_retries=0,
        )
        completion = client.chat.completions.create(
            model=settings.openai_model,
            response_format={"type": "json_object"},
            temperature=0.3,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        content = completion.choices[0].message.content or "{}"
        schedule = json.loads(content)
    except Exception as exc:
        logger.warning("Schedule generation via OpenAI failed, using local fallback: %s", exc)
        return _fallback(tasks, recurring, preferences, day, error=type(exc).__name__)

    if tasks and isinstance(classify_payload(schedule), EmptyShape):
        logger.warning("OpenAI returned no usable schedule, using local fallback")
        return _fallback(tasks, recurring, preferences, day, error="empty_schedule")
    return RawSchedulePayload(schedule=schedule, source=SOURCE_OPENAI)


def _fallback(
    tasks: Sequence[Any],
    recurring: Sequence[Any],
    preferences: Dict[str, Any],
    day: Optional[date],
    *,
    error: Optional[str],
) -> RawSchedulePayload:
    schedule = build_local_schedule(tasks, recurring, preferences, day=day)
    return RawSchedulePayload(schedule=schedule, source=SOURCE_LOCAL_FALLBACK, error=error)


def _ordered_tasks(tasks: Iterable[Any]) -> List[Any]:
    eligible = [
        task
        for task in tasks
        if _attr(task, "type") not in DELIVERABLE_TYPES and _attr(task, "status") != "completed"
    ]

    def sort_key(task: Any) -> Tuple[int, int, str, str]:
        due = _attr(task, "due_date")
        due_key = due.isoformat() if isinstance(due, (date, datetime)) else str(due or "")
        return (
            PRIORITY_RANK.get(_attr(task, "priority"), 1),
            0 if due else 1,
            due_key,
            str(_attr(task, "name") or ""),
        )

    return sorted(eligible, key=sort_key)


def _first_free_slot(blocks: Sequence[str], taken: Set[Tuple[str, int]]) -> Optional[Tuple[str, int]]:
    for time_block in blocks:
        for quartile in range(1, len(QUARTILE_LABELS) + 1):
            if (time_block, quartile) not in taken:
                return time_block, quartile
    return None


def _task_prompt_view(task: Any) -> Dict[str, Any]:
    return {
        "id": str(_attr(task, "id")),
        "name": _attr(task, "name"),
        "priority": _attr(task, "priority"),
        "category": _attr(task, "category"),
        "estimated_hours": _attr(task, "estimated_time"),
        "due_date": _attr(task, "due_date"),
    }


def _attr(task: Any, name: str) -> Any:
    if isinstance(task, dict):
        return task.get(name)
    return getattr(task, name, None)

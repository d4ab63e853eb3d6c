"""Daily schedule API routes."""
from __future__ import annotations

from datetime import date
from time import perf_counter
from typing import Any, Dict, List, Mapping, NoReturn, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from dayplanner.api.schemas.daily import (
    AddOccupantRequest,
    CandidatePayload,
    ClearDayResponse,
    CompleteOccupantRequest,
    DayViewResponse,
    EntryUpdateRequest,
    GenerateScheduleRequest,
    GenerateScheduleResponse,
    OccupantChangeResponse,
    OccupantPayload,
    RemoveOccupantRequest,
    ScheduleEntryPayload,
    SkipRequest,
    SkipResponse,
    SlotPayload,
)
from dayplanner.core.errors import (
    EntryNotFoundError,
    InvalidTaskReferenceError,
    OccupantConflictError,
    SchedulingError,
    SlotConflictError,
)
from dayplanner.db.deps import get_db
from dayplanner.db.models.daily_schedule import DailyScheduleEntry
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services import daily_planner
from dayplanner.services.candidate_aggregator import Candidate, task_display_name
from dayplanner.services.slot_occupants import encode_reflection, occupancy_from_entry
from dayplanner.services.task_service import get_tasks_by_ids
from dayplanner.services.time_grid import resolve_block_label

router = APIRouter()

_ERROR_STATUS = {
    OccupantConflictError: status.HTTP_409_CONFLICT,
    SlotConflictError: status.HTTP_409_CONFLICT,
    InvalidTaskReferenceError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    EntryNotFoundError: status.HTTP_404_NOT_FOUND,
}


@router.get("/daily/{day}", response_model=DayViewResponse, tags=["daily"])
def get_daily_schedule(
    day: date,
    request: Request,
    user_id: UUID = Query(..., description="User ID owning the schedule"),
    limit: Optional[int] = Query(default=None, ge=1, le=20, description="Visible candidates per slot"),
    db: Session = Depends(get_db),
) -> DayViewResponse:
    """Entries for a date plus the candidate list of every slot."""
    request_id = getattr(request.state, "request_id", None)
    start = perf_counter()
    with trace(
        "daily.view",
        metadata={"route": "/daily/{day}", "date": day, "limit": limit},
        user_id=str(user_id),
        request_id=request_id,
    ):
        view = daily_planner.get_day_view(db, user_id, day, limit=limit)

    latency_ms = (perf_counter() - start) * 1000
    log_metric("daily.view.success", 1, metadata={"user_id": str(user_id)})
    log_metric("daily.view.latency_ms", latency_ms, metadata={"user_id": str(user_id)})

    return DayViewResponse(
        user_id=user_id,
        date=day,
        entries=[serialize_entry(entry, view.tasks_by_id) for entry in view.entries],
        slots=[
            SlotPayload(
                time_block=slot.time_block,
                quartile=slot.quartile,
                entry_id=slot.entry.id if slot.entry is not None else None,
                candidates=[_serialize_candidate(candidate) for candidate in slot.candidates],
                hidden_candidates=[_serialize_candidate(candidate) for candidate in slot.hidden],
                has_more=slot.has_more,
            )
            for slot in view.slots
        ],
        request_id=request_id or "",
    )


@router.post("/daily/generate", response_model=GenerateScheduleResponse, tags=["daily"])
def generate_daily_schedule(
    payload: GenerateScheduleRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> GenerateScheduleResponse:
    """Regenerate the whole schedule of a date. The previous entries are replaced."""
    request_id = getattr(request.state, "request_id", None)
    start = perf_counter()
    try:
        result = daily_planner.generate_daily_schedule(db, payload.user_id, payload.date, request_id=request_id)
    except SchedulingError as exc:
        _raise_http(exc)

    latency_ms = (perf_counter() - start) * 1000
    metric_metadata = {"user_id": str(payload.user_id), "source": result.source}
    log_metric("daily.generate.success", 1, metadata=metric_metadata)
    log_metric("daily.generate.entries", len(result.entries), metadata=metric_metadata)
    log_metric("daily.generate.latency_ms", latency_ms, metadata=metric_metadata)

    tasks_by_id = _tasks_for(db, result.entries)
    return GenerateScheduleResponse(
        user_id=payload.user_id,
        date=payload.date,
        source=result.source,
        entries=[serialize_entry(entry, tasks_by_id) for entry in result.entries],
        tasks_considered=result.tasks_considered,
        request_id=request_id or "",
    )


@router.patch("/daily/entries/{entry_id}", response_model=ScheduleEntryPayload, tags=["daily"])
def update_daily_entry(
    entry_id: UUID,
    payload: EntryUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ScheduleEntryPayload:
    """Partially update one entry."""
    request_id = getattr(request.state, "request_id", None)
    changes = payload.model_dump(exclude_unset=True, exclude={"user_id"})
    if "time_block" in changes and changes["time_block"] is not None:
        changes["time_block"] = _canonical_block_or_422(changes["time_block"])

    with trace(
        "daily.entry.update",
        metadata={"route": "/daily/entries/{entry_id}", "entry_id": str(entry_id), "fields": sorted(changes)},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        try:
            entry = daily_planner.update_schedule_entry(db, payload.user_id, entry_id, changes)
        except SchedulingError as exc:
            _raise_http(exc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    log_metric("daily.entry.update.success", 1, metadata={"user_id": str(payload.user_id)})
    return serialize_entry(entry, _tasks_for(db, [entry]))


@router.post("/daily/occupants", response_model=OccupantChangeResponse, tags=["daily"])
def add_slot_occupant(
    payload: AddOccupantRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> OccupantChangeResponse:
    """Add a regular task or a recurring name to a slot."""
    request_id = getattr(request.state, "request_id", None)
    metadata = _slot_metadata(payload, task_id=payload.task_id, name=payload.name)
    with trace("daily.occupant.add", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        try:
            entry = daily_planner.add_task_to_slot(
                db,
                payload.user_id,
                payload.date,
                payload.time_block,
                payload.quartile,
                task_id=payload.task_id,
                name=payload.name,
                recurring_task_id=payload.recurring_task_id,
                request_id=request_id,
            )
        except OccupantConflictError as exc:
            log_metric("daily.occupant.add.conflict", 1, metadata={"user_id": str(payload.user_id)})
            _raise_http(exc)
        except SchedulingError as exc:
            _raise_http(exc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    log_metric("daily.occupant.add.success", 1, metadata={"user_id": str(payload.user_id)})
    return OccupantChangeResponse(
        entry=serialize_entry(entry, _tasks_for(db, [entry])),
        request_id=request_id or "",
    )


@router.post("/daily/occupants/remove", response_model=OccupantChangeResponse, tags=["daily"])
def remove_slot_occupant(
    payload: RemoveOccupantRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> OccupantChangeResponse:
    """Remove one occupant; ``skip_today`` also hides a recurring occupant for the date."""
    request_id = getattr(request.state, "request_id", None)
    metadata = _slot_metadata(payload, candidate_id=payload.candidate_id, skip_today=payload.skip_today)
    with trace("daily.occupant.remove", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        try:
            outcome = daily_planner.remove_occupant_from_slot(
                db,
                payload.user_id,
                payload.date,
                payload.time_block,
                payload.quartile,
                payload.candidate_id,
                skip_today=payload.skip_today,
                request_id=request_id,
            )
        except SchedulingError as exc:
            _raise_http(exc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    log_metric(
        "daily.occupant.remove.success",
        1,
        metadata={"user_id": str(payload.user_id), "skip_today": payload.skip_today},
    )
    return OccupantChangeResponse(
        entry=serialize_entry(outcome.entry, _tasks_for(db, [outcome.entry])),
        removed_name=outcome.removed.name or None,
        now_empty=outcome.now_empty,
        skip_recorded=outcome.skip is not None,
        request_id=request_id or "",
    )


@router.post("/daily/occupants/complete", response_model=OccupantChangeResponse, tags=["daily"])
def complete_slot_occupant(
    payload: CompleteOccupantRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> OccupantChangeResponse:
    """Mark one occupant of a slot done."""
    request_id = getattr(request.state, "request_id", None)
    metadata = _slot_metadata(payload, candidate_id=payload.candidate_id)
    with trace("daily.occupant.complete", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        try:
            outcome = daily_planner.complete_occupant_in_slot(
                db,
                payload.user_id,
                payload.date,
                payload.time_block,
                payload.quartile,
                payload.candidate_id,
                request_id=request_id,
            )
        except SchedulingError as exc:
            _raise_http(exc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    log_metric("daily.occupant.complete.success", 1, metadata={"user_id": str(payload.user_id)})
    return OccupantChangeResponse(
        entry=serialize_entry(outcome.entry, _tasks_for(db, [outcome.entry])),
        removed_name=outcome.removed.name or None,
        now_empty=outcome.now_empty,
        request_id=request_id or "",
    )


@router.post("/daily/skips", response_model=SkipResponse, tags=["daily"])
def skip_recurring_occurrence(
    payload: SkipRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> SkipResponse:
    """Hide a recurring task from one slot's candidates for one date."""
    request_id = getattr(request.state, "request_id", None)
    metadata = _slot_metadata(payload, recurring_task_id=payload.recurring_task_id, name=payload.name)
    with trace("daily.skip", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        try:
            skip = daily_planner.skip_recurring_occurrence(
                db,
                payload.user_id,
                payload.date,
                payload.time_block,
                payload.quartile,
                recurring_task_id=payload.recurring_task_id,
                name=payload.name,
                request_id=request_id,
            )
        except SchedulingError as exc:
            _raise_http(exc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    log_metric("daily.skip.success", 1, metadata={"user_id": str(payload.user_id)})
    return SkipResponse(
        id=skip.id,
        date=skip.date,
        time_block=skip.time_block,
        quartile=skip.quartile,
        recurring_key=skip.recurring_key,
        request_id=request_id or "",
    )


@router.delete("/daily/{day}", response_model=ClearDayResponse, tags=["daily"])
def clear_daily_schedule(
    day: date,
    request: Request,
    user_id: UUID = Query(..., description="User ID owning the schedule"),
    db: Session = Depends(get_db),
) -> ClearDayResponse:
    """Delete every entry of a date."""
    request_id = getattr(request.state, "request_id", None)
    with trace("daily.clear", metadata={"date": day}, user_id=str(user_id), request_id=request_id):
        deleted = daily_planner.clear_day(db, user_id, day)
    log_metric("daily.clear.success", 1, metadata={"user_id": str(user_id), "deleted": deleted})
    return ClearDayResponse(user_id=user_id, date=day, deleted=deleted, request_id=request_id or "")


def serialize_entry(entry: DailyScheduleEntry, tasks_by_id: Mapping[str, Any]) -> ScheduleEntryPayload:
    regular = entry.actual_task_id or entry.planned_task_id
    return ScheduleEntryPayload(
        id=entry.id,
        date=entry.date,
        time_block=entry.time_block,
        quartile=entry.quartile,
        planned_task_id=entry.planned_task_id,
        actual_task_id=entry.actual_task_id,
        task_name=task_display_name(str(regular), tasks_by_id) if regular else None,
        status=entry.status,
        energy_impact=entry.energy_impact or 0,
        reflection=entry.reflection,
        occupants=[
            OccupantPayload(
                kind=row.kind,
                name=row.name,
                recurring_task_id=row.recurring_task_id,
                position=row.position,
            )
            for row in entry.occupants
        ],
        encoded_occupants=encode_reflection(occupancy_from_entry(entry)),
        start_time=entry.start_time,
        end_time=entry.end_time,
    )


def _serialize_candidate(candidate: Candidate) -> CandidatePayload:
    return CandidatePayload(
        id=candidate.id,
        name=candidate.name,
        kind=candidate.kind,
        is_active=candidate.is_active,
        provenance=candidate.provenance,
        duration_minutes=candidate.duration_minutes,
        entry_id=candidate.entry_id,
        task_id=candidate.task_id,
        recurring_task_id=candidate.recurring_task_id,
    )


def _tasks_for(db: Session, entries: List[DailyScheduleEntry]) -> Dict[str, Any]:
    return get_tasks_by_ids(
        db,
        [task_id for entry in entries for task_id in (entry.planned_task_id, entry.actual_task_id)],
    )


def _slot_metadata(payload, **extra: Any) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "date": payload.date,
        "time_block": payload.time_block,
        "quartile": payload.quartile,
    }
    metadata.update(extra)
    return metadata


def _canonical_block_or_422(label: str) -> str:
    block = resolve_block_label(label)
    if block is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Unknown time block {label!r}")
    return block


def _raise_http(exc: SchedulingError) -> NoReturn:
    status_code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=status_code, detail=str(exc)) from exc

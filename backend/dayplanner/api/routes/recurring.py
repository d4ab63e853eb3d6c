"""Recurring task definition routes."""
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from dayplanner.api.schemas.recurring import RecurringTaskCreateRequest, RecurringTaskSummary
from dayplanner.db.deps import get_db
from dayplanner.db.models.recurring_task import RecurringTask
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services import recurring_service
from dayplanner.services.time_grid import resolve_block_label
from dayplanner.services.user_service import get_or_create_user

router = APIRouter()


@router.get("/recurring-tasks", response_model=List[RecurringTaskSummary], tags=["recurring"])
def list_recurring_tasks(
    request: Request,
    user_id: UUID = Query(..., description="User ID owning the definitions"),
    day: Optional[date] = Query(default=None, alias="date", description="Only definitions occurring on this date"),
    db: Session = Depends(get_db),
) -> List[RecurringTaskSummary]:
    request_id = getattr(request.state, "request_id", None)
    with trace("recurring.list", metadata={"date": day}, user_id=str(user_id), request_id=request_id):
        definitions = recurring_service.list_active_recurring(db, user_id, day)
    log_metric("recurring.list.count", len(definitions), metadata={"user_id": str(user_id)})
    return [_serialize(definition) for definition in definitions]


@router.post(
    "/recurring-tasks",
    response_model=RecurringTaskSummary,
    status_code=status.HTTP_201_CREATED,
    tags=["recurring"],
)
def create_recurring_task(
    payload: RecurringTaskCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> RecurringTaskSummary:
    request_id = getattr(request.state, "request_id", None)
    if resolve_block_label(payload.time_block) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Time block {payload.time_block!r} does not match any block",
        )
    try:
        with trace(
            "recurring.create",
            metadata={"time_block": payload.time_block, "quarter": payload.quarter},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            get_or_create_user(db, payload.user_id)
            definition = recurring_service.create_recurring(db, **payload.model_dump())
            db.commit()
            db.refresh(definition)
    except Exception:
        db.rollback()
        raise
    log_metric("recurring.create.success", 1, metadata={"user_id": str(payload.user_id)})
    return _serialize(definition)


@router.delete("/recurring-tasks/{recurring_task_id}", response_model=RecurringTaskSummary, tags=["recurring"])
def deactivate_recurring_task(
    recurring_task_id: UUID,
    request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> RecurringTaskSummary:
    """Soft-deactivate a definition; past skips and occupants keep their reference."""
    definition = db.get(RecurringTask, recurring_task_id)
    if definition is None or definition.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring task not found")
    request_id = getattr(request.state, "request_id", None)
    try:
        with trace("recurring.deactivate", user_id=str(user_id), request_id=request_id):
            recurring_service.deactivate_recurring(db, definition)
            db.commit()
            db.refresh(definition)
    except Exception:
        db.rollback()
        raise
    log_metric("recurring.deactivate.success", 1, metadata={"user_id": str(user_id)})
    return _serialize(definition)


def _serialize(definition: RecurringTask) -> RecurringTaskSummary:
    return RecurringTaskSummary(
        id=definition.id,
        task_name=definition.task_name,
        time_block=definition.time_block,
        canonical_block=resolve_block_label(definition.time_block),
        quarter=definition.quarter,
        days_of_week=list(definition.days_of_week or []),
        duration_minutes=definition.duration_minutes,
        category=definition.category,
        subcategory=definition.subcategory,
        priority=definition.priority,
        is_active=definition.is_active,
        created_at=definition.created_at,
    )

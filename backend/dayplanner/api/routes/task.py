"""Task API routes."""
from __future__ import annotations

from datetime import date
from time import perf_counter
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from dayplanner.api.schemas.task import TaskCreateRequest, TaskStatusUpdateRequest, TaskSummary
from dayplanner.db.deps import get_db
from dayplanner.db.models.task import TASK_STATUSES, Task
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services import task_service
from dayplanner.services.user_service import get_or_create_user

router = APIRouter()


@router.get("/tasks", response_model=List[TaskSummary], tags=["tasks"])
def list_tasks(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the tasks"),
    task_status: Optional[List[str]] = Query(default=None, alias="status"),
    category: Optional[str] = Query(default=None),
    time_horizon: Optional[str] = Query(default=None),
    from_: Optional[date] = Query(default=None, alias="from"),
    to: Optional[date] = Query(default=None),
    schedulable: bool = Query(default=False, description="Only tasks that can be placed in a time slot"),
    db: Session = Depends(get_db),
) -> List[TaskSummary]:
    """List tasks for a user filtered by status, category, time horizon and due date."""
    request_id = getattr(http_request.state, "request_id", None)
    for value in task_status or []:
        if value not in TASK_STATUSES:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Unknown status {value!r}")

    metadata: Dict[str, Any] = {
        "route": "/tasks",
        "status": task_status,
        "category": category,
        "time_horizon": time_horizon,
        "from": from_,
        "to": to,
        "schedulable": schedulable,
    }
    with trace("task.list", metadata=metadata, user_id=str(user_id), request_id=request_id):
        filters = dict(
            statuses=task_status,
            category=category,
            time_horizon=time_horizon,
            due_from=from_,
            due_to=to,
        )
        if schedulable:
            if not task_status:
                filters.pop("statuses")
            tasks = task_service.list_eligible_tasks(db, user_id, **filters)
        else:
            tasks = task_service.list_tasks(db, user_id, **filters)

    log_metric("task.list.success", 1, metadata={"user_id": str(user_id)})
    log_metric("task.list.count", len(tasks), metadata={"user_id": str(user_id)})
    return [_serialize_task(task) for task in tasks]


@router.post("/tasks", response_model=TaskSummary, status_code=status.HTTP_201_CREATED, tags=["tasks"])
def create_task(
    payload: TaskCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskSummary:
    """Create a task manually."""
    request_id = getattr(http_request.state, "request_id", None)
    start = perf_counter()
    try:
        with trace(
            "task.create",
            metadata={"route": "/tasks", "type": payload.type, "priority": payload.priority},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            get_or_create_user(db, payload.user_id)
            task = Task(**payload.model_dump())
            db.add(task)
            db.commit()
            db.refresh(task)
    except Exception:
        db.rollback()
        raise

    latency_ms = (perf_counter() - start) * 1000
    log_metric("task.create.success", 1, metadata={"user_id": str(payload.user_id)})
    log_metric("task.create.latency_ms", latency_ms, metadata={"user_id": str(payload.user_id)})
    return _serialize_task(task)


@router.patch("/tasks/{task_id}/status", response_model=TaskSummary, tags=["tasks"])
def update_task_status(
    task_id: UUID,
    payload: TaskStatusUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskSummary:
    """Move a task to another status."""
    task = db.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    if task.user_id != payload.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task does not belong to user")

    request_id = getattr(http_request.state, "request_id", None)
    changed = task.status != payload.status
    try:
        with trace(
            "task.status",
            metadata={"route": f"/tasks/{task_id}/status", "status": payload.status, "changed": changed},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            task.status = payload.status
            db.add(task)
            db.commit()
            db.refresh(task)
    except Exception:
        db.rollback()
        raise

    log_metric("task.status.success", 1, metadata={"user_id": str(payload.user_id), "task_id": str(task_id)})
    log_metric("task.status.changed", 1 if changed else 0, metadata={"task_id": str(task_id)})
    return _serialize_task(task)


def _serialize_task(task: Task) -> TaskSummary:
    return TaskSummary(
        id=task.id,
        name=task.name,
        type=task.type,
        category=task.category,
        subcategory=task.subcategory,
        time_horizon=task.time_horizon,
        status=task.status,
        priority=task.priority,
        estimated_time=float(task.estimated_time) if task.estimated_time is not None else None,
        due_date=task.due_date,
        x_date=task.x_date,
        schedulable=task.is_schedulable,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )

"""Task repository queries."""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import asc, nulls_last
from sqlalchemy.orm import Session

from dayplanner.db.models.task import DELIVERABLE_TYPES, Task

SCHEDULABLE_STATUSES = ("not_started", "in_progress")


def list_tasks(
    db: Session,
    user_id: UUID,
    *,
    statuses: Optional[Iterable[str]] = None,
    category: Optional[str] = None,
    time_horizon: Optional[str] = None,
    due_from: Optional[date] = None,
    due_to: Optional[date] = None,
    include_deliverables: bool = True,
) -> List[Task]:
    """Tasks for a user filtered by status, category, time horizon and due-date range."""
    query = db.query(Task).filter(Task.user_id == user_id)
    if statuses:
        query = query.filter(Task.status.in_(list(statuses)))
    if category:
        query = query.filter(Task.category == category)
    if time_horizon:
        query = query.filter(Task.time_horizon == time_horizon)
    if due_from:
        query = query.filter(Task.due_date >= _start_of_day(due_from))
    if due_to:
        query = query.filter(Task.due_date <= _end_of_day(due_to))
    if not include_deliverables:
        query = query.filter(Task.type.notin_(list(DELIVERABLE_TYPES)))
    return query.order_by(nulls_last(asc(Task.due_date)), asc(Task.created_at)).all()


def list_eligible_tasks(db: Session, user_id: UUID, **filters) -> List[Task]:
    """Open tasks that may be placed in a time slot (never Milestones or Sub-Milestones)."""
    filters.setdefault("statuses", SCHEDULABLE_STATUSES)
    return list_tasks(db, user_id, include_deliverables=False, **filters)


def get_task(db: Session, task_id: UUID, user_id: Optional[UUID] = None) -> Optional[Task]:
    task = db.get(Task, task_id)
    if task is None or (user_id is not None and task.user_id != user_id):
        return None
    return task


def get_tasks_by_ids(db: Session, task_ids: Iterable[UUID]) -> Dict[str, Task]:
    """Tasks keyed by string id; missing ids are simply absent."""
    ids = list({task_id for task_id in task_ids if task_id})
    if not ids:
        return {}
    return {str(task.id): task for task in db.query(Task).filter(Task.id.in_(ids)).all()}


def users_with_open_tasks(db: Session) -> List[UUID]:
    rows = (
        db.query(Task.user_id)
        .filter(Task.status.in_(SCHEDULABLE_STATUSES), Task.type.notin_(list(DELIVERABLE_TYPES)))
        .distinct()
        .all()
    )
    return [row[0] for row in rows]


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)

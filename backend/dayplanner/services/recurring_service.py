"""Recurring task definitions and the per-date skip registry."""
from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from dayplanner.db.models.recurring_skip import RecurringSkip
from dayplanner.db.models.recurring_task import RecurringTask
from dayplanner.services.time_grid import WEEKDAY_TOKENS, weekday_token


def list_active_recurring(db: Session, user_id: UUID, day: Optional[date] = None) -> List[RecurringTask]:
    """Active definitions, optionally narrowed to those that occur on ``day``."""
    definitions = (
        db.query(RecurringTask)
        .filter(RecurringTask.user_id == user_id, RecurringTask.is_active.is_(True))
        .order_by(RecurringTask.created_at.asc())
        .all()
    )
    if day is None:
        return definitions
    token = weekday_token(day)
    return [
        definition
        for definition in definitions
        if token in normalize_days(definition.days_of_week or [])
    ]


def create_recurring(
    db: Session,
    *,
    user_id: UUID,
    task_name: str,
    time_block: str,
    quarter: Optional[int] = None,
    days_of_week: Iterable[str] = WEEKDAY_TOKENS,
    duration_minutes: int = 30,
    category: str = "Personal",
    subcategory: Optional[str] = None,
    priority: str = "Medium",
) -> RecurringTask:
    definition = RecurringTask(
        user_id=user_id,
        task_name=task_name.strip(),
        time_block=time_block,
        quarter=quarter,
        days_of_week=normalize_days(days_of_week),
        duration_minutes=duration_minutes,
        category=category,
        subcategory=subcategory,
        priority=priority,
        is_active=True,
    )
    db.add(definition)
    db.flush()
    return definition


def deactivate_recurring(db: Session, definition: RecurringTask) -> RecurringTask:
    definition.is_active = False
    db.add(definition)
    db.flush()
    return definition


def normalize_days(days: Iterable[str]) -> List[str]:
    """Lower-case full weekday names; abbreviations such as "Mon" are expanded."""
    normalized: List[str] = []
    for day in days:
        token = str(day).strip().lower()
        match = next((full for full in WEEKDAY_TOKENS if len(token) >= 3 and full.startswith(token)), None)
        if match and match not in normalized:
            normalized.append(match)
    return normalized


def list_skips(db: Session, user_id: UUID, day: date) -> List[RecurringSkip]:
    """Skip records for a single date."""
    return (
        db.query(RecurringSkip)
        .filter(RecurringSkip.user_id == user_id, RecurringSkip.date == day)
        .all()
    )


def record_skip(
    db: Session,
    *,
    user_id: UUID,
    day: date,
    time_block: str,
    quartile: int,
    recurring_key: str,
) -> Tuple[RecurringSkip, bool]:
    """Record a skip and report whether it is new.

    Recording the same occurrence again returns the existing row.
    """
    existing = _find_skip(db, user_id, day, time_block, quartile, recurring_key)
    if existing:
        return existing, False

    skip = RecurringSkip(
        user_id=user_id,
        date=day,
        time_block=time_block,
        quartile=quartile,
        recurring_key=recurring_key,
    )
    db.add(skip)
    db.flush()
    return skip, True


def _find_skip(
    db: Session,
    user_id: UUID,
    day: date,
    time_block: str,
    quartile: int,
    recurring_key: str,
) -> Optional[RecurringSkip]:
    return (
        db.query(RecurringSkip)
        .filter(
            RecurringSkip.user_id == user_id,
            RecurringSkip.date == day,
            RecurringSkip.time_block == time_block,
            RecurringSkip.quartile == quartile,
            RecurringSkip.recurring_key == recurring_key,
        )
        .one_or_none()
    )

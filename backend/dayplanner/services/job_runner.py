"""Batch job runner for nightly schedule generation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from dayplanner.core.config import settings
from dayplanner.services.daily_planner import generate_daily_schedule
from dayplanner.services.schedule_generator import SOURCE_LOCAL_FALLBACK
from dayplanner.services.task_service import users_with_open_tasks

logger = logging.getLogger(__name__)


@dataclass
class JobRunResult:
    users_processed: int
    schedules_written: int
    fallback_used: int = 0
    failed_user_ids: List[UUID] = field(default_factory=list)


def next_schedule_date(now: Optional[datetime] = None) -> date:
    """Tomorrow in the scheduler's timezone."""
    current = now or datetime.now(ZoneInfo(settings.scheduler_timezone))
    return current.date() + timedelta(days=1)


def run_daily_schedule_for_all_users(
    db: Session,
    *,
    day: Optional[date] = None,
    user_ids: Optional[Iterable[UUID]] = None,
) -> JobRunResult:
    target_day = day or next_schedule_date()
    ids = list(dict.fromkeys(user_ids)) if user_ids is not None else users_with_open_tasks(db)
    users_processed = 0
    schedules_written = 0
    fallback_used = 0
    failed: List[UUID] = []
    for uid in ids:
        users_processed += 1
        try:
            result = generate_daily_schedule(db, uid, target_day)
        except Exception:
            logger.exception("Daily schedule job failed for user %s", uid)
            failed.append(uid)
            continue
        schedules_written += 1
        if result.source == SOURCE_LOCAL_FALLBACK:
            fallback_used += 1
    return JobRunResult(
        users_processed=users_processed,
        schedules_written=schedules_written,
        fallback_used=fallback_used,
        failed_user_ids=failed,
    )

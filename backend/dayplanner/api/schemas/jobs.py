"""Schemas for job operations endpoints."""
from __future__ import annotations

import datetime as dt
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel


class JobRunRequest(BaseModel):
    job: Literal["daily_schedule"] = "daily_schedule"
    user_id: Optional[UUID] = None
    date: Optional[dt.date] = None


class JobRunResponse(BaseModel):
    job: str
    date: dt.date
    users_processed: int
    schedules_written: int
    fallback_used: int
    failed_user_ids: List[UUID]
    request_id: str

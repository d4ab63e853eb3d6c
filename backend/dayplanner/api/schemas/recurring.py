"""Schemas for recurring task definitions."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from dayplanner.services.time_grid import WEEKDAY_TOKENS


class RecurringTaskSummary(BaseModel):
    id: UUID
    task_name: str
    time_block: str
    canonical_block: Optional[str]
    quarter: Optional[int]
    days_of_week: List[str]
    duration_minutes: int
    category: str
    subcategory: Optional[str]
    priority: str
    is_active: bool
    created_at: datetime


class RecurringTaskCreateRequest(BaseModel):
    user_id: UUID
    task_name: str = Field(..., min_length=1, max_length=200)
    time_block: str = Field(..., min_length=1)
    quarter: Optional[int] = Field(default=None, ge=1, le=4)
    days_of_week: List[str] = Field(default_factory=lambda: list(WEEKDAY_TOKENS))
    duration_minutes: int = Field(default=30, ge=1, le=24 * 60)
    category: str = "Personal"
    subcategory: Optional[str] = None
    priority: str = "Medium"

    @field_validator("days_of_week")
    @classmethod
    def _known_days(cls, value: List[str]) -> List[str]:
        for day in value:
            token = day.strip().lower()
            if len(token) < 3 or not any(full.startswith(token) for full in WEEKDAY_TOKENS):
                raise ValueError(f"Unknown weekday {day!r}")
        return value

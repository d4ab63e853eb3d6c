"""Schemas for task endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

TaskType = Literal["Milestone", "Sub-Milestone", "Task", "Subtask"]
TaskStatus = Literal["not_started", "in_progress", "completed", "blocked"]
Priority = Literal["High", "Medium", "Low"]


class TaskSummary(BaseModel):
    id: UUID
    name: str
    type: str
    category: str
    subcategory: Optional[str]
    time_horizon: str
    status: str
    priority: str
    estimated_time: Optional[float]
    due_date: Optional[datetime]
    x_date: Optional[datetime]
    schedulable: bool
    created_at: datetime
    updated_at: datetime


class TaskCreateRequest(BaseModel):
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=500)
    type: TaskType = "Task"
    category: Literal["Personal", "Business"] = "Personal"
    subcategory: Optional[str] = None
    time_horizon: str = "Week"
    status: TaskStatus = "not_started"
    priority: Priority = "Medium"
    estimated_time: Optional[float] = Field(default=None, ge=0)
    why: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    x_date: Optional[datetime] = None


class TaskStatusUpdateRequest(BaseModel):
    user_id: UUID
    status: TaskStatus

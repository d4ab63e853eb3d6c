"""Schemas for the daily schedule endpoints."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

EntryStatus = Literal["not_started", "in_progress", "completed"]


class TimeBlockPayload(BaseModel):
    name: str
    start: str
    end: str
    quartiles: List[List[str]]
    quartile_minutes: int


class TimeBlocksResponse(BaseModel):
    default_block: str
    blocks: List[TimeBlockPayload]


class OccupantPayload(BaseModel):
    kind: str
    name: str
    recurring_task_id: Optional[UUID] = None
    position: int


class ScheduleEntryPayload(BaseModel):
    id: UUID
    date: date
    time_block: str
    quartile: int
    planned_task_id: Optional[UUID]
    actual_task_id: Optional[UUID]
    task_name: Optional[str] = None
    status: str
    energy_impact: int
    reflection: Optional[str]
    occupants: List[OccupantPayload]
    encoded_occupants: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class CandidatePayload(BaseModel):
    id: str
    name: str
    kind: str
    is_active: bool
    provenance: str
    duration_minutes: Optional[int] = None
    entry_id: Optional[str] = None
    task_id: Optional[str] = None
    recurring_task_id: Optional[str] = None


class SlotPayload(BaseModel):
    time_block: str
    quartile: int
    entry_id: Optional[UUID] = None
    candidates: List[CandidatePayload]
    hidden_candidates: List[CandidatePayload] = Field(default_factory=list)
    has_more: bool = False


class DayViewResponse(BaseModel):
    user_id: UUID
    date: date
    entries: List[ScheduleEntryPayload]
    slots: List[SlotPayload]
    request_id: str


class GenerateScheduleRequest(BaseModel):
    user_id: UUID
    date: date


class GenerateScheduleResponse(BaseModel):
    user_id: UUID
    date: date
    source: Literal["openai", "local_fallback"]
    entries: List[ScheduleEntryPayload]
    tasks_considered: int
    request_id: str


class SlotRequest(BaseModel):
    user_id: UUID
    date: date
    time_block: str = Field(..., min_length=1)
    quartile: int = Field(..., ge=1, le=4)


class AddOccupantRequest(SlotRequest):
    task_id: Optional[UUID] = None
    recurring_task_id: Optional[UUID] = None
    name: Optional[str] = Field(default=None, max_length=200)


class RemoveOccupantRequest(SlotRequest):
    candidate_id: str = Field(..., min_length=1)
    skip_today: bool = False


class CompleteOccupantRequest(SlotRequest):
    candidate_id: str = Field(..., min_length=1)


class OccupantChangeResponse(BaseModel):
    entry: ScheduleEntryPayload
    removed_name: Optional[str] = None
    now_empty: bool = False
    skip_recorded: bool = False
    request_id: str


class SkipRequest(SlotRequest):
    recurring_task_id: Optional[UUID] = None
    name: Optional[str] = Field(default=None, max_length=200)


class SkipResponse(BaseModel):
    id: UUID
    date: date
    time_block: str
    quartile: int
    recurring_key: str
    request_id: str


class EntryUpdateRequest(BaseModel):
    user_id: UUID
    time_block: Optional[str] = None
    quartile: Optional[int] = Field(default=None, ge=1, le=4)
    planned_task_id: Optional[UUID] = None
    actual_task_id: Optional[UUID] = None
    status: Optional[EntryStatus] = None
    energy_impact: Optional[int] = Field(default=None, ge=-5, le=5)
    reflection: Optional[str] = Field(default=None, max_length=2000)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class ClearDayResponse(BaseModel):
    user_id: UUID
    date: date
    deleted: int
    request_id: str

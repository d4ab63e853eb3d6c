"""Task ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from dayplanner.db.base import Base

TASK_TYPES = ("Milestone", "Sub-Milestone", "Task", "Subtask")
DELIVERABLE_TYPES = frozenset({"Milestone", "Sub-Milestone"})
TASK_STATUSES = ("not_started", "in_progress", "completed", "blocked")
PRIORITIES = ("High", "Medium", "Low")
TIME_HORIZONS = ("VISION", "10 Year", "5 Year", "1 Year", "Quarter", "Week", "Today", "BACKLOG")


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_user_id", "user_id"),
        Index("ix_tasks_status", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    type = Column(String(length=32), nullable=False, server_default=sa_text("'Task'"), default="Task")
    category = Column(String(length=32), nullable=False, server_default=sa_text("'Personal'"), default="Personal")
    subcategory = Column(String(length=32), nullable=True)
    time_horizon = Column(String(length=32), nullable=False, server_default=sa_text("'Week'"), default="Week")
    status = Column(String(length=32), nullable=False, server_default=sa_text("'not_started'"), default="not_started")
    priority = Column(String(length=16), nullable=False, server_default=sa_text("'Medium'"), default="Medium")
    # Hours, as entered by the user or the extractor.
    estimated_time = Column(Numeric(5, 2), nullable=True)
    progress = Column(Integer, nullable=True, default=0)
    why = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    x_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def is_schedulable(self) -> bool:
        return self.type not in DELIVERABLE_TYPES

"""Recurring task definition ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from dayplanner.db.base import Base
from dayplanner.db.types import JSONBCompat


class RecurringTask(Base):
    __tablename__ = "recurring_tasks"
    __table_args__ = (
        Index("ix_recurring_tasks_user_id", "user_id"),
        CheckConstraint("quarter IS NULL OR quarter BETWEEN 1 AND 4", name="ck_recurring_tasks_quarter"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    task_name = Column(Text, nullable=False)
    # Canonical block name or a human label such as "PHYSICAL MENTAL (7-9AM)".
    time_block = Column(Text, nullable=False)
    quarter = Column(Integer, nullable=True)
    days_of_week = Column(JSONBCompat, nullable=False, default=list)
    duration_minutes = Column(Integer, nullable=False, default=30)
    category = Column(String(length=32), nullable=False, server_default=sa_text("'Personal'"), default="Personal")
    subcategory = Column(String(length=32), nullable=True)
    priority = Column(String(length=16), nullable=False, server_default=sa_text("'Medium'"), default="Medium")
    is_active = Column(Boolean, nullable=False, server_default=sa_text("true"), default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

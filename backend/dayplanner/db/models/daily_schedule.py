"""Daily schedule entry and slot occupant ORM models."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text as sa_text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from dayplanner.db.base import Base

ENTRY_STATUSES = ("not_started", "in_progress", "completed")


class DailyScheduleEntry(Base):
    __tablename__ = "daily_schedules"
    __table_args__ = (
        UniqueConstraint("user_id", "date", "time_block", "quartile", name="uq_daily_schedules_slot"),
        CheckConstraint("quartile BETWEEN 1 AND 4", name="ck_daily_schedules_quartile"),
        Index("ix_daily_schedules_user_date", "user_id", "date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    time_block = Column(Text, nullable=False)
    quartile = Column(Integer, nullable=False)
    planned_task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    actual_task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(length=32), nullable=False, server_default=sa_text("'not_started'"), default="not_started")
    energy_impact = Column(Integer, nullable=False, server_default=sa_text("0"), default=0)
    reflection = Column(Text, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    occupants = relationship(
        "SlotOccupant",
        back_populates="entry",
        order_by="SlotOccupant.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class SlotOccupant(Base):
    """A recurring (or placeholder) occupant of one schedule slot.

    The regular task of a slot stays on ``DailyScheduleEntry.planned_task_id`` /
    ``actual_task_id``; this table holds the unbounded list of name-only
    occupants in display order.
    """

    __tablename__ = "slot_occupants"
    __table_args__ = (Index("ix_slot_occupants_entry_id", "entry_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    entry_id = Column(UUID(as_uuid=True), ForeignKey("daily_schedules.id", ondelete="CASCADE"), nullable=False)
    kind = Column(String(length=16), nullable=False, default="recurring")
    name = Column(Text, nullable=False)
    recurring_task_id = Column(
        UUID(as_uuid=True),
        ForeignKey("recurring_tasks.id", ondelete="SET NULL"),
        nullable=True,
    )
    position = Column(Integer, nullable=False, default=0)

    entry = relationship("DailyScheduleEntry", back_populates="occupants")

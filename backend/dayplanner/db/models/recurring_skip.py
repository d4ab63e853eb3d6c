"""Per-date skip registry for recurring occurrences."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from dayplanner.db.base import Base


class RecurringSkip(Base):
    __tablename__ = "recurring_skips"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "date",
            "time_block",
            "quartile",
            "recurring_key",
            name="uq_recurring_skips_occurrence",
        ),
        Index("ix_recurring_skips_user_date", "user_id", "date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    time_block = Column(Text, nullable=False)
    quartile = Column(Integer, nullable=False)
    # Recurring definition id, or "name:<task name>" when no definition could be matched.
    recurring_key = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

"""User ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, Text, func
from sqlalchemy.dialects.postgresql import UUID

from dayplanner.db.base import Base
from dayplanner.db.types import JSONBCompat


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    username = Column(Text, nullable=True, unique=True)
    # {"start": "9:00", "end": "17:00"}; forwarded to the schedule generator as preferences.
    work_hours = Column(JSONBCompat, nullable=True)
    energy_patterns = Column(JSONBCompat, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

"""Helpers for working with users."""
from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dayplanner.db.models.user import User


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Fetch an existing user or create the row on first use."""
    user = db.get(User, user_id)
    if user:
        return user

    user = User(id=user_id)
    db.add(user)
    try:
        db.flush()
        return user
    except IntegrityError:
        db.rollback()
        existing = db.get(User, user_id)
        if existing:
            return existing
        raise


def schedule_preferences(user: User | None) -> dict:
    """Preferences forwarded to the schedule generator."""
    if user is None:
        return {}
    preferences = {}
    if user.work_hours:
        preferences["work_hours"] = user.work_hours
    if user.energy_patterns:
        preferences["energy_patterns"] = user.energy_patterns
    return preferences

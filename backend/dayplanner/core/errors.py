"""Domain errors raised by the scheduling services."""
from __future__ import annotations


class SchedulingError(Exception):
    """Base class for errors the HTTP layer translates into client responses."""


class OccupantConflictError(SchedulingError):
    """A slot already holds a regular task and another regular task was added."""

    def __init__(self, time_block: str, quartile: int, existing_task_id: str) -> None:
        self.time_block = time_block
        self.quartile = quartile
        self.existing_task_id = existing_task_id
        super().__init__(
            f"{time_block} Q{quartile} already holds task {existing_task_id}. "
            "Remove it first, pick another quartile, or add the new task as a recurring occupant."
        )


class InvalidTaskReferenceError(SchedulingError):
    """A task id points at a task that cannot be scheduled (missing, foreign or a milestone)."""


class SlotConflictError(SchedulingError):
    """Two entries were submitted for the same (date, time block, quartile)."""


class EntryNotFoundError(SchedulingError):
    """The schedule entry or occupant does not exist for this user."""

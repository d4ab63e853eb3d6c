"""ORM models exposed for metadata discovery."""
from dayplanner.db.models.agent_action_log import AgentActionLog
from dayplanner.db.models.daily_schedule import DailyScheduleEntry, SlotOccupant
from dayplanner.db.models.recurring_skip import RecurringSkip
from dayplanner.db.models.recurring_task import RecurringTask
from dayplanner.db.models.task import Task
from dayplanner.db.models.user import User

__all__ = [
    "AgentActionLog",
    "DailyScheduleEntry",
    "RecurringSkip",
    "RecurringTask",
    "SlotOccupant",
    "Task",
    "User",
]

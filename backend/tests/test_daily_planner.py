from __future__ import annotations

import json
import threading
from datetime import date
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dayplanner.core.config import settings
from dayplanner.core.errors import EntryNotFoundError, InvalidTaskReferenceError, OccupantConflictError
from dayplanner.db.models.agent_action_log import AgentActionLog
from dayplanner.db.models.daily_schedule import DailyScheduleEntry, SlotOccupant
from dayplanner.db.models.recurring_skip import RecurringSkip
from dayplanner.db.models.recurring_task import RecurringTask
from dayplanner.db.models.task import Task
from dayplanner.db.models.user import User
from dayplanner.services import daily_planner, schedule_generator

MONDAY = date(2024, 6, 3)
BLOCK = "PHYSICAL MENTAL"


def _session(url="sqlite://"):
    pool_args = {"poolclass": StaticPool} if url == "sqlite://" else {}
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False},
        future=True,
        **pool_args,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    Task.__table__.create(bind=engine)
    RecurringTask.__table__.create(bind=engine)
    DailyScheduleEntry.__table__.create(bind=engine)
    SlotOccupant.__table__.create(bind=engine)
    RecurringSkip.__table__.create(bind=engine)
    AgentActionLog.__table__.create(bind=engine)
    return TestingSession


def _seed_user(Session):
    session = Session()
    try:
        user_id = uuid4()
        session.add(User(id=user_id))
        session.commit()
        return user_id
    finally:
        session.close()


def _seed_task(Session, user_id, name, **kwargs):
    session = Session()
    try:
        task = Task(user_id=user_id, name=name, **kwargs)
        session.add(task)
        session.commit()
        return task.id
    finally:
        session.close()


def _seed_recurring(Session, user_id, name, quarter=None, days=("monday",)):
    session = Session()
    try:
        definition = RecurringTask(
            user_id=user_id,
            task_name=name,
            time_block="PHYSICAL MENTAL (7-9AM)",
            quarter=quarter,
            days_of_week=list(days),
            duration_minutes=15,
        )
        session.add(definition)
        session.commit()
        return definition.id
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _no_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(settings, "openai_api_key", None)


def test_generate_uses_fallback_and_only_eligible_tasks() -> None:
    Session = _session()
    user_id = _seed_user(Session)
    report = _seed_task(Session, user_id, "Write report", priority="High")
    _seed_task(Session, user_id, "Launch product", type="Milestone", priority="High")
    _seed_task(Session, user_id, "Old chore", status="completed")
    _seed_recurring(Session, user_id, "Meditate", quarter=1)

    session = Session()
    result = daily_planner.generate_daily_schedule(session, user_id, MONDAY, request_id="req-1")

    assert result.source == "local_fallback"
    assert result.tasks_considered == 1
    assert [(e.time_block, e.quartile, e.planned_task_id) for e in result.entries] == [
        ("CHIEF PROJECT", 1, report),
    ]
    log = session.query(AgentActionLog).filter(AgentActionLog.action_type == "daily_schedule_generated").one()
    assert log.action_payload["source"] == "local_fallback"
    assert log.action_payload["request_id"] == "req-1"

    again = daily_planner.generate_daily_schedule(session, user_id, MONDAY)
    assert len(again.entries) == 1
    assert session.query(DailyScheduleEntry).count() == 1
    session.close()


def test_generate_keeps_recurring_occupants_from_model(monkeypatch) -> None:
    Session = _session()
    user_id = _seed_user(Session)
    report = _seed_task(Session, user_id, "Write report")
    meditate = _seed_recurring(Session, user_id, "Meditate", quarter=1)
    content = json.dumps(
        [
            {"timeBlock": "PHYSICAL MENTAL (7-9AM)", "tasks": ["Meditate"]},
            {"timeBlock": "CHIEF PROJECT", "tasks": [{"id": str(report), "name": "Write report"}, {"id": str(uuid4())}]},
        ]
    )

    class _DummyOpenAI:
        def __init__(self, **kwargs):
            self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

        def _create(self, **kwargs):
            return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    monkeypatch.setattr(schedule_generator.openai, "OpenAI", _DummyOpenAI)
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")

    session = Session()
    result = daily_planner.generate_daily_schedule(session, user_id, MONDAY)

    assert result.source == "openai"
    slots = {(e.time_block, e.quartile): e for e in result.entries}
    assert set(slots) == {(BLOCK, 1), ("CHIEF PROJECT", 1)}
    assert [(row.name, row.recurring_task_id) for row in slots[(BLOCK, 1)].occupants] == [("Meditate", meditate)]
    assert slots[("CHIEF PROJECT", 1)].planned_task_id == report
    session.close()


def test_second_regular_task_conflicts_and_keeps_first() -> None:
    Session = _session()
    user_id = _seed_user(Session)
    first = _seed_task(Session, user_id, "Write report")
    second = _seed_task(Session, user_id, "Email investors")

    session = Session()
    daily_planner.add_task_to_slot(session, user_id, MONDAY, "CHIEF PROJECT", 1, task_id=first)
    with pytest.raises(OccupantConflictError):
        daily_planner.add_task_to_slot(session, user_id, MONDAY, "chief project", 1, task_id=second)

    entry = session.query(DailyScheduleEntry).one()
    assert entry.planned_task_id == first
    session.close()


def test_milestone_cannot_be_added() -> None:
    Session = _session()
    user_id = _seed_user(Session)
    milestone = _seed_task(Session, user_id, "Launch", type="Milestone")

    session = Session()
    with pytest.raises(InvalidTaskReferenceError):
        daily_planner.add_task_to_slot(session, user_id, MONDAY, "CHIEF PROJECT", 1, task_id=milestone)
    with pytest.raises(ValueError):
        daily_planner.add_task_to_slot(session, user_id, MONDAY, "CHIEF PROJECT", 1)
    assert session.query(DailyScheduleEntry).count() == 0
    session.close()


def test_recurring_names_stack_and_view_lists_them() -> None:
    Session = _session()
    user_id = _seed_user(Session)
    _seed_recurring(Session, user_id, "Journal", quarter=1)

    session = Session()
    daily_planner.add_task_to_slot(session, user_id, MONDAY, BLOCK, 1, name="Meditate")
    entry = daily_planner.add_task_to_slot(session, user_id, MONDAY, BLOCK, 1, name="Stretch")

    assert [row.name for row in entry.occupants] == ["Meditate", "Stretch"]

    view = daily_planner.get_day_view(session, user_id, MONDAY)
    slot = next(s for s in view.slots if (s.time_block, s.quartile) == (BLOCK, 1))
    assert [c.name for c in slot.candidates] == ["Meditate", "Stretch", "Journal"]
    assert [c.is_active for c in slot.candidates] == [True, True, False]
    session.close()


def test_remove_with_skip_today_hides_definition() -> None:
    Session = _session()
    user_id = _seed_user(Session)
    stretch = _seed_recurring(Session, user_id, "Stretch", quarter=2)

    session = Session()
    daily_planner.add_task_to_slot(session, user_id, MONDAY, BLOCK, 2, recurring_task_id=stretch)
    outcome = daily_planner.remove_occupant_from_slot(
        session,
        user_id,
        MONDAY,
        BLOCK,
        2,
        f"recurring-{BLOCK}-2",
        skip_today=True,
    )

    assert outcome.now_empty is True
    assert outcome.skip is not None
    assert outcome.skip.recurring_key == str(stretch)

    view = daily_planner.get_day_view(session, user_id, MONDAY)
    slot = next(s for s in view.slots if (s.time_block, s.quartile) == (BLOCK, 2))
    assert slot.candidates == []
    session.close()


def test_skip_is_idempotent() -> None:
    Session = _session()
    user_id = _seed_user(Session)
    stretch = _seed_recurring(Session, user_id, "Stretch")

    session = Session()
    first = daily_planner.skip_recurring_occurrence(session, user_id, MONDAY, BLOCK, 3, recurring_task_id=stretch)
    second = daily_planner.skip_recurring_occurrence(session, user_id, MONDAY, BLOCK, 3, name="stretch")

    assert first.id == second.id
    assert session.query(RecurringSkip).count() == 1
    logs = session.query(AgentActionLog).filter(AgentActionLog.action_type == "recurring_occurrence_skipped").all()
    assert len(logs) == 1

    with pytest.raises(EntryNotFoundError):
        daily_planner.skip_recurring_occurrence(session, user_id, MONDAY, BLOCK, 3, recurring_task_id=uuid4())
    session.close()


def test_completing_last_occupant_completes_entry() -> None:
    Session = _session()
    user_id = _seed_user(Session)
    report = _seed_task(Session, user_id, "Write report")

    session = Session()
    daily_planner.add_task_to_slot(session, user_id, MONDAY, BLOCK, 1, task_id=report)
    daily_planner.add_task_to_slot(session, user_id, MONDAY, BLOCK, 1, name="Walk")

    outcome = daily_planner.complete_occupant_in_slot(session, user_id, MONDAY, BLOCK, 1, str(report))
    assert outcome.entry.status == "in_progress"
    assert outcome.entry.actual_task_id == report
    assert session.get(Task, report).status == "completed"

    outcome = daily_planner.complete_occupant_in_slot(session, user_id, MONDAY, BLOCK, 1, f"recurring-{BLOCK}-1")
    assert outcome.now_empty is False
    assert outcome.entry.status == "completed"
    assert outcome.entry.occupants == []

    with pytest.raises(EntryNotFoundError):
        daily_planner.complete_occupant_in_slot(session, user_id, MONDAY, "Recover", 1, "anything")
    session.close()


def test_completing_only_recurring_occupant_completes_entry() -> None:
    Session = _session()
    user_id = _seed_user(Session)

    session = Session()
    daily_planner.add_task_to_slot(session, user_id, MONDAY, BLOCK, 4, name="Walk")
    outcome = daily_planner.complete_occupant_in_slot(session, user_id, MONDAY, BLOCK, 4, "Walk")

    assert outcome.now_empty is True
    assert outcome.entry.status == "completed"
    session.close()


def test_update_entry_rejects_milestone_and_clear_day() -> None:
    Session = _session()
    user_id = _seed_user(Session)
    report = _seed_task(Session, user_id, "Write report")
    milestone = _seed_task(Session, user_id, "Launch", type="Milestone")

    session = Session()
    entry = daily_planner.add_task_to_slot(session, user_id, MONDAY, "CHIEF PROJECT", 1, task_id=report)

    with pytest.raises(InvalidTaskReferenceError):
        daily_planner.update_schedule_entry(session, user_id, entry.id, {"planned_task_id": milestone})

    updated = daily_planner.update_schedule_entry(session, user_id, entry.id, {"status": "in_progress", "energy_impact": 2})
    assert updated.status == "in_progress"
    assert updated.energy_impact == 2

    assert daily_planner.clear_day(session, user_id, MONDAY) == 1
    assert session.query(DailyScheduleEntry).count() == 0
    session.close()


def test_day_lock_forgets_released_days() -> None:
    user_id = uuid4()

    with daily_planner.day_lock(user_id, MONDAY):
        assert (str(user_id), MONDAY.isoformat()) in daily_planner._day_locks
    for _ in range(50):
        with daily_planner.day_lock(uuid4(), MONDAY):
            pass

    assert daily_planner._day_locks == {}


def test_concurrent_generation_for_same_day_keeps_one_schedule(tmp_path, monkeypatch) -> None:
    Session = _session(f"sqlite:///{tmp_path / 'planner.db'}")
    user_id = _seed_user(Session)
    report = _seed_task(Session, user_id, "Write report")
    email = _seed_task(Session, user_id, "Email investors")
    payloads = {
        "first": [{"timeBlock": "CHIEF PROJECT", "tasks": ["Write report", "Email investors"]}],
        "second": [{"timeBlock": "ENVIRONMENTAL", "tasks": ["Email investors"]}],
    }
    barrier = threading.Barrier(2, timeout=5)

    def fake_generate(tasks, recurring, preferences, *, day, user_id, request_id=None):
        barrier.wait()
        return schedule_generator.RawSchedulePayload(schedule=payloads[request_id], source="llm")

    monkeypatch.setattr(daily_planner, "generate_raw_schedule", fake_generate)
    errors = []

    def run(request_id):
        session = Session()
        try:
            daily_planner.generate_daily_schedule(session, user_id, MONDAY, request_id=request_id)
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=run, args=(request_id,)) for request_id in payloads]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    session = Session()
    stored = {
        (entry.time_block, entry.quartile, entry.planned_task_id)
        for entry in session.query(DailyScheduleEntry).filter(DailyScheduleEntry.user_id == user_id)
    }
    assert stored in (
        {("CHIEF PROJECT", 1, report), ("CHIEF PROJECT", 2, email)},
        {("ENVIRONMENTAL", 1, email)},
    )
    assert session.query(AgentActionLog).count() == 2
    assert daily_planner._day_locks == {}
    session.close()

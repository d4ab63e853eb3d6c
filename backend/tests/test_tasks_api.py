from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dayplanner.db.deps import get_db
from dayplanner.db.models.task import Task
from dayplanner.db.models.user import User
from dayplanner.main import app


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    Task.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create(client, user_id, name, **extra):
    resp = client.post("/tasks", json={"user_id": str(user_id), "name": name, **extra})
    assert resp.status_code == 201
    return resp.json()


def test_create_task_defaults(client) -> None:
    user_id = uuid4()

    task = _create(client, user_id, "Write report", estimated_time=1.5)

    assert task["type"] == "Task"
    assert task["status"] == "not_started"
    assert task["priority"] == "Medium"
    assert task["estimated_time"] == 1.5
    assert task["schedulable"] is True


def test_list_tasks_filters(client) -> None:
    user_id = uuid4()
    _create(client, user_id, "Write report", category="Business", due_date="2024-06-03T10:00:00Z")
    _create(client, user_id, "Launch", type="Milestone", category="Business")
    _create(client, user_id, "Old chore", status="completed", due_date="2024-07-01T10:00:00Z")
    _create(client, uuid4(), "Someone else's task")

    everything = client.get("/tasks", params={"user_id": str(user_id)})
    assert everything.status_code == 200
    assert len(everything.json()) == 3

    business = client.get("/tasks", params={"user_id": str(user_id), "category": "Business"}).json()
    assert {t["name"] for t in business} == {"Write report", "Launch"}

    completed = client.get("/tasks", params={"user_id": str(user_id), "status": ["completed"]}).json()
    assert [t["name"] for t in completed] == ["Old chore"]

    june = client.get("/tasks", params={"user_id": str(user_id), "from": "2024-06-01", "to": "2024-06-30"}).json()
    assert [t["name"] for t in june] == ["Write report"]

    schedulable = client.get("/tasks", params={"user_id": str(user_id), "schedulable": "true"}).json()
    assert [t["name"] for t in schedulable] == ["Write report"]


def test_list_tasks_rejects_unknown_status(client) -> None:
    resp = client.get("/tasks", params={"user_id": str(uuid4()), "status": ["paused"]})

    assert resp.status_code == 422


def test_update_task_status(client) -> None:
    user_id = uuid4()
    task = _create(client, user_id, "Write report")

    resp = client.patch(f"/tasks/{task['id']}/status", json={"user_id": str(user_id), "status": "in_progress"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "in_progress"

    forbidden = client.patch(f"/tasks/{task['id']}/status", json={"user_id": str(uuid4()), "status": "completed"})
    assert forbidden.status_code == 403

    missing = client.patch(f"/tasks/{uuid4()}/status", json={"user_id": str(user_id), "status": "completed"})
    assert missing.status_code == 404


def test_milestones_are_not_schedulable(client) -> None:
    task = _create(client, uuid4(), "Launch", type="Milestone")

    assert task["schedulable"] is False

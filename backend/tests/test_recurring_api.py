from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dayplanner.db.deps import get_db
from dayplanner.db.models.recurring_task import RecurringTask
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
    def set_fk(conn, record):  # pragma: no cover
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    RecurringTask.__table__.create(bind=engine)

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


def test_create_recurring_task_resolves_block(client) -> None:
    user_id = uuid4()

    resp = client.post(
        "/recurring-tasks",
        json={
            "user_id": str(user_id),
            "task_name": " Meditate ",
            "time_block": "PHYSICAL MENTAL (7-9AM)",
            "quarter": 1,
            "days_of_week": ["Mon", "wed", "Friday"],
        },
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["task_name"] == "Meditate"
    assert body["time_block"] == "PHYSICAL MENTAL (7-9AM)"
    assert body["canonical_block"] == "PHYSICAL MENTAL"
    assert body["days_of_week"] == ["monday", "wednesday", "friday"]
    assert body["is_active"] is True


def test_create_rejects_unknown_block_and_weekday(client) -> None:
    user_id = str(uuid4())

    bad_block = client.post("/recurring-tasks", json={"user_id": user_id, "task_name": "Nap", "time_block": "Lunch"})
    bad_day = client.post(
        "/recurring-tasks",
        json={"user_id": user_id, "task_name": "Nap", "time_block": "Recover", "days_of_week": ["Funday"]},
    )
    bad_quarter = client.post(
        "/recurring-tasks",
        json={"user_id": user_id, "task_name": "Nap", "time_block": "Recover", "quarter": 5},
    )

    assert bad_block.status_code == 422
    assert bad_day.status_code == 422
    assert bad_quarter.status_code == 422


def test_list_filters_by_date_and_deactivate(client) -> None:
    user_id = uuid4()
    weekday = client.post(
        "/recurring-tasks",
        json={"user_id": str(user_id), "task_name": "Standup", "time_block": "CHIEF PROJECT", "days_of_week": ["monday"]},
    ).json()
    client.post(
        "/recurring-tasks",
        json={"user_id": str(user_id), "task_name": "Long run", "time_block": "PHYSICAL MENTAL", "days_of_week": ["sunday"]},
    )

    all_defs = client.get("/recurring-tasks", params={"user_id": str(user_id)}).json()
    monday = client.get("/recurring-tasks", params={"user_id": str(user_id), "date": "2024-06-03"}).json()

    assert {d["task_name"] for d in all_defs} == {"Standup", "Long run"}
    assert [d["task_name"] for d in monday] == ["Standup"]

    resp = client.delete(f"/recurring-tasks/{weekday['id']}", params={"user_id": str(user_id)})
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False
    assert client.get("/recurring-tasks", params={"user_id": str(user_id), "date": "2024-06-03"}).json() == []

    other_user = client.delete(f"/recurring-tasks/{weekday['id']}", params={"user_id": str(uuid4())})
    assert other_user.status_code == 404

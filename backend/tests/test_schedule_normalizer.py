"""Tests for schedule payload normalization."""
from __future__ import annotations

import json
from datetime import date
from types import SimpleNamespace

import pytest

from dayplanner.services.schedule_generator import build_local_schedule
from dayplanner.services.schedule_normalizer import (
    ArrayShape,
    EmptyShape,
    FlatObjectShape,
    classify_payload,
    normalize_schedule,
)
from dayplanner.services.task_resolver import build_task_index

DAY = date(2024, 6, 3)


def _task(task_id: str, name: str, task_type: str = "Task", priority: str = "Medium"):
    return SimpleNamespace(id=task_id, name=name, type=task_type, priority=priority, status="not_started", due_date=None)


@pytest.fixture()
def tasks():
    return [
        _task("t1", "Write report", priority="High"),
        _task("t2", "Email investors"),
        _task("t3", "Clean garage", priority="Low"),
        _task("m1", "Launch Product", task_type="Milestone"),
    ]


@pytest.fixture()
def index(tasks):
    return build_task_index(tasks)


def test_flat_time_range_entry(index) -> None:
    raw = {"9:00-11:00": {"assignedTask": "Write report", "quartile": "2nd"}}

    drafts = normalize_schedule(raw, DAY, index)

    assert len(drafts) == 1
    draft = drafts[0]
    assert (draft.date, draft.time_block, draft.quartile, draft.planned_task_id) == (DAY, "CHIEF PROJECT", 2, "t1")
    assert draft.status == "not_started"


def test_flat_evening_range_uses_trailing_meridiem(index) -> None:
    raw = {
        "6-8PM": {"assignedTask": "Clean garage", "quartile": "fourth (7:30-8:00)"},
        "2-4pm": "Email investors",
    }

    drafts = normalize_schedule(raw, DAY, index)

    assert [(d.time_block, d.quartile, d.planned_task_id) for d in drafts] == [
        ("COMPANY BLOCK", 1, "t2"),
        ("ENVIRONMENTAL", 4, "t3"),
    ]


def test_array_blocks_fill_quartiles_by_position(index) -> None:
    raw = [
        {"timeBlock": "CHIEF PROJECT", "tasks": [{"id": "t1", "name": "Write report"}, "Email investors"]},
        {"timeBlock": "ENVIRONMENTAL", "tasks": [{"name": "clean garage"}]},
    ]

    drafts = normalize_schedule(raw, DAY, index)

    assert [(d.time_block, d.quartile, d.planned_task_id) for d in drafts] == [
        ("CHIEF PROJECT", 1, "t1"),
        ("CHIEF PROJECT", 2, "t2"),
        ("ENVIRONMENTAL", 1, "t3"),
    ]


def test_array_block_caps_at_four_quartiles(index) -> None:
    raw = [{"timeBlock": "COMPANY BLOCK", "tasks": ["Write report", "Email investors", "Clean garage", "A", "B"]}]

    drafts = normalize_schedule(raw, DAY, index)

    assert [d.quartile for d in drafts] == [1, 2, 3, 4]
    assert all(d.time_block == "COMPANY BLOCK" for d in drafts)


def test_quartile_wrappers_and_single_task_objects(index) -> None:
    raw = {
        "schedule": [
            {"name": "HOUR OF POWER", "quartiles": [{"task": "Email investors"}, None, {"task": "Write report"}]},
            {"start": "16:30", "task": {"name": "Clean garage"}, "quartile": "last"},
        ]
    }

    drafts = normalize_schedule(raw, DAY, index)

    assert [(d.time_block, d.quartile, d.planned_task_id) for d in drafts] == [
        ("HOUR OF POWER", 1, "t2"),
        ("HOUR OF POWER", 3, "t1"),
        ("BUSINESS AUTOMATION", 4, "t3"),
    ]


def test_unknown_block_label_falls_back_to_default(index) -> None:
    drafts = normalize_schedule({"somewhere": "Write report"}, DAY, index)

    assert [(d.time_block, d.quartile) for d in drafts] == [("FLEXIBLE BLOCK", 1)]


def test_duplicate_slot_keeps_first(index) -> None:
    raw = [
        {"timeBlock": "CHIEF PROJECT", "task": "Write report", "quartile": 1},
        {"timeBlock": "chief project", "task": "Email investors", "quartile": "1st"},
    ]

    drafts = normalize_schedule(raw, DAY, index)

    assert len(drafts) == 1
    assert drafts[0].planned_task_id == "t1"


def test_invented_ids_are_dropped(index) -> None:
    raw = [{"timeBlock": "CHIEF PROJECT", "tasks": [{"id": "ghost-id"}, {"id": "t2"}]}]

    drafts = normalize_schedule(raw, DAY, index)

    assert [(d.quartile, d.planned_task_id) for d in drafts] == [(2, "t2")]


def test_milestones_never_scheduled(index) -> None:
    raw = [
        {"timeBlock": "CHIEF PROJECT", "tasks": ["Launch Product", {"id": "m1", "name": "Launch Product"}]},
    ]

    drafts = normalize_schedule(raw, DAY, index)

    assert all(d.planned_task_id != "m1" for d in drafts)
    assert [(d.quartile, d.planned_task_id) for d in drafts] == [(1, None)]


def test_unresolved_recurring_name_becomes_occupant(index) -> None:
    meditate = SimpleNamespace(
        id="r1",
        task_name="Meditate",
        time_block="PHYSICAL MENTAL (7-9AM)",
        quarter=1,
        days_of_week=["monday"],
        is_active=True,
    )
    raw = [{"timeBlock": "PHYSICAL MENTAL", "tasks": ["meditate", "Journal"]}]

    drafts = normalize_schedule(raw, DAY, index, [meditate])

    assert [d.quartile for d in drafts] == [1, 2]
    assert drafts[0].planned_task_id is None
    assert [(o.name, o.recurring_task_id) for o in drafts[0].occupants] == [("Meditate", "r1")]
    assert drafts[1].planned_task_id is None
    assert drafts[1].occupants == ()


def test_output_sorted_in_grid_order(index) -> None:
    raw = {"WIND DOWN": "Clean garage", "07:30": "Email investors", "notes": "ignore me"}

    drafts = normalize_schedule(raw, DAY, index)

    assert [d.time_block for d in drafts] == ["PHYSICAL MENTAL", "WIND DOWN"]


@pytest.mark.parametrize("raw", [None, "", "not json", 42, [], {}, {"schedule": []}])
def test_garbage_payloads_produce_nothing(raw, index) -> None:
    assert normalize_schedule(raw, DAY, index) == []


def test_classify_payload_shapes() -> None:
    assert isinstance(classify_payload(json.dumps([{"timeBlock": "Recover", "tasks": []}])), ArrayShape)
    assert isinstance(classify_payload({"timeBlocks": {"9:00": "x"}}), FlatObjectShape)
    assert isinstance(classify_payload({"summary": "nothing planned"}), EmptyShape)


def test_local_schedule_round_trips_through_normalizer(tasks, index) -> None:
    raw = build_local_schedule(tasks, day=DAY)

    drafts = normalize_schedule(raw, DAY, index)

    assert {d.planned_task_id for d in drafts} == {"t1", "t2", "t3"}
    placed = {d.planned_task_id: (d.time_block, d.quartile) for d in drafts}
    assert placed["t1"] == ("CHIEF PROJECT", 1)
    assert placed["t2"] == ("PRODUCTION WORK", 1)
    assert placed["t3"] == ("ENVIRONMENTAL", 1)

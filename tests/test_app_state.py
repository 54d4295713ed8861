"""Tests for AppState: session handling, task and goal operations."""

from __future__ import annotations

from datetime import date

import pytest

from conftest import T0, FakeCloudDB, make_task
from life_tasker.errors import NotFoundError, RemoteOperationError, ValidationError
from life_tasker.logic.app_state import AppState
from life_tasker.models import Goal


@pytest.fixture
def state(fake_db: FakeCloudDB) -> AppState:
    fake_db.tasks = [
        make_task(id="t1", title="write", priority="low"),
        make_task(id="t2", title="read", priority="high", estimated_minutes=15),
        make_task(id="other", user_id="u2", title="not mine"),
    ]
    fake_db.goals = [Goal(id="g1", user_id="u1", title="health")]
    app_state = AppState(fake_db)
    app_state.on_session_change({"id": "u1", "email": "a@example.com"})
    return app_state


def test_session_change_loads_and_clears(state: AppState) -> None:
    assert [t.id for t in state.tasks] == ["t1", "t2"]
    assert [g.id for g in state.goals] == ["g1"]

    state.on_session_change(None)
    assert state.user_id is None
    assert state.tasks == [] and state.goals == []


def test_listeners_are_notified_until_unsubscribed(state: AppState) -> None:
    seen = []
    unsubscribe = state.subscribe(seen.append)
    state.set_priority_filter("high")
    unsubscribe()
    state.set_priority_filter("all")
    assert seen == [state]


def test_visible_tasks_filters_and_sorts(state: AppState) -> None:
    assert [t.id for t in state.visible_tasks()] == ["t2", "t1"]
    state.set_priority_filter("low")
    assert [t.id for t in state.visible_tasks()] == ["t1"]
    with pytest.raises(ValidationError):
        state.set_priority_filter("urgent")


def test_add_task_validates_input(state: AppState, fake_db: FakeCloudDB) -> None:
    for kwargs in ({"title": " "}, {"title": "x", "priority": "urgent"}, {"title": "x", "estimated_minutes": 1441}):
        with pytest.raises(ValidationError):
            state.add_task(**kwargs)
    assert "insert_tasks" not in fake_db.calls

    created = state.add_task(" plan ", priority="high", due_date=date(2024, 5, 2), estimated_minutes=20)
    assert created.title == "plan"
    assert created.user_id == "u1"
    assert created in state.tasks


def test_add_daily_tasks_creates_month(state: AppState) -> None:
    created = state.add_daily_tasks("stretch", anchor_date=date(2024, 2, 10), estimated_minutes=10)
    assert len(created) == 29
    assert all(t.user_id == "u1" and t.title == "stretch (Daily)" for t in created)
    with pytest.raises(ValidationError):
        state.add_daily_tasks("stretch")


def test_transition_task_round_trip(state: AppState) -> None:
    started = state.start_task("t2", T0)
    assert started.status == "in-progress"
    assert state.find_task("t2").start_time == T0

    paused = state.pause_task("t2")
    assert paused.status == "todo" and paused.start_time is None

    done = state.complete_task("t2", T0)
    assert done.status == "completed"


def test_start_without_estimate_is_rejected(state: AppState, fake_db: FakeCloudDB) -> None:
    with pytest.raises(ValidationError):
        state.start_task("t1")
    assert "update_task" not in fake_db.calls
    assert state.find_task("t1").status == "todo"


def test_failed_update_keeps_local_task(state: AppState, fake_db: FakeCloudDB) -> None:
    fake_db.fail.add("update_task")
    with pytest.raises(RemoteOperationError):
        state.start_task("t2", T0)
    assert state.find_task("t2").status == "todo"


def test_delete_task(state: AppState) -> None:
    state.delete_task("t1")
    with pytest.raises(NotFoundError):
        state.find_task("t1")


def test_handle_task_change_only_for_current_user(state: AppState, fake_db: FakeCloudDB) -> None:
    fake_db.calls.clear()
    assert not state.handle_task_change({"eventType": "INSERT", "new": {"user_id": "u2"}})
    assert fake_db.calls == []
    assert state.handle_task_change({"eventType": "DELETE", "new": {}, "old": {"user_id": "u1"}})
    assert fake_db.calls == ["get_tasks"]


def test_operations_require_login(fake_db: FakeCloudDB) -> None:
    anonymous = AppState(fake_db)
    with pytest.raises(ValidationError):
        anonymous.add_task("x")
    with pytest.raises(ValidationError):
        anonymous.load_tasks()


def test_goal_add_and_update(state: AppState) -> None:
    created = state.add_goal(Goal(title="save money", dimension="financial", period="monthly"))
    assert state.goals[0] is created
    assert created.user_id == "u1"

    goal = state.find_goal("g1")
    goal.progress = 60
    goal.status = "in_progress"
    assert state.update_goal(goal).progress == 60

    for bad in (Goal(title=""), Goal(title="x", dimension="work"), Goal(title="x", progress=120)):
        with pytest.raises(ValidationError):
            state.add_goal(bad)


def test_edit_task_changes_detail_fields(state: AppState, fake_db: FakeCloudDB) -> None:
    edited = state.edit_task("t1", priority="high", estimated_minutes=45, progress=30)
    assert (edited.priority, edited.estimated_minutes, edited.progress) == ("high", 45, 30)
    assert state.find_task("t1") == edited
    assert fake_db.tasks[0] == edited

    fake_db.calls.clear()
    assert state.edit_task("t1") is edited
    assert fake_db.calls == []


@pytest.mark.parametrize("kwargs", [
    {"priority": "urgent"},
    {"estimated_minutes": 0},
    {"estimated_minutes": 1441},
    {"estimated_minutes": True},
    {"progress": 101},
    {"progress": True},
])
def test_edit_task_rejects_invalid_values(state: AppState, fake_db: FakeCloudDB, kwargs: dict) -> None:
    fake_db.calls.clear()
    with pytest.raises(ValidationError):
        state.edit_task("t1", **kwargs)
    assert fake_db.calls == []
    assert state.find_task("t1").priority == "low"


def test_handle_task_change_accepts_realtime_payload(state: AppState, fake_db: FakeCloudDB) -> None:
    fake_db.calls.clear()
    assert not state.handle_task_change({"data": {"type": "UPDATE", "record": {"user_id": "u2"}}, "ids": [1]})
    assert state.handle_task_change({"data": {"type": "DELETE", "record": None,
                                              "old_record": {"user_id": "u1"}}, "ids": [1]})
    assert fake_db.calls == ["get_tasks"]

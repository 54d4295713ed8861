"""Tests for the Flask JSON API."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from app import create_app
from conftest import FakeCloudDB, make_task
from life_tasker.models import Goal, GoalNode


class FakeAuth:
    """SupabaseAuth replacement for the login route."""

    def __init__(self) -> None:
        self.user: dict[str, Any] | None = None
        self.access_token: str | None = None

    @property
    def user_id(self) -> str | None:
        return self.user["id"] if self.user else None

    def sign_in_with_email(self, email: str, password: str) -> dict:
        if password != "secret":
            return {"error": "Invalid login credentials"}
        self.user = {"id": "u1", "email": email, "name": "a"}
        self.access_token = "token"
        return {"success": True}


@pytest.fixture
def db(fake_db: FakeCloudDB) -> FakeCloudDB:
    fake_db.tasks = [
        make_task(id="t1", title="low", priority="low", estimated_minutes=10),
        make_task(id="t2", title="high", priority="high", estimated_minutes=25),
    ]
    fake_db.goals = [Goal(id="g1", user_id="u1", title="health")]
    return fake_db


@pytest.fixture
def client(db: FakeCloudDB):
    app = create_app(db_factory=lambda: db, auth_factory=FakeAuth)
    app.config["TESTING"] = True
    with app.test_client() as test_client:
        with test_client.session_transaction() as sess:
            sess["user_id"] = "u1"
        yield test_client


def test_health() -> None:
    response = create_app(db_factory=FakeCloudDB).test_client().get("/health")
    assert response.get_json() == {"status": "ok"}


def test_login_and_logout() -> None:
    app = create_app(db_factory=FakeCloudDB, auth_factory=FakeAuth)
    client = app.test_client()

    response = client.post("/api/login", json={"email": "a@example.com", "password": "wrong"})
    assert response.status_code == 401
    assert response.get_json()["error"] == "Invalid login credentials"

    response = client.post("/api/login", json={"email": "a@example.com", "password": "secret"})
    assert response.status_code == 200
    with client.session_transaction() as sess:
        assert sess["user_id"] == "u1"
        assert sess["access_token"] == "token"

    client.post("/api/logout")
    assert client.get("/api/tasks").status_code == 401


def test_requires_session() -> None:
    client = create_app(db_factory=FakeCloudDB).test_client()
    response = client.get("/api/goals")
    assert response.status_code == 401
    assert "error" in response.get_json()


def test_list_tasks_sorted_and_filtered(client) -> None:
    assert [t["id"] for t in client.get("/api/tasks").get_json()] == ["t2", "t1"]
    assert [t["id"] for t in client.get("/api/tasks?priority=low").get_json()] == ["t1"]
    assert client.get("/api/tasks?priority=urgent").status_code == 400


def test_create_task_and_daily_tasks(client) -> None:
    response = client.post("/api/tasks", json={"title": "plan", "priority": "high", "due_date": "2024-05-02"})
    assert response.status_code == 201
    assert response.get_json()[0]["due_date"] == "2024-05-02"

    response = client.post("/api/tasks", json={"title": "walk", "daily": True, "due_date": "2024-04-10"})
    assert response.status_code == 201
    assert len(response.get_json()) == 30

    assert client.post("/api/tasks", json={"title": "x", "due_date": "05/02"}).status_code == 400
    assert client.post("/api/tasks", data="not json").status_code == 400


def test_start_then_active_then_complete(client) -> None:
    response = client.post("/api/tasks/t2/start")
    assert response.status_code == 200
    assert response.get_json()["status"] == "in-progress"

    active = client.get("/api/tasks/active").get_json()
    assert [t["id"] for t in active] == ["t2"]
    assert active[0]["remaining"].count(":") == 1

    assert client.post("/api/tasks/t2/complete").get_json()["status"] == "completed"
    assert client.post("/api/tasks/t2/start").status_code == 400
    assert client.post("/api/tasks/t2/archive").status_code == 404
    assert client.post("/api/tasks/missing/start").status_code == 404


def test_remote_failure_maps_to_502(client, db: FakeCloudDB) -> None:
    db.fail.add("update_task")
    response = client.post("/api/tasks/t2/start")
    assert response.status_code == 502
    assert "error" in response.get_json()


def test_delete_task(client, db: FakeCloudDB) -> None:
    assert client.delete("/api/tasks/t1").status_code == 204
    assert [t.id for t in db.tasks] == ["t2"]


def test_goals_create_and_update(client) -> None:
    response = client.post("/api/goals", json={"title": "save", "dimension": "financial", "target_date": "2024-12-31"})
    assert response.status_code == 201
    assert response.get_json()["target_date"] == "2024-12-31"

    assert [g["title"] for g in client.get("/api/goals").get_json()] == ["save", "health"]

    response = client.patch("/api/goals/g1", json={"progress": 70, "status": "in_progress"})
    assert response.get_json()["progress"] == 70
    assert client.patch("/api/goals/g1", json={"progress": 170}).status_code == 400
    assert client.patch("/api/goals/nope", json={"title": "x"}).status_code == 404


def test_goal_tree_flow(client, db: FakeCloudDB) -> None:
    tree = client.get("/api/goals/g1/tree").get_json()
    assert tree["needs_root"] is True
    assert tree["nodes"] == []

    response = client.post("/api/goals/g1/tree/root")
    assert response.status_code == 201
    root_id = response.get_json()["root_id"]

    response = client.post("/api/goals/g1/tree/nodes", json={"parent_id": root_id, "content": "Read"})
    assert response.status_code == 201
    child = response.get_json()
    assert child["parent_id"] == root_id

    response = client.patch(f"/api/goals/g1/tree/nodes/{child['id']}", json={"progress": 30})
    assert response.get_json()["progress"] == 30

    tree = client.get("/api/goals/g1/tree").get_json()
    assert [(n["id"], n["depth"]) for n in tree["nodes"]] == [(root_id, 0), (child["id"], 1)]
    assert tree["nodes"][0]["has_children"] is True


def test_goal_tree_node_errors(client, db: FakeCloudDB) -> None:
    db.add_tree("g1", GoalNode(id="r", user_id="u1", goal_id="g1", is_root=True, content="root"))
    assert client.post("/api/goals/g1/tree/nodes", json={"parent_id": "missing"}).status_code == 404
    assert client.patch("/api/goals/g1/tree/nodes/r", json={"is_root": False}).status_code == 400
    assert client.patch("/api/goals/g1/tree/nodes/r", json={"node_id": "x"}).status_code == 400
    assert client.patch("/api/goals/g1/tree/nodes/r", json={"self": 1}).status_code == 400
    response = client.patch("/api/goals/g1/tree/nodes/r", json={"planned_start_date": "2024-05-10",
                                                                 "planned_end_date": "2024-05-01"})
    assert response.status_code == 400


def test_list_tasks_for_month(client, db: FakeCloudDB) -> None:
    db.tasks.append(make_task(id="t3", title="may", due_date=date(2024, 5, 20)))
    db.tasks.append(make_task(id="t4", title="june", due_date=date(2024, 6, 1)))

    assert [t["id"] for t in client.get("/api/tasks?month=2024-05").get_json()] == ["t3"]
    assert client.get("/api/tasks?month=2024-13").status_code == 400
    assert client.get("/api/tasks?month=bad").status_code == 400


def test_edit_task(client, db: FakeCloudDB) -> None:
    response = client.patch("/api/tasks/t1", json={"priority": "high", "estimated_minutes": 30, "progress": 40})
    assert response.status_code == 200
    body = response.get_json()
    assert (body["priority"], body["estimated_minutes"], body["progress"]) == ("high", 30, 40)
    assert db.tasks[0].priority == "high"

    assert client.patch("/api/tasks/t1", json={"title": "renamed"}).status_code == 400
    assert client.patch("/api/tasks/t1", json={"progress": 101}).status_code == 400
    assert client.patch("/api/tasks/t1", json={"estimated_minutes": "soon"}).status_code == 400
    assert client.patch("/api/tasks/missing", json={"progress": 10}).status_code == 404

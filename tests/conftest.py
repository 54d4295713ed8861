"""Shared fixtures: an in-memory stand-in for SupabaseDB."""

from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from life_tasker.errors import NotFoundError, RemoteOperationError
from life_tasker.models import Goal, GoalNode, Task

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


class FakeCloudDB:
    """Implements the SupabaseDB calls used by the logic layer, in memory."""

    def __init__(self) -> None:
        self.tasks: list[Task] = []
        self.goals: list[Goal] = []
        self.nodes: dict[str, list[GoalNode]] = {}
        self.calls: list[str] = []
        self.fail: set[str] = set()
        self._ids = itertools.count(1)

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise RemoteOperationError(f"{name} failed", status_code=500)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # tasks
    def get_tasks(self, user_id: str) -> list[Task]:
        self._call("get_tasks")
        return [t for t in self.tasks if t.user_id == user_id]

    def insert_tasks(self, tasks: list[Task]) -> list[Task]:
        self._call("insert_tasks")
        created = [replace(t, id=self._next_id("task"), created_at=T0) for t in tasks]
        self.tasks.extend(created)
        return created

    def update_task(self, task: Task) -> Task:
        self._call("update_task")
        for i, existing in enumerate(self.tasks):
            if existing.id == task.id and existing.user_id == task.user_id:
                self.tasks[i] = task
                return task
        raise NotFoundError(task.id)

    def delete_task(self, task_id: str, user_id: str) -> None:
        self._call("delete_task")
        self.tasks = [t for t in self.tasks if not (t.id == task_id and t.user_id == user_id)]

    # goals
    def get_goals(self, user_id: str) -> list[Goal]:
        self._call("get_goals")
        return [g for g in self.goals if g.user_id == user_id]

    def insert_goal(self, goal: Goal) -> Goal:
        self._call("insert_goal")
        created = replace(goal, id=self._next_id("goal"))
        self.goals.insert(0, created)
        return created

    def update_goal(self, goal: Goal) -> Goal:
        self._call("update_goal")
        for i, existing in enumerate(self.goals):
            if existing.id == goal.id:
                self.goals[i] = goal
                return goal
        raise NotFoundError(goal.id)

    # goal tree
    def get_goal_tree(self, goal_id: str) -> list[GoalNode]:
        self._call("get_goal_tree")
        return list(self.nodes.get(goal_id, []))

    def create_goal_root_node(self, goal_id: str, user_id: str) -> Any:
        self._call("create_goal_root_node")
        root = GoalNode(id=self._next_id("node"), user_id=user_id, goal_id=goal_id,
                        content="ルート目標", is_root=True)
        self.nodes.setdefault(goal_id, []).append(root)
        return root.id

    def insert_goal_node(self, node: GoalNode) -> GoalNode:
        self._call("insert_goal_node")
        created = replace(node, id=self._next_id("node"))
        for tree in self.nodes.values():
            if any(n.id == node.parent_id for n in tree):
                tree.append(created)
                break
        return created

    def update_goal_node(self, node_id: str, user_id: str, changes: dict[str, Any]) -> GoalNode:
        self._call("update_goal_node")
        for tree in self.nodes.values():
            for i, existing in enumerate(tree):
                if existing.id == node_id and existing.user_id == user_id:
                    merged = existing.to_row()
                    merged.update(changes)
                    tree[i] = GoalNode.from_row(merged)
                    return tree[i]
        raise NotFoundError(node_id)

    # helpers for tests
    def add_tree(self, goal_id: str, *nodes: GoalNode) -> None:
        self.nodes.setdefault(goal_id, []).extend(nodes)


def make_task(**overrides: Any) -> Task:
    values: dict[str, Any] = {"id": "t1", "user_id": "u1", "title": "task", "priority": "medium"}
    values.update(overrides)
    return Task(**values)


def running_task(minutes: int = 25, started: datetime = T0, **overrides: Any) -> Task:
    return make_task(status="in-progress", start_time=started, estimated_minutes=minutes, **overrides)


def after(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


@pytest.fixture
def fake_db() -> FakeCloudDB:
    return FakeCloudDB()

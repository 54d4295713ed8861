"""
タスクのステータス遷移
todo / in-progress / completed の状態機械（transitionsライブラリを使用）
"""
from dataclasses import replace
from datetime import datetime
from typing import Optional

from transitions import Machine

from ..errors import ValidationError
from ..models import Task, utc_now
from .task_time import validate_estimated_minutes

STATES = ["todo", "in-progress", "completed"]

TRANSITIONS = [
    {"trigger": "start", "source": "todo", "dest": "in-progress"},
    {"trigger": "pause", "source": "in-progress", "dest": "todo"},
    {"trigger": "complete", "source": ["todo", "in-progress"], "dest": "completed"},
]

TERMINAL_STATES = {"completed"}

ACTION_LABELS = {
    "start": "開始",
    "pause": "一時停止",
    "complete": "完了",
}


class TaskLifecycle:
    """タスク1件分の状態機械（検証のみ、IOなし）"""

    def __init__(self, initial_state: str = "todo"):
        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=initial_state,
            auto_transitions=False,
            send_event=False,
        )

    def can(self, trigger_name: str) -> bool:
        return trigger_name in self.machine.get_triggers(self.state)

    def fire(self, trigger_name: str) -> str:
        """遷移を実行し、遷移できない場合はValidationError"""
        if not self.can(trigger_name):
            label = ACTION_LABELS.get(trigger_name, trigger_name)
            raise ValidationError(f"「{self.state}」のタスクは{label}できません")
        getattr(self, trigger_name)()
        return self.state

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


def start_task(task: Task, now: Optional[datetime] = None) -> Task:
    """タスクを開始（見積もり時間が必須）"""
    lifecycle = TaskLifecycle(task.status)
    if lifecycle.can("start"):
        validate_estimated_minutes(task.estimated_minutes)
    status = lifecycle.fire("start")
    return replace(task, status=status, start_time=now or utc_now())


def pause_task(task: Task) -> Task:
    """タスクを一時停止（着手時刻を消去）"""
    status = TaskLifecycle(task.status).fire("pause")
    return replace(task, status=status, start_time=None)


def complete_task(task: Task, now: Optional[datetime] = None) -> Task:
    """タスクを完了"""
    status = TaskLifecycle(task.status).fire("complete")
    return replace(task, status=status, completed_at=now or utc_now())


def apply_action(task: Task, action: str, now: Optional[datetime] = None) -> Task:
    """操作名からステータス遷移を適用"""
    if action == "start":
        return start_task(task, now)
    if action == "pause":
        return pause_task(task)
    if action == "complete":
        return complete_task(task, now)
    raise ValidationError(f"不明な操作です: {action}")

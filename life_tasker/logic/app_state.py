"""
アプリケーション状態
ログインユーザー・タスク一覧・目標一覧を保持し、画面に参照で渡す
"""
import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from ..errors import NotFoundError, ValidationError
from ..models import (
    GOAL_DIMENSIONS,
    GOAL_PERIODS,
    GOAL_STATUSES,
    PRIORITIES,
    Goal,
    Task,
)
from .goal_tree import validate_progress
from .task_lifecycle import apply_action
from .task_time import (
    MAX_ESTIMATED_MINUTES,
    expand_daily_template,
    filter_by_priority,
    sort_by_priority,
)

logger = logging.getLogger(__name__)


class AppState:
    """ユーザー単位のデータを保持するコンテナ"""

    def __init__(self, db, user_id: Optional[str] = None):
        self.db = db
        self.user_id = user_id
        self.tasks: List[Task] = []
        self.goals: List[Goal] = []
        self.priority_filter = "all"
        self._listeners: List[Callable] = []

    # === 通知 ===

    def subscribe(self, listener: Callable) -> Callable:
        """状態変化の通知先を登録し、解除用の関数を返す"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    def _require_user(self) -> str:
        if not self.user_id:
            raise ValidationError("ログインしてください")
        return self.user_id

    # === セッション ===

    def on_session_change(self, user: Optional[Dict[str, Any]]):
        """ログイン状態の変化に合わせて再読み込み/クリア"""
        self.user_id = user.get("id") if user else None
        if self.user_id:
            self.load_all()
        else:
            self.tasks = []
            self.goals = []
            self._notify()

    def load_all(self):
        self.load_goals()
        self.load_tasks()

    def load_tasks(self) -> List[Task]:
        """タスク一覧を再取得"""
        self.tasks = self.db.get_tasks(self._require_user())
        self._notify()
        return self.tasks

    def load_goals(self) -> List[Goal]:
        """目標一覧を再取得"""
        self.goals = self.db.get_goals(self._require_user())
        self._notify()
        return self.goals

    def handle_task_change(self, payload: Dict[str, Any]) -> bool:
        """
        tasksテーブルの変更通知（postgres_changes）を受け取る

        ログイン中ユーザーの行であれば一覧を再取得し、Trueを返す
        payloadは eventType/new/old 形式と data.type/record/old_record 形式の両方を受け付ける
        """
        if not self.user_id:
            return False
        data = payload.get("data") or payload
        record = (data.get("new") or data.get("record")
                  or data.get("old") or data.get("old_record") or {})
        if record.get("user_id") != self.user_id:
            logger.debug("他ユーザーの変更通知を無視: %s", data.get("eventType") or data.get("type"))
            return False
        self.load_tasks()
        return True

    # === タスク ===

    def set_priority_filter(self, priority_filter: str):
        if priority_filter != "all" and priority_filter not in PRIORITIES:
            raise ValidationError(f"不明な優先度です: {priority_filter}")
        self.priority_filter = priority_filter
        self._notify()

    def visible_tasks(self) -> List[Task]:
        """絞り込み・並び替え済みのタスク"""
        return sort_by_priority(filter_by_priority(self.tasks, self.priority_filter))

    def find_task(self, task_id: str) -> Task:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise NotFoundError(f"タスクが見つかりません: {task_id}")

    @staticmethod
    def _validate_task_fields(title: str, priority: str, estimated_minutes: Optional[int]):
        if not (title or "").strip():
            raise ValidationError("タイトルを入力してください")
        if priority not in PRIORITIES:
            raise ValidationError(f"不明な優先度です: {priority}")
        if estimated_minutes is not None and not 0 < estimated_minutes <= MAX_ESTIMATED_MINUTES:
            raise ValidationError("見積もり時間は1〜1440分の範囲で入力してください")

    def add_task(self, title: str, description: str = "", priority: str = "medium",
                 due_date: Optional[date] = None, estimated_minutes: Optional[int] = None) -> Task:
        """タスクを1件作成"""
        self._validate_task_fields(title, priority, estimated_minutes)
        draft = Task(
            user_id=self._require_user(),
            title=title.strip(),
            description=description,
            priority=priority,
            due_date=due_date,
            status="todo",
            estimated_minutes=estimated_minutes,
        )
        created = self.db.insert_tasks([draft])
        self.tasks.extend(created)
        self._notify()
        return created[0]

    def add_daily_tasks(self, title: str, description: str = "", priority: str = "medium",
                        anchor_date: Optional[date] = None,
                        estimated_minutes: Optional[int] = None) -> List[Task]:
        """毎日タスクとして、対象月の日数分を一括作成"""
        self._validate_task_fields(title, priority, estimated_minutes)
        if anchor_date is None:
            raise ValidationError("毎日タスクには基準日が必要です")
        user_id = self._require_user()
        drafts = [
            replace(draft, user_id=user_id)
            for draft in expand_daily_template(
                title.strip(), description, priority, estimated_minutes, anchor_date
            )
        ]
        created = self.db.insert_tasks(drafts)
        self.tasks.extend(created)
        self._notify()
        return created

    def update_task(self, task: Task) -> Task:
        """タスクを更新（Supabase側の更新が成功してから反映）"""
        self._require_user()
        updated = self.db.update_task(task)
        self.tasks = [updated if t.id == updated.id else t for t in self.tasks]
        self._notify()
        return updated

    def edit_task(self, task_id: str, priority: Optional[str] = None,
                  estimated_minutes: Optional[int] = None, progress: Optional[int] = None) -> Task:
        """
        詳細画面の優先度・見積もり時間・進捗を変更

        Noneの項目は変更しない
        """
        task = self.find_task(task_id)
        changes = {}
        if priority is not None:
            if priority not in PRIORITIES:
                raise ValidationError(f"不明な優先度です: {priority}")
            changes["priority"] = priority
        if estimated_minutes is not None:
            if isinstance(estimated_minutes, bool) or not 0 < estimated_minutes <= MAX_ESTIMATED_MINUTES:
                raise ValidationError("見積もり時間は1〜1440分の範囲で入力してください")
            changes["estimated_minutes"] = estimated_minutes
        if progress is not None:
            changes["progress"] = validate_progress(progress)
        if not changes:
            return task
        return self.update_task(replace(task, **changes))

    def transition_task(self, task_id: str, action: str, now: Optional[datetime] = None) -> Task:
        """開始/一時停止/完了の操作を適用"""
        task = self.find_task(task_id)
        return self.update_task(apply_action(task, action, now))

    def start_task(self, task_id: str, now: Optional[datetime] = None) -> Task:
        return self.transition_task(task_id, "start", now)

    def pause_task(self, task_id: str) -> Task:
        return self.transition_task(task_id, "pause")

    def complete_task(self, task_id: str, now: Optional[datetime] = None) -> Task:
        return self.transition_task(task_id, "complete", now)

    def delete_task(self, task_id: str):
        """タスクを削除"""
        self.db.delete_task(task_id, self._require_user())
        self.tasks = [t for t in self.tasks if t.id != task_id]
        self._notify()

    # === 目標 ===

    def find_goal(self, goal_id: str) -> Goal:
        for goal in self.goals:
            if goal.id == goal_id:
                return goal
        raise NotFoundError(f"目標が見つかりません: {goal_id}")

    @staticmethod
    def _validate_goal(goal: Goal):
        if not (goal.title or "").strip():
            raise ValidationError("目標のタイトルを入力してください")
        if goal.dimension not in GOAL_DIMENSIONS:
            raise ValidationError(f"不明な分野です: {goal.dimension}")
        if goal.period not in GOAL_PERIODS:
            raise ValidationError(f"不明な期間です: {goal.period}")
        if goal.status not in GOAL_STATUSES:
            raise ValidationError(f"不明なステータスです: {goal.status}")
        validate_progress(goal.progress)

    def add_goal(self, goal: Goal) -> Goal:
        """目標を作成（一覧の先頭に追加）"""
        goal = replace(goal, user_id=self._require_user())
        self._validate_goal(goal)
        created = self.db.insert_goal(goal)
        self.goals.insert(0, created)
        self._notify()
        return created

    def update_goal(self, goal: Goal) -> Goal:
        """目標を更新"""
        goal = replace(goal, user_id=self._require_user())
        self._validate_goal(goal)
        updated = self.db.update_goal(goal)
        self.goals = [updated if g.id == updated.id else g for g in self.goals]
        self._notify()
        return updated

"""
目標一覧画面
"""
from datetime import date

import flet as ft

from ..errors import LifeTaskerError
from ..logic.app_state import AppState
from ..logic.goal_tree import GoalTreeEngine
from ..models import Goal
from .common import section, show_error, show_failure, show_success
from .goal_tree_view import GoalTreeView

DIMENSION_LABELS = {
    "personal": "個人",
    "financial": "お金",
    "social": "人間関係",
    "lifestyle": "生活",
    "family": "家族",
}

PERIOD_LABELS = {
    "yearly": "年間",
    "quarterly": "四半期",
    "monthly": "月間",
}

STATUS_LABELS = {
    "not_started": "未着手",
    "in_progress": "進行中",
    "completed": "完了",
    "cancelled": "中止",
}


class GoalsView(ft.Column):
    """目標一覧（選択すると目標ツリーを表示）"""

    def __init__(self, app_state: AppState, page: ft.Page):
        super().__init__()
        self.app_state = app_state
        self._page = page
        self.spacing = 20
        self.expand = True
        self.scroll = ft.ScrollMode.AUTO
        self._mounted = False
        self._unsubscribe = None
        self.tree_view = None

        # 目標作成用
        self.title_field = ft.TextField(label="目標", width=250)
        self.description_field = ft.TextField(label="説明", width=250)
        self.dimension_dropdown = ft.Dropdown(
            label="分野",
            width=140,
            options=[ft.dropdown.Option(k, v) for k, v in DIMENSION_LABELS.items()],
            value="personal",
        )
        self.period_dropdown = ft.Dropdown(
            label="期間",
            width=120,
            options=[ft.dropdown.Option(k, v) for k, v in PERIOD_LABELS.items()],
            value="yearly",
        )
        self.target_date_field = ft.TextField(label="目標日（YYYY-MM-DD）", width=180)

        self._build()

    def did_mount(self):
        self._mounted = True
        self._unsubscribe = self.app_state.subscribe(self._on_state_change)

    def will_unmount(self):
        self._mounted = False
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_state_change(self, state: AppState):
        if not self._mounted or self.tree_view:
            return
        self._build()
        self.update()

    def _build(self):
        """画面を構築"""
        if self.tree_view:
            self.controls = [self.tree_view]
            return

        title = ft.Text("目標 🎯", size=28, weight=ft.FontWeight.BOLD)

        goal_cards = [self._goal_card(goal) for goal in self.app_state.goals]
        if not goal_cards:
            goal_cards = [ft.Text("目標がありません。下から作成してください。", color="#9e9e9e")]

        create_section = section(ft.Column([
            ft.Text("新しい目標", size=20, weight=ft.FontWeight.BOLD),
            ft.Divider(),
            ft.Row([self.title_field, self.dimension_dropdown, self.period_dropdown], wrap=True),
            ft.Row([self.description_field, self.target_date_field], wrap=True),
            ft.ElevatedButton("作成", icon="add", bgcolor="#00bcd4", color="white",
                              on_click=self.create_goal),
        ]))

        self.controls = [title, ft.Column(goal_cards, spacing=10), create_section]

    def _goal_card(self, goal: Goal) -> ft.Container:
        target = goal.target_date.isoformat() if goal.target_date else "未設定"
        return section(ft.Column([
            ft.Row([
                ft.Text(goal.title, size=18, weight=ft.FontWeight.BOLD, expand=True),
                ft.Text(STATUS_LABELS.get(goal.status, goal.status), size=12, color="#90caf9"),
                ft.IconButton(icon="account_tree", tooltip="目標ツリーを表示",
                              on_click=lambda e, g=goal: self.open_tree(g)),
            ]),
            ft.Text(
                f"{DIMENSION_LABELS.get(goal.dimension, goal.dimension)} / "
                f"{PERIOD_LABELS.get(goal.period, goal.period)} / 目標日 {target}",
                size=12, color="#9e9e9e",
            ),
            ft.Row([
                ft.ProgressBar(value=goal.progress / 100, color="#4caf50", expand=True),
                ft.Text(f"{goal.progress}%", size=12),
            ]),
        ], spacing=6))

    # === 操作 ===

    def open_tree(self, goal: Goal):
        """目標ツリーを表示"""
        engine = GoalTreeEngine(self.app_state.db, goal.id, self.app_state.user_id)
        self.tree_view = GoalTreeView(engine, self._page, on_back=self.close_tree)
        self._build()
        self.update()

    def close_tree(self):
        self.tree_view = None
        self._build()
        self.update()

    def create_goal(self, e):
        """入力内容から目標を作成"""
        title = (self.title_field.value or "").strip()
        if not title:
            show_error(self._page, "目標を入力してください")
            return

        target_text = (self.target_date_field.value or "").strip()
        try:
            target = date.fromisoformat(target_text) if target_text else None
        except ValueError:
            show_error(self._page, "目標日は YYYY-MM-DD 形式で入力してください")
            return

        goal = Goal(
            title=title,
            description=self.description_field.value or "",
            dimension=self.dimension_dropdown.value,
            period=self.period_dropdown.value,
            target_date=target,
        )
        try:
            self.app_state.add_goal(goal)
        except LifeTaskerError as err:
            show_failure(self._page, "目標の作成", err)
            return

        self.title_field.value = ""
        self.description_field.value = ""
        self.target_date_field.value = ""
        show_success(self._page, "目標を作成しました")

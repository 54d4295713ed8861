"""
タスクボード画面（週間・月間表示・優先度フィルタ・タスク作成と編集）
"""
import calendar
from datetime import date, timedelta

import flet as ft

from ..errors import LifeTaskerError
from ..logic.app_state import AppState
from ..logic.task_time import (
    display_progress,
    sort_by_priority,
    tasks_for_date,
    tasks_for_month,
    week_days,
)
from ..models import Task
from .common import (
    PRIORITY_COLORS,
    PRIORITY_LABELS,
    STATUS_COLORS,
    section,
    show_error,
    show_failure,
    show_success,
)

WEEKDAY_LABELS = ["月", "火", "水", "木", "金", "土", "日"]


class TaskBoardView(ft.Column):
    """週間・月間タスクボード"""

    def __init__(self, app_state: AppState, page: ft.Page):
        super().__init__()
        self.app_state = app_state
        self._page = page
        self.spacing = 20
        self.expand = True
        self.scroll = ft.ScrollMode.AUTO
        self._mounted = False
        self._unsubscribe = None
        self.week_start = date.today()
        self.month_start = date.today().replace(day=1)
        self.mode = "week"  # week / month

        # フィルタ
        self.filter_buttons = ft.Row(spacing=5)

        # タスク作成用
        self.title_field = ft.TextField(label="タスク名", width=250)
        self.description_field = ft.TextField(label="説明", width=250, multiline=True)
        self.priority_dropdown = ft.Dropdown(
            label="優先度",
            width=120,
            options=[
                ft.dropdown.Option("high", "高"),
                ft.dropdown.Option("medium", "中"),
                ft.dropdown.Option("low", "低"),
            ],
            value="medium"
        )
        self.due_date_field = ft.TextField(
            label="期日（YYYY-MM-DD）",
            width=180,
            value=date.today().isoformat(),
        )
        self.estimate_field = ft.TextField(
            label="見積もり（分）",
            width=150,
            keyboard_type=ft.KeyboardType.NUMBER,
        )
        self.daily_checkbox = ft.Checkbox(label="毎日タスク（その月の毎日に作成）")

        self.week_row = ft.Row(spacing=10, vertical_alignment=ft.CrossAxisAlignment.START, scroll=ft.ScrollMode.AUTO)
        self.month_grid = ft.Column(spacing=6)
        self.period_label = ft.Text(size=18, weight=ft.FontWeight.BOLD)
        self.mode_buttons = ft.Row(spacing=5)
        self.board = ft.Container()

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
        # 画面破棄後に届いた結果は無視
        if not self._mounted:
            return
        self._build_filter()
        self._build_board()
        self.update()

    # === 構築 ===

    def _build(self):
        """画面を構築"""
        self._build_filter()
        self._build_board()

        title = ft.Text("タスクボード 📋", size=28, weight=ft.FontWeight.BOLD)

        nav = ft.Row([
            ft.IconButton(icon="chevron_left", tooltip="前へ", on_click=lambda e: self._shift(-1)),
            ft.TextButton("今日", on_click=lambda e: self._shift(0)),
            ft.IconButton(icon="chevron_right", tooltip="次へ", on_click=lambda e: self._shift(1)),
            self.period_label,
            ft.Container(expand=True),
            self.mode_buttons,
            self.filter_buttons,
        ], wrap=True)

        create_section = section(ft.Column([
            ft.Text("新しいタスク", size=20, weight=ft.FontWeight.BOLD),
            ft.Divider(),
            ft.Row([self.title_field, self.priority_dropdown, self.estimate_field], wrap=True),
            ft.Row([self.description_field, self.due_date_field], wrap=True),
            self.daily_checkbox,
            ft.ElevatedButton(
                "作成",
                icon="add",
                bgcolor="#00bcd4",
                color="white",
                on_click=self.create_task
            ),
        ]))

        self.controls = [title, nav, self.board, create_section]

    def _build_board(self):
        """表示モードに応じて週/月を構築"""
        self.mode_buttons.controls = [
            ft.ElevatedButton(
                label,
                data=key,
                bgcolor="#00bcd4" if self.mode == key else "#1e3a5f",
                color="white",
                on_click=self._on_mode_click,
            )
            for key, label in (("week", "週"), ("month", "月"))
        ]
        if self.mode == "month":
            self._build_month()
            self.period_label.value = f"{self.month_start.year}年{self.month_start.month}月"
            self.board.content = self.month_grid
        else:
            self._build_week()
            monday = week_days(self.week_start)[0]
            self.period_label.value = f"{monday.month}/{monday.day}〜"
            self.board.content = self.week_row

    def _build_filter(self):
        self.filter_buttons.controls = [
            ft.ElevatedButton(
                label,
                data=key,
                bgcolor="#7c4dff" if self.app_state.priority_filter == key else "#1e3a5f",
                color="white",
                on_click=self._on_filter_click,
            )
            for key, label in PRIORITY_LABELS.items()
        ]

    def _build_week(self):
        """月曜始まりの7日分の列を構築"""
        visible = self.app_state.visible_tasks()
        today = date.today()
        columns = []
        for i, day in enumerate(week_days(self.week_start)):
            day_tasks = sort_by_priority(tasks_for_date(visible, day))
            header_color = "#7c4dff" if day == today else "#90caf9"
            columns.append(ft.Container(
                content=ft.Column(
                    [ft.Text(f"{WEEKDAY_LABELS[i]} {day.month}/{day.day}", weight=ft.FontWeight.BOLD,
                             color=header_color)]
                    + [self._task_tile(task) for task in day_tasks]
                    + ([ft.Text("なし", size=12, color="#757575")] if not day_tasks else []),
                    spacing=8,
                ),
                width=200,
                padding=10,
                border_radius=10,
                bgcolor="#16213e",
            ))
        self.week_row.controls = columns

    def _build_month(self):
        """月のカレンダー（1日ごとにタスク名を並べる）"""
        year, month = self.month_start.year, self.month_start.month
        month_tasks = tasks_for_month(self.app_state.visible_tasks(), year, month)
        today = date.today()

        rows = [ft.Row([
            ft.Container(ft.Text(label, weight=ft.FontWeight.BOLD, color="#90caf9"), width=130)
            for label in WEEKDAY_LABELS
        ], spacing=6)]
        for week in calendar.monthcalendar(year, month):
            cells = []
            for day_number in week:
                if not day_number:
                    cells.append(ft.Container(width=130))
                    continue
                day = date(year, month, day_number)
                day_tasks = sort_by_priority(tasks_for_date(month_tasks, day))
                cells.append(ft.Container(
                    content=ft.Column(
                        [ft.Text(str(day_number), weight=ft.FontWeight.BOLD,
                                 color="#7c4dff" if day == today else "white")]
                        + [self._month_entry(task) for task in day_tasks],
                        spacing=2,
                    ),
                    width=130,
                    height=110,
                    padding=6,
                    border_radius=8,
                    bgcolor="#16213e",
                ))
            rows.append(ft.Row(cells, spacing=6, vertical_alignment=ft.CrossAxisAlignment.START))
        self.month_grid.controls = rows

    def _month_entry(self, task: Task) -> ft.Container:
        return ft.Container(
            content=ft.Text(task.title, size=11, max_lines=1, overflow=ft.TextOverflow.ELLIPSIS),
            bgcolor=STATUS_COLORS.get(task.status, "#1e3a5f"),
            border=ft.border.only(left=ft.BorderSide(3, PRIORITY_COLORS.get(task.priority, "#9e9e9e"))),
            border_radius=4,
            padding=ft.padding.symmetric(horizontal=4, vertical=1),
            on_click=lambda e, tid=task.id: self._open_detail_dialog(tid),
        )

    def _task_tile(self, task: Task) -> ft.Container:
        actions = []
        if task.status == "todo":
            actions.append(ft.IconButton(icon="play_arrow", tooltip="開始", icon_size=18,
                                         on_click=lambda e, tid=task.id: self._transition(tid, "start", "開始")))
        if task.status == "in-progress":
            actions.append(ft.IconButton(icon="pause", tooltip="一時停止", icon_size=18,
                                         on_click=lambda e, tid=task.id: self._transition(tid, "pause", "一時停止")))
        if task.status != "completed":
            actions.append(ft.IconButton(icon="check_circle", tooltip="完了", icon_size=18, icon_color="#4caf50",
                                         on_click=lambda e, tid=task.id: self._transition(tid, "complete", "完了")))
        actions.append(ft.IconButton(icon="delete", tooltip="削除", icon_size=18, icon_color="#f44336",
                                     on_click=lambda e, tid=task.id: self.delete_task(tid)))

        estimate = f"{task.estimated_minutes}分" if task.estimated_minutes else "見積もりなし"
        return ft.Container(
            content=ft.Column([
                ft.Row([
                    ft.Icon("flag", size=14, color=PRIORITY_COLORS.get(task.priority, "#9e9e9e")),
                    ft.Text(task.title, size=13, weight=ft.FontWeight.BOLD, expand=True),
                ]),
                ft.Text(estimate, size=11, color="#9e9e9e"),
                ft.ProgressBar(value=display_progress(task) / 100, color="#4caf50"),
                ft.Row(actions, spacing=0),
            ], spacing=2),
            bgcolor=STATUS_COLORS.get(task.status, "#1e3a5f"),
            border_radius=8,
            padding=8,
            on_click=lambda e, tid=task.id: self._open_detail_dialog(tid),
        )

    # === 操作 ===

    def _shift(self, step: int):
        """前後の週/月へ移動（0で今日に戻る）"""
        if self.mode == "month":
            if step == 0:
                self.month_start = date.today().replace(day=1)
            else:
                index = self.month_start.year * 12 + self.month_start.month - 1 + step
                self.month_start = date(index // 12, index % 12 + 1, 1)
        elif step == 0:
            self.week_start = date.today()
        else:
            self.week_start = self.week_start + timedelta(days=7 * step)
        self._build_board()
        self.update()

    def _on_mode_click(self, e):
        self.mode = e.control.data
        self._build_board()
        self.update()

    def _on_filter_click(self, e):
        self.app_state.set_priority_filter(e.control.data)

    def _open_detail_dialog(self, task_id: str):
        """優先度・見積もり時間・進捗を変更するダイアログ"""
        try:
            task = self.app_state.find_task(task_id)
        except LifeTaskerError as err:
            show_failure(self._page, "タスクの表示", err)
            return

        priority_dropdown = ft.Dropdown(
            label="優先度",
            width=120,
            options=[ft.dropdown.Option(key, label) for key, label in PRIORITY_LABELS.items() if key != "all"],
            value=task.priority,
        )
        estimate_field = ft.TextField(
            label="見積もり（分）",
            width=150,
            keyboard_type=ft.KeyboardType.NUMBER,
            value=str(task.estimated_minutes) if task.estimated_minutes else "",
        )
        progress_slider = ft.Slider(min=0, max=100, divisions=20, value=display_progress(task), label="{value}%")

        def close_dialog(e):
            dialog.open = False
            self._page.update()

        def save(e):
            estimate_text = (estimate_field.value or "").strip()
            try:
                estimate = int(estimate_text) if estimate_text else None
            except ValueError:
                show_error(self._page, "見積もり時間は数字で入力してください")
                return
            try:
                self.app_state.edit_task(
                    task_id,
                    priority=priority_dropdown.value,
                    estimated_minutes=estimate,
                    progress=int(progress_slider.value),
                )
            except LifeTaskerError as err:
                show_failure(self._page, "タスクの更新", err)
                return
            dialog.open = False
            self._page.update()
            show_success(self._page, "タスクを更新しました")

        details = [ft.Text(task.description, color="#b0bec5")] if task.description else []
        if task.due_date:
            details.append(ft.Text(f"📅 期日: {task.due_date.isoformat()}", size=12, color="#9e9e9e"))

        dialog = ft.AlertDialog(
            modal=True,
            title=ft.Text(task.title),
            content=ft.Column(
                details + [
                    ft.Row([priority_dropdown, estimate_field], wrap=True),
                    ft.Text("進捗"),
                    progress_slider,
                ],
                tight=True,
            ),
            actions=[
                ft.TextButton("キャンセル", on_click=close_dialog),
                ft.ElevatedButton("保存", bgcolor="#4caf50", color="white", on_click=save),
            ],
            actions_alignment=ft.MainAxisAlignment.END,
        )
        self._page.overlay.append(dialog)
        dialog.open = True
        self._page.update()

    def _transition(self, task_id: str, action: str, label: str):
        """開始/一時停止/完了"""
        try:
            self.app_state.transition_task(task_id, action)
        except LifeTaskerError as err:
            show_failure(self._page, label, err)

    def delete_task(self, task_id: str):
        """タスクを削除"""
        try:
            self.app_state.delete_task(task_id)
        except LifeTaskerError as err:
            show_failure(self._page, "削除", err)

    def create_task(self, e):
        """入力内容からタスクを作成"""
        title = (self.title_field.value or "").strip()
        if not title:
            show_error(self._page, "タスク名を入力してください")
            return

        try:
            due = date.fromisoformat((self.due_date_field.value or "").strip())
        except ValueError:
            show_error(self._page, "期日は YYYY-MM-DD 形式で入力してください")
            return

        estimate_text = (self.estimate_field.value or "").strip()
        try:
            estimate = int(estimate_text) if estimate_text else None
        except ValueError:
            show_error(self._page, "見積もり時間は数字で入力してください")
            return

        try:
            if self.daily_checkbox.value:
                created = self.app_state.add_daily_tasks(
                    title, self.description_field.value or "", self.priority_dropdown.value,
                    anchor_date=due, estimated_minutes=estimate,
                )
                message = f"毎日タスクを{len(created)}件作成しました"
            else:
                self.app_state.add_task(
                    title, self.description_field.value or "", self.priority_dropdown.value,
                    due_date=due, estimated_minutes=estimate,
                )
                message = "タスクを作成しました"
        except LifeTaskerError as err:
            show_failure(self._page, "タスクの作成", err)
            return

        self.title_field.value = ""
        self.description_field.value = ""
        self.estimate_field.value = ""
        self.daily_checkbox.value = False
        show_success(self._page, message)

"""
実行中タスク画面（カウントダウン表示）
"""
import flet as ft

from ..errors import LifeTaskerError
from ..logic.app_state import AppState
from ..logic.task_time import active_tasks, display_progress, ZERO_DISPLAY
from ..logic.timer_logic import CountdownTicker
from ..models import Task
from .common import show_failure


class ActiveTaskCard(ft.Container):
    """実行中タスク1件のカード（カードごとにTickerを持つ）"""

    def __init__(self, task: Task, app_state: AppState, page: ft.Page):
        super().__init__()
        self.task = task
        self.app_state = app_state
        self._page = page
        self._mounted = False
        self._job = None
        self.ticker = CountdownTicker()
        self.ticker.on_tick = self._on_tick
        self.ticker.on_finish = self._on_finish

        self.time_text = ft.Text(ZERO_DISPLAY, size=22, weight=ft.FontWeight.BOLD,
                                 font_family="Consolas", color="#64b5f6")
        self.bgcolor = "#1e3a5f"
        self.border_radius = 10
        self.padding = 15
        self.width = 300
        self.content = ft.Column([
            ft.Row([
                ft.Text(task.title, size=16, weight=ft.FontWeight.BOLD, expand=True),
                ft.IconButton(icon="pause", tooltip="一時停止", on_click=self._pause),
                ft.IconButton(icon="stop_circle", tooltip="完了", icon_color="#4caf50",
                              on_click=self._complete),
            ]),
            ft.Row([
                ft.Text(f"見積もり {task.estimated_minutes}分", size=12, color="#9e9e9e", expand=True),
                self.time_text,
            ]),
            ft.ProgressBar(value=display_progress(task) / 100, color="#2196f3"),
        ], spacing=8)

    def did_mount(self):
        self._mounted = True
        self._job = self._page.run_task(self.ticker.run, self.task)

    def will_unmount(self):
        self._mounted = False
        self.ticker.stop()
        if self._job:
            self._job.cancel()
            self._job = None

    def _on_tick(self, task: Task, display: str):
        self.time_text.value = display
        if self._mounted:
            self.update()

    def _on_finish(self, task: Task):
        self.time_text.color = "#ff9800"
        if self._mounted:
            self.update()

    def _pause(self, e):
        self._apply("pause", "一時停止")

    def _complete(self, e):
        self._apply("complete", "完了")

    def _apply(self, action: str, label: str):
        try:
            updated = self.app_state.transition_task(self.task.id, action)
        except LifeTaskerError as err:
            show_failure(self._page, label, err)
            return
        self.ticker.update_task(updated)


class CurrentTasksView(ft.Column):
    """実行中タスクの一覧"""

    def __init__(self, app_state: AppState, page: ft.Page):
        super().__init__()
        self.app_state = app_state
        self._page = page
        self.spacing = 20
        self.expand = True
        self.scroll = ft.ScrollMode.AUTO
        self._mounted = False
        self._unsubscribe = None
        self._running_ids = None

        self.cards = ft.Row(wrap=True, spacing=15, run_spacing=15)
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
        # 実行中のタスク構成が変わった時だけカードを作り直す
        running = [(t.id, t.start_time) for t in active_tasks(state.tasks)]
        if running == self._running_ids:
            return
        self._build()
        if self._mounted:
            self.update()

    def _build(self):
        """画面を構築"""
        running = active_tasks(self.app_state.tasks)
        self._running_ids = [(t.id, t.start_time) for t in running]

        self.cards.controls = [ActiveTaskCard(task, self.app_state, self._page) for task in running]

        header = ft.Row([
            ft.Icon("play_circle", color="#2196f3", size=30),
            ft.Text("実行中のタスク", size=28, weight=ft.FontWeight.BOLD),
            ft.Text(f"{len(running)}件", size=16, color="#9e9e9e"),
        ], spacing=10)

        if not running:
            body = ft.Text("実行中のタスクはありません", color="#9e9e9e")
        else:
            body = self.cards

        self.controls = [header, ft.Divider(), body]

"""
Life Tasker - メインアプリケーション
ボタンベースナビゲーションでタスク・実行中タスク・目標を切り替える
"""
import logging
import os

import flet as ft

from . import config
from .cloud import SupabaseAuth, SupabaseDB, TaskChangeFeed
from .errors import LifeTaskerError
from .logic.app_state import AppState
from .views.common import show_failure
from .views.current_tasks_view import CurrentTasksView
from .views.goals_view import GoalsView
from .views.login_view import LoginView
from .views.task_board_view import TaskBoardView

logger = logging.getLogger(__name__)


def main(page: ft.Page):
    """アプリケーションエントリーポイント"""
    config.configure_logging()

    # ページ設定
    page.title = "Life Tasker"
    page.theme_mode = ft.ThemeMode.DARK
    page.padding = 0
    page.bgcolor = "#0f0f1a"

    page.theme = ft.Theme(
        color_scheme=ft.ColorScheme(
            primary="#7c4dff",
            secondary="#00bcd4",
            surface="#1a1a2e",
        ),
    )

    # セッションごとに状態を作り、画面へ参照で渡す
    auth = SupabaseAuth()
    db = SupabaseDB(auth)
    state = AppState(db)
    feed = TaskChangeFeed()

    content_area = ft.Column(
        expand=True,
        scroll=ft.ScrollMode.AUTO,
    )

    view_factories = [
        lambda: TaskBoardView(state, page),
        lambda: CurrentTasksView(state, page),
        lambda: GoalsView(state, page),
    ]

    def change_view(index):
        """画面を切り替え"""
        content_area.controls.clear()

        for i, btn in enumerate(nav_buttons):
            if i == index:
                btn.bgcolor = "#7c4dff"
                btn.color = "white"
            else:
                btn.bgcolor = "#1e3a5f"
                btn.color = "#90caf9"

        content_area.controls.append(view_factories[index]())
        page.update()

    def on_nav_click(e):
        """ナビゲーションボタンクリック"""
        change_view(e.control.data)

    def on_logout(e):
        auth.sign_out()

    nav_items = [
        ("📋", "タスク", 0),
        ("⏱️", "実行中", 1),
        ("🎯", "目標", 2),
    ]

    nav_buttons = []
    for emoji, label, idx in nav_items:
        btn = ft.ElevatedButton(
            content=ft.Column([
                ft.Text(emoji, size=20),
                ft.Text(label, size=10),
            ], horizontal_alignment=ft.CrossAxisAlignment.CENTER, spacing=2),
            data=idx,
            on_click=on_nav_click,
            bgcolor="#7c4dff" if idx == 0 else "#1e3a5f",
            color="white" if idx == 0 else "#90caf9",
            width=70,
            height=60,
        )
        nav_buttons.append(btn)

    logout_button = ft.IconButton(icon="logout", tooltip="ログアウト", icon_color="#90caf9", on_click=on_logout)

    side_nav = ft.Container(
        content=ft.Column(
            nav_buttons + [ft.Container(expand=True), logout_button],
            spacing=5,
            horizontal_alignment=ft.CrossAxisAlignment.CENTER,
        ),
        bgcolor="#1e3a5f",
        padding=10,
        width=90,
    )

    layout = ft.Row([
        side_nav,
        ft.VerticalDivider(width=1, color="#2a2a4a"),
        ft.Container(
            content=content_area,
            expand=True,
            padding=20,
        ),
    ], expand=True)

    def show_login():
        page.controls.clear()
        page.add(LoginView(page, auth))

    def show_main():
        page.controls.clear()
        page.add(layout)
        change_view(0)

    async def start_feed(user_id):
        """ログイン中ユーザーのtasks変更を購読"""
        try:
            await feed.start(user_id, auth.access_token, state.handle_task_change)
        except LifeTaskerError as err:
            show_failure(page, "変更通知の購読", err)

    def on_session_change(user):
        """ログイン/ログアウト時に全データを読み込み直す"""
        try:
            state.on_session_change(user)
        except LifeTaskerError as err:
            logger.error("データ読み込みエラー: %s", err)
            show_failure(page, "データの読み込み", err)
        if user:
            page.run_task(start_feed, user["id"])
            show_main()
        else:
            page.run_task(feed.stop)
            show_login()

    auth.on_auth_state_change(on_session_change)
    show_login()


if __name__ == "__main__":
    port = int(os.environ.get("FLET_SERVER_PORT", 8080))
    ft.app(target=main, port=port, host="0.0.0.0", view=None)

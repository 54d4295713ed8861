"""
画面共通の部品
"""
import flet as ft

from ..errors import describe

PRIORITY_COLORS = {
    "high": "#f44336",
    "medium": "#ff9800",
    "low": "#9e9e9e",
}

PRIORITY_LABELS = {
    "all": "すべて",
    "high": "高",
    "medium": "中",
    "low": "低",
}

STATUS_COLORS = {
    "todo": "#1e3a5f",
    "in-progress": "#5f1e2a",
    "completed": "#1e4030",
}


def show_message(page: ft.Page, message: str, bgcolor: str):
    snackbar = ft.SnackBar(
        content=ft.Text(message),
        bgcolor=bgcolor,
        action="OK"
    )
    page.overlay.append(snackbar)
    snackbar.open = True
    page.update()


def show_error(page: ft.Page, message: str):
    """エラーを表示"""
    show_message(page, message, "#f44336")


def show_success(page: ft.Page, message: str):
    """成功メッセージを表示"""
    show_message(page, message, "#4caf50")


def show_failure(page: ft.Page, action: str, error: Exception):
    """「〜に失敗しました」と原因を表示"""
    show_error(page, f"{action}に失敗しました: {describe(error)}")


def section(content, bgcolor: str = "#1e3a5f") -> ft.Container:
    """カード風のセクション"""
    return ft.Container(
        content=content,
        bgcolor=bgcolor,
        border_radius=10,
        padding=20,
    )

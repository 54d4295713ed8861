"""
ログイン画面（Email認証）
"""
import flet as ft

from ..cloud import SupabaseAuth
from .common import show_error, show_success


class LoginView(ft.Column):
    """ログイン画面"""

    def __init__(self, page: ft.Page, auth: SupabaseAuth):
        super().__init__()
        self._page = page
        self.auth = auth
        self.spacing = 30
        self.horizontal_alignment = ft.CrossAxisAlignment.CENTER
        self.alignment = ft.MainAxisAlignment.CENTER
        self.expand = True

        # 入力フィールド
        self.email_field = ft.TextField(
            label="メールアドレス",
            width=280,
            keyboard_type=ft.KeyboardType.EMAIL,
        )
        self.password_field = ft.TextField(
            label="パスワード",
            width=280,
            password=True,
            can_reveal_password=True,
            on_submit=self._login,
        )

        self._build()

    def _build(self):
        """画面を構築"""
        logo = ft.Column([
            ft.Text("✅", size=80),
            ft.Text("Life Tasker", size=36, weight=ft.FontWeight.BOLD, color="#90caf9"),
            ft.Text("〜タスクと目標をひとつの場所で〜", size=16, color="#9e9e9e"),
        ], horizontal_alignment=ft.CrossAxisAlignment.CENTER, spacing=10)

        # Supabase設定チェック
        if not self.auth.is_configured:
            warning_card = ft.Container(
                content=ft.Column([
                    ft.Icon("warning", color="#ff9800", size=40),
                    ft.Text("クラウド接続が設定されていません", weight=ft.FontWeight.BOLD),
                    ft.Text("SUPABASE_URL と SUPABASE_KEY を .env に設定してください", size=12, color="#9e9e9e"),
                ], horizontal_alignment=ft.CrossAxisAlignment.CENTER, spacing=10),
                bgcolor="#1e3a5f",
                border_radius=15,
                padding=30,
            )
            self.controls = [logo, warning_card]
            return

        login_button = ft.ElevatedButton(
            "ログイン",
            icon="login",
            bgcolor="#4caf50",
            color="white",
            width=280,
            height=45,
            on_click=self._login
        )

        signup_button = ft.ElevatedButton(
            "新規登録",
            icon="person_add",
            bgcolor="#2196f3",
            color="white",
            width=280,
            height=45,
            on_click=self._signup
        )

        login_card = ft.Container(
            content=ft.Column([
                self.email_field,
                self.password_field,
                ft.Container(height=10),
                login_button,
                ft.Text("または", size=12, color="#757575"),
                signup_button,
            ], horizontal_alignment=ft.CrossAxisAlignment.CENTER, spacing=8),
            bgcolor="#1e3a5f80",
            border=ft.border.all(1, "#ffffff20"),
            border_radius=15,
            padding=30,
        )

        self.controls = [
            ft.Container(expand=True),
            logo,
            ft.Container(height=30),
            login_card,
            ft.Container(expand=True),
        ]

    def _read_fields(self):
        email = (self.email_field.value or "").strip()
        password = self.password_field.value or ""
        if not email or not password:
            show_error(self._page, "メールアドレスとパスワードを入力してください")
            return None
        return email, password

    def _login(self, e):
        """ログイン（成功するとセッション変化の通知で画面が切り替わる）"""
        fields = self._read_fields()
        if not fields:
            return

        result = self.auth.sign_in_with_email(*fields)
        if result.get("error"):
            show_error(self._page, f"ログインに失敗しました: {result['error']}")

    def _signup(self, e):
        """新規登録"""
        fields = self._read_fields()
        if not fields:
            return

        if len(fields[1]) < 6:
            show_error(self._page, "パスワードは6文字以上にしてください")
            return

        result = self.auth.sign_up_with_email(*fields)
        if result.get("error"):
            show_error(self._page, f"登録に失敗しました: {result['error']}")
        elif not self.auth.is_authenticated:
            show_success(self._page, "登録完了！確認メールを送信しました。メールを確認してログインしてください。")

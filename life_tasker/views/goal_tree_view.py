"""
目標ツリー画面
"""
import flet as ft

from ..errors import LifeTaskerError, NotFoundError, describe
from ..logic.goal_tree import GoalTreeEngine, TreeRow
from ..models import GOAL_TYPES
from .common import show_failure

GOAL_TYPE_LABELS = {1: "短期", 2: "中期", 3: "長期"}

INDENT = 24


class GoalTreeView(ft.Column):
    """目標ツリー（展開/折りたたみ・サブ目標追加・目標の編集）"""

    def __init__(self, engine: GoalTreeEngine, page: ft.Page, on_back=None):
        super().__init__()
        self.engine = engine
        self._page = page
        self.on_back = on_back
        self.spacing = 10
        self.expand = True
        self.scroll = ft.ScrollMode.AUTO
        self._mounted = False
        self.error = None
        self.selected_id = None

        self._load()
        self._build()

    def did_mount(self):
        self._mounted = True

    def will_unmount(self):
        self._mounted = False

    def _refresh(self):
        self._build()
        if self._mounted:
            self.update()

    def _load(self):
        """ツリーを読み込み（失敗時は再試行できるエラー表示）"""
        try:
            self.engine.load_tree()
            self.error = None
        except LifeTaskerError as err:
            self.error = describe(err)

    # === 構築 ===

    def _build(self):
        """画面を構築"""
        header = ft.Row([
            ft.IconButton(icon="arrow_back", tooltip="目標一覧へ", on_click=self._back),
            ft.Text("目標ツリー 🌳", size=28, weight=ft.FontWeight.BOLD),
        ])

        if self.error:
            self.controls = [header, self._build_error()]
        elif self.engine.needs_root:
            self.controls = [header, self._build_empty()]
        else:
            self.controls = [header] + [self._build_row(row) for row in self.engine.render()]

    def _build_error(self) -> ft.Container:
        return ft.Container(
            content=ft.Column([
                ft.Icon("error", color="#f44336", size=40),
                ft.Text("目標の読み込みに失敗しました", size=18, weight=ft.FontWeight.BOLD),
                ft.Text(self.error, color="#9e9e9e"),
                ft.ElevatedButton("再試行", icon="refresh", on_click=self._retry),
            ], horizontal_alignment=ft.CrossAxisAlignment.CENTER, spacing=10),
            bgcolor="#3e1e1e",
            border_radius=15,
            padding=30,
        )

    def _build_empty(self) -> ft.Container:
        return ft.Container(
            content=ft.Column([
                ft.Icon("track_changes", color="#2196f3", size=40),
                ft.Text("ルート目標がありません", size=18, weight=ft.FontWeight.BOLD),
                ft.Text("まずルート目標を作成し、そこからサブ目標を追加しましょう", color="#9e9e9e"),
                ft.ElevatedButton("ルート目標を作成", icon="add", bgcolor="#2196f3", color="white",
                                  on_click=self._create_root),
            ], horizontal_alignment=ft.CrossAxisAlignment.CENTER, spacing=10),
            bgcolor="#1e3a5f",
            border_radius=15,
            padding=30,
        )

    def _build_row(self, row: TreeRow) -> ft.Container:
        node = row.node
        if row.has_children:
            toggle = ft.IconButton(
                icon="expand_more" if row.expanded else "chevron_right",
                icon_size=18,
                on_click=lambda e, nid=node.id: self._toggle(nid),
            )
        else:
            toggle = ft.Container(width=40)

        details = []
        if node.implementation:
            details.append(ft.Text(node.implementation, size=12, color="#b0bec5"))
        if node.planned_start_date:
            end = node.planned_end_date.isoformat() if node.planned_end_date else "継続中"
            details.append(ft.Text(f"📅 {node.planned_start_date.isoformat()} 〜 {end}", size=12, color="#9e9e9e"))
        if node.completed_at:
            details.append(ft.Text(f"✅ 完了: {node.completed_at.date().isoformat()}", size=12, color="#4caf50"))

        badges = [ft.Text(GOAL_TYPE_LABELS.get(node.goal_type, GOAL_TYPES.get(node.goal_type, "")),
                          size=11, color="#90caf9")]
        if node.is_root:
            badges.append(ft.Text("ルート", size=11, color="#ffc107"))

        selected = node.id == self.selected_id
        return ft.Container(
            content=ft.Row([
                toggle,
                ft.Column([
                    ft.Row([
                        ft.Text(node.content, size=16, weight=ft.FontWeight.BOLD, expand=True),
                        *badges,
                        ft.IconButton(icon="add", tooltip="サブ目標を追加", icon_color="#2196f3",
                                      on_click=lambda e, nid=node.id: self._add_child(nid)),
                        ft.IconButton(icon="edit", tooltip="目標を編集",
                                      on_click=lambda e, nid=node.id: self._open_edit_dialog(nid)),
                    ]),
                    *details,
                    ft.Row([
                        ft.ProgressBar(value=node.progress / 100, color="#2196f3", expand=True),
                        ft.Text(f"{node.progress}%", size=12),
                    ]),
                ], expand=True, spacing=4),
            ], vertical_alignment=ft.CrossAxisAlignment.START),
            margin=ft.margin.only(left=row.depth * INDENT),
            bgcolor="#1e3a5f",
            border=ft.border.all(2, "#2196f3") if selected else None,
            border_radius=10,
            padding=10,
            on_click=lambda e, nid=node.id: self._select(nid),
        )

    # === 操作 ===

    def _back(self, e):
        if self.on_back:
            self.on_back()

    def _retry(self, e):
        self._load()
        self._refresh()

    def _toggle(self, node_id: str):
        self.engine.toggle_expand(node_id)
        self._refresh()

    def _select(self, node_id: str):
        self.selected_id = node_id
        self._refresh()

    def _create_root(self, e):
        try:
            self.engine.create_root()
            self.error = None
        except NotFoundError as err:
            self.error = describe(err)
        except LifeTaskerError as err:
            show_failure(self._page, "ルート目標の作成", err)
            return
        self._refresh()

    def _add_child(self, parent_id: str):
        try:
            self.engine.add_child(parent_id)
        except LifeTaskerError as err:
            show_failure(self._page, "サブ目標の追加", err)
            return
        self._refresh()

    def _open_edit_dialog(self, node_id: str):
        """内容・種類・日付・進捗を編集するダイアログ"""
        node = self.engine.find(node_id)

        def date_field(label: str, value) -> ft.TextField:
            return ft.TextField(label=label, width=160, hint_text="YYYY-MM-DD",
                                value=value.isoformat() if value else "")

        content_field = ft.TextField(label="内容", value=node.content, width=340)
        implementation_field = ft.TextField(label="実施方法", value=node.implementation or "",
                                            width=340, multiline=True)
        improvements_field = ft.TextField(label="改善点", value=node.improvements or "",
                                          width=340, multiline=True)
        summary_field = ft.TextField(label="振り返り", value=node.summary or "",
                                     width=340, multiline=True)
        type_dropdown = ft.Dropdown(
            label="種類",
            width=120,
            options=[ft.dropdown.Option(str(k), v) for k, v in GOAL_TYPE_LABELS.items()],
            value=str(node.goal_type),
        )
        planned_start_field = date_field("開始予定日", node.planned_start_date)
        planned_end_field = date_field("終了予定日", node.planned_end_date)
        actual_start_field = date_field("実際の開始日", node.actual_start_date)
        progress_slider = ft.Slider(min=0, max=100, divisions=20, value=node.progress, label="{value}%")

        def close_dialog(e):
            dialog.open = False
            self._page.update()

        def save(e):
            changes = {
                "content": content_field.value,
                "implementation": implementation_field.value or None,
                "improvements": improvements_field.value or None,
                "summary": summary_field.value or None,
                "goal_type": int(type_dropdown.value),
                "planned_start_date": (planned_start_field.value or "").strip() or None,
                "planned_end_date": (planned_end_field.value or "").strip() or None,
                "actual_start_date": (actual_start_field.value or "").strip() or None,
                "progress": int(progress_slider.value),
            }
            try:
                self.engine.update_node(node_id, changes)
            except LifeTaskerError as err:
                show_failure(self._page, "目標の更新", err)
                return
            dialog.open = False
            self._page.update()
            self._refresh()

        dialog = ft.AlertDialog(
            modal=True,
            title=ft.Text("目標を編集"),
            content=ft.Column([
                content_field,
                type_dropdown,
                ft.Row([planned_start_field, planned_end_field], wrap=True),
                actual_start_field,
                implementation_field,
                improvements_field,
                summary_field,
                ft.Text("進捗"),
                progress_slider,
            ], tight=True, scroll=ft.ScrollMode.AUTO),
            actions=[
                ft.TextButton("キャンセル", on_click=close_dialog),
                ft.ElevatedButton("保存", bgcolor="#4caf50", color="white", on_click=save),
            ],
            actions_alignment=ft.MainAxisAlignment.END,
        )
        self._page.overlay.append(dialog)
        dialog.open = True
        self._page.update()

"""
目標ツリーロジック
Supabaseから取得したフラットなノード一覧をツリーとして扱う
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Set

from ..errors import NotFoundError, ValidationError
from ..models import GOAL_TYPES, GoalNode, parse_date

logger = logging.getLogger(__name__)

DEFAULT_SUBGOAL_CONTENT = "新しいサブ目標"

# 編集モーダルから変更できる列
EDITABLE_FIELDS = (
    "content",
    "implementation",
    "improvements",
    "summary",
    "goal_type",
    "planned_start_date",
    "planned_end_date",
    "actual_start_date",
    "completed_at",
    "progress",
    "prerequisites",
)


@dataclass
class RenderedNode:
    """1ノード分の描画情報"""
    node: GoalNode
    depth: int
    children: List[GoalNode] = field(default_factory=list)


@dataclass
class TreeRow:
    """表示中の1行（インデントはdepthで決まる）"""
    node: GoalNode
    depth: int
    has_children: bool
    expanded: bool


def validate_progress(progress) -> int:
    if not isinstance(progress, int) or isinstance(progress, bool) or not 0 <= progress <= 100:
        raise ValidationError("進捗は0〜100の整数で入力してください")
    return progress


class GoalTreeEngine:
    """目標ツリーの読み込み・展開状態・構造変更を扱うクラス"""

    def __init__(self, db, goal_id: Optional[str], user_id: Optional[str]):
        self.db = db
        self.goal_id = goal_id
        self.user_id = user_id
        self.nodes: List[GoalNode] = []
        self.expanded: Set[str] = set()
        self.loaded = False

    # === 読み込み ===

    def _require_ids(self):
        if not self.goal_id or not self.user_id:
            raise NotFoundError("ユーザーIDと目標IDが必要です")

    def load_tree(self) -> List[GoalNode]:
        """ツリーの全ノードを取得し、ルートを展開状態にする"""
        self._require_ids()
        nodes = self.db.get_goal_tree(self.goal_id)

        self.nodes = list(nodes)
        self.loaded = True
        root = self.root
        self.expanded = {root.id} if root else set()
        logger.info("目標ツリーを読み込みました: goal=%s nodes=%d", self.goal_id, len(self.nodes))
        return self.nodes

    @property
    def root(self) -> Optional[GoalNode]:
        """
        ルートノード

        is_rootフラグを優先し、なければ親を持たないノード
        （同じgoal_idのもの、次に唯一のもの）を採用する
        """
        for node in self.nodes:
            if node.is_root:
                return node

        parentless = [n for n in self.nodes if not n.parent_id]
        for node in parentless:
            if node.goal_id and node.goal_id == self.goal_id:
                return node
        if len(parentless) == 1:
            return parentless[0]
        if parentless:
            logger.warning("ルートを特定できません: 親のないノードが%d件", len(parentless))
        return None

    @property
    def needs_root(self) -> bool:
        """読み込み済みでルートがない（ルート作成を促す）"""
        return self.loaded and self.root is None

    def find(self, node_id: str) -> GoalNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise NotFoundError(f"目標ノードが見つかりません: {node_id}")

    # === 展開状態 ===

    def toggle_expand(self, node_id: str) -> bool:
        """展開/折りたたみを切り替え、切り替え後に展開されているかを返す"""
        if node_id in self.expanded:
            self.expanded.discard(node_id)
            return False
        self.expanded.add(node_id)
        return True

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self.expanded

    # === 描画用の導出 ===

    def children_of(self, node_id: str) -> List[GoalNode]:
        """直下の子ノード（取得順のまま）"""
        return [n for n in self.nodes if n.parent_id == node_id]

    def render_node(self, node: GoalNode, depth: int = 0) -> RenderedNode:
        return RenderedNode(node=node, depth=depth, children=self.children_of(node.id))

    def render(self, expand_all: bool = False) -> List[TreeRow]:
        """
        表示する行を上から順に列挙

        Args:
            expand_all: 展開状態に関係なく全ノードを列挙する

        再帰を使わないので深さの上限はない
        """
        root = self.root
        if root is None:
            return []

        rows: List[TreeRow] = []
        visited: Set[str] = set()
        stack = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            if node.id in visited:
                logger.warning("目標ツリーに循環があります: %s", node.id)
                continue
            visited.add(node.id)

            rendered = self.render_node(node, depth)
            expanded = expand_all or self.is_expanded(node.id)
            rows.append(TreeRow(node, depth, bool(rendered.children), expanded))
            if expanded:
                stack.extend((child, depth + 1) for child in reversed(rendered.children))
        return rows

    # === 構造変更 ===

    def create_root(self) -> List[GoalNode]:
        """ルートノードを作成し、ツリーを再読み込み"""
        self._require_ids()
        self.db.create_goal_root_node(self.goal_id, self.user_id)
        logger.info("ルート目標を作成しました: goal=%s", self.goal_id)
        return self.load_tree()

    def add_child(self, parent_id: str, content: str = DEFAULT_SUBGOAL_CONTENT) -> GoalNode:
        """サブ目標を追加（Supabaseへの挿入が成功してから反映）"""
        parent = self.find(parent_id)
        content = (content or "").strip()
        if not content:
            raise ValidationError("目標の内容を入力してください")

        draft = GoalNode(
            user_id=self.user_id,
            parent_id=parent.id,
            content=content,
            goal_type=1,
            progress=0,
        )
        created = self.db.insert_goal_node(draft)

        self.nodes.append(created)
        self.expanded.add(parent.id)
        return created

    def update_node(self, node_id: str, changes: Dict[str, Any]) -> GoalNode:
        """編集モーダルの内容を保存（changesは列名→値）"""
        node = self.find(node_id)
        changes = dict(changes)

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"変更できない項目です: {', '.join(sorted(unknown))}")
        if "content" in changes:
            changes["content"] = (changes["content"] or "").strip()
            if not changes["content"]:
                raise ValidationError("目標の内容を入力してください")
        if "progress" in changes:
            validate_progress(changes["progress"])
        if "goal_type" in changes and changes["goal_type"] not in GOAL_TYPES:
            raise ValidationError("目標の種類は1(短期)・2(中期)・3(長期)のいずれかです")
        for key in GoalNode.DATE_FIELDS:
            if key in changes:
                try:
                    changes[key] = parse_date(changes[key])
                except (TypeError, ValueError):
                    raise ValidationError(f"日付は YYYY-MM-DD 形式で入力してください: {changes[key]}")
        start, end = (changes.get(k, getattr(node, k)) for k in ("planned_start_date", "planned_end_date"))
        if start and end and end < start:
            raise ValidationError("終了予定日は開始予定日以降にしてください")

        payload = {
            key: value.isoformat() if isinstance(value, (date, datetime)) else value
            for key, value in changes.items()
        }
        updated = self.db.update_goal_node(node.id, self.user_id, payload)

        index = self.nodes.index(node)
        self.nodes[index] = updated
        return updated

    def mark_progress(self, node_id: str, progress: int) -> GoalNode:
        """進捗を更新"""
        return self.update_node(node_id, {"progress": progress})

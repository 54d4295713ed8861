"""
データモデル定義
Supabaseの行（dict）との相互変換を含む
"""
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional


TASK_STATUSES = ("todo", "in-progress", "completed")
PRIORITIES = ("low", "medium", "high")
PRIORITY_WEIGHTS = {"high": 3, "medium": 2, "low": 1}

# 目標ノードの種類（1=短期, 2=中期, 3=長期）
GOAL_TYPES = {1: "short-term", 2: "medium-term", 3: "long-term"}

GOAL_DIMENSIONS = ("personal", "financial", "social", "lifestyle", "family")
GOAL_PERIODS = ("yearly", "quarterly", "monthly")
GOAL_STATUSES = ("not_started", "in_progress", "completed", "cancelled")

# 挿入時にサーバー側で採番される列
SERVER_COLUMNS = ("id", "created_at", "updated_at")


def utc_now() -> datetime:
    """現在時刻（UTC）"""
    return datetime.now(timezone.utc)


def parse_datetime(value) -> Optional[datetime]:
    """ISO8601文字列をタイムゾーン付きdatetimeに変換"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value) -> Optional[date]:
    """YYYY-MM-DD（または日時文字列）をdateに変換"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _serialize(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class Record:
    """Supabase行との変換を持つモデルの共通処理"""

    DATETIME_FIELDS: tuple = ()
    DATE_FIELDS: tuple = ()

    @classmethod
    def from_row(cls, row: Dict[str, Any]):
        """Supabaseの行からモデルを生成（未知の列は無視）"""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in row.items():
            if key not in known:
                continue
            if key in cls.DATETIME_FIELDS:
                value = parse_datetime(value)
            elif key in cls.DATE_FIELDS:
                value = parse_date(value)
            values[key] = value
        return cls(**values)

    def to_row(self, for_insert: bool = False) -> Dict[str, Any]:
        """Supabaseに送る行データに変換"""
        row = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in SERVER_COLUMNS and (for_insert or value is None):
                continue
            row[f.name] = _serialize(value)
        return row


@dataclass
class Task(Record):
    """タスクモデル"""
    id: Optional[str] = None
    user_id: Optional[str] = None
    title: str = ""
    description: str = ""
    status: str = "todo"  # todo, in-progress, completed
    priority: str = "medium"  # low, medium, high
    due_date: Optional[date] = None
    start_time: Optional[datetime] = None  # 着手時刻（一時停止で消去）
    estimated_minutes: Optional[int] = None  # 見積もり（1〜1440分）
    completed_at: Optional[datetime] = None
    progress: int = 0  # 0-100
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    DATETIME_FIELDS = ("start_time", "completed_at", "created_at", "updated_at")
    DATE_FIELDS = ("due_date",)


@dataclass
class GoalNode(Record):
    """目標ツリーのノード"""
    id: Optional[str] = None
    user_id: Optional[str] = None
    parent_id: Optional[str] = None  # ルートはNone
    goal_id: Optional[str] = None  # ツリーを持つGoal（ルートに設定）
    content: str = ""
    implementation: Optional[str] = None
    improvements: Optional[str] = None
    summary: Optional[str] = None
    goal_type: int = 1  # 1=短期, 2=中期, 3=長期
    planned_start_date: Optional[date] = None
    planned_end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    progress: int = 0  # 0-100
    prerequisites: List[str] = field(default_factory=list)
    is_root: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    DATETIME_FIELDS = ("completed_at", "created_at", "updated_at")
    DATE_FIELDS = ("planned_start_date", "planned_end_date", "actual_start_date")


@dataclass
class Goal(Record):
    """計画用の目標（目標ツリーのルートを持てる）"""
    id: Optional[str] = None
    user_id: Optional[str] = None
    title: str = ""
    description: str = ""
    dimension: str = "personal"  # personal, financial, social, lifestyle, family
    period: str = "yearly"  # yearly, quarterly, monthly
    target_date: Optional[date] = None
    progress: int = 0  # 0-100
    status: str = "not_started"  # not_started, in_progress, completed, cancelled
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    DATETIME_FIELDS = ("created_at", "updated_at")
    DATE_FIELDS = ("target_date",)

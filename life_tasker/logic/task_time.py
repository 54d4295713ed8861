"""
タスクの時間計算・並び替えロジック
画面から呼ばれる純粋関数のみ（Supabaseへの書き込みは行わない）
"""
import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional

from ..errors import ValidationError
from ..models import PRIORITY_WEIGHTS, Task

MAX_ESTIMATED_MINUTES = 1440  # 24時間

ZERO_DISPLAY = "00:00.00"


def remaining_ms(task: Task, now: datetime) -> int:
    """残り時間（ミリ秒）。実行中でないタスクは0"""
    if task.status != "in-progress" or not task.start_time or not task.estimated_minutes:
        return 0
    end_time = task.start_time + timedelta(minutes=task.estimated_minutes)
    remaining = (end_time - now) // timedelta(milliseconds=1)
    return max(0, remaining)


def format_remaining(milliseconds: int) -> str:
    """ミリ秒を MM:SS.CC 形式に整形（分は2桁を超えても切り詰めない）"""
    minutes = milliseconds // 60000
    seconds = (milliseconds % 60000) // 1000
    centiseconds = (milliseconds % 1000) // 10
    return f"{minutes:02d}:{seconds:02d}.{centiseconds:02d}"


def remaining_time(task: Task, now: datetime) -> str:
    """実行中タスクの残り時間表示"""
    return format_remaining(remaining_ms(task, now))


def _start_key(task: Task):
    # 着手時刻のないタスクは後ろへ
    if task.start_time is None:
        return (1, 0.0)
    return (0, task.start_time.timestamp())


def sort_by_priority(tasks: List[Task]) -> List[Task]:
    """
    優先度順に並べ替え（安定ソート）

    優先度が同じ場合は実行中を先に、次に着手時刻の早い順
    """
    return sorted(
        tasks,
        key=lambda t: (
            -PRIORITY_WEIGHTS.get(t.priority, 0),
            0 if t.status == "in-progress" else 1,
            _start_key(t),
        ),
    )


def filter_by_priority(tasks: List[Task], priority_filter: str = "all") -> List[Task]:
    """優先度で絞り込み（"all" は絞り込みなし）"""
    if priority_filter == "all":
        return list(tasks)
    return [t for t in tasks if t.priority == priority_filter]


def active_tasks(tasks: List[Task]) -> List[Task]:
    """カウントダウン表示対象の実行中タスク"""
    return [
        t for t in tasks
        if t.status == "in-progress" and t.start_time and t.estimated_minutes
    ]


def validate_estimated_minutes(minutes: Optional[int]):
    """見積もり時間を検証（未設定・範囲外はValidationError）"""
    if not minutes:
        raise ValidationError("タスクを開始する前に見積もり時間（分）を設定してください")
    if minutes < 0:
        raise ValidationError("見積もり時間は1分以上で入力してください")
    if minutes > MAX_ESTIMATED_MINUTES:
        raise ValidationError("見積もり時間は24時間（1440分）を超えられません")


def expand_daily_template(title_base: str, description: str, priority: str,
                          estimated_minutes: Optional[int], anchor_date: date) -> List[Task]:
    """
    毎日タスクを月の日数分に展開

    Args:
        anchor_date: 対象月を決める日付（その月の1日〜末日を生成）

    Returns:
        作成用のTask（idなし）のリスト
    """
    _, last_day = calendar.monthrange(anchor_date.year, anchor_date.month)
    return [
        Task(
            title=f"{title_base} (Daily)",
            description=description,
            priority=priority,
            due_date=date(anchor_date.year, anchor_date.month, day),
            status="todo",
            estimated_minutes=estimated_minutes,
        )
        for day in range(1, last_day + 1)
    ]


def display_progress(task: Task) -> int:
    """進捗バーに表示する値"""
    if task.status == "completed":
        return 100
    if task.status == "todo":
        return 0
    return task.progress or 50


def week_days(today: date) -> List[date]:
    """todayを含む週（月曜始まり）の7日間"""
    monday = today - timedelta(days=today.weekday())
    return [monday + timedelta(days=i) for i in range(7)]


def tasks_for_date(tasks: List[Task], day: date) -> List[Task]:
    """期日が指定日のタスク"""
    return [t for t in tasks if t.due_date == day]


def tasks_for_month(tasks: List[Task], year: int, month: int) -> List[Task]:
    """期日が指定月のタスク"""
    return [
        t for t in tasks
        if t.due_date and t.due_date.year == year and t.due_date.month == month
    ]

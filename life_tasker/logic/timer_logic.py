"""
カウントダウン制御ロジック
実行中タスク1件ごとに1つのTickerを持ち、画面の破棄時に必ず停止する
"""
import asyncio
from typing import Callable, Optional

from .. import config
from ..models import Task, utc_now
from .task_time import remaining_ms, format_remaining


class CountdownTicker:
    """実行中タスクの残り時間を一定間隔で再計算するクラス"""

    def __init__(self, interval: float = None, clock: Callable = utc_now):
        self.interval = config.TICK_INTERVAL if interval is None else interval
        self.clock = clock

        self.current_task: Optional[Task] = None
        self.is_running: bool = False
        self.cancelled: bool = False  # stop()後はrunを開始しない
        self.remaining_ms: int = 0

        # コールバック
        self.on_tick: Optional[Callable] = None  # (task, "MM:SS.CC")
        self.on_finish: Optional[Callable] = None  # 残り0になった時

    async def run(self, task: Task):
        """カウントダウンを開始（page.run_taskから呼び出し）"""
        self.current_task = task
        if self.cancelled:
            return
        self.is_running = True

        while self.is_running:
            task = self.current_task
            if task is None or task.status != "in-progress":
                break

            self.remaining_ms = remaining_ms(task, self.clock())
            if self.on_tick:
                self.on_tick(task, format_remaining(self.remaining_ms))

            if self.remaining_ms == 0:
                self.is_running = False
                if self.on_finish:
                    self.on_finish(task)
                break

            await asyncio.sleep(self.interval)

        self.is_running = False

    def update_task(self, task: Task):
        """表示中のタスクを差し替え（実行中でなくなったら停止）"""
        self.current_task = task
        if task.status != "in-progress":
            self.stop()

    def stop(self):
        """カウントダウンを停止（開始前に呼ばれた場合も以後のrunは動かない）"""
        self.cancelled = True
        self.is_running = False

    def get_formatted_time(self) -> str:
        """最後に計算した残り時間（MM:SS.CC）"""
        return format_remaining(self.remaining_ms)

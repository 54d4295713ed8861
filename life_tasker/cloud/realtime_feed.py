"""
tasksテーブルの変更通知
Supabase Realtimeのpostgres_changesを購読し、ログイン中ユーザーの行の変更を受け取る
"""
import logging
from typing import Any, Callable, Dict, Optional

from realtime import AsyncRealtimeClient

from .. import config
from ..errors import LifeTaskerError, RemoteOperationError

logger = logging.getLogger(__name__)

CHANNEL_NAME = "tasks-changes"


def realtime_url(supabase_url: str) -> str:
    """https://xxx.supabase.co → wss://xxx.supabase.co/realtime/v1"""
    return f"{supabase_url.rstrip('/')}/realtime/v1".replace("http", "ws", 1)


class TaskChangeFeed:
    """ログイン中だけtasksの変更を購読するクラス"""

    def __init__(self, url: str = None, key: str = None,
                 client_factory: Callable = AsyncRealtimeClient):
        self.url = url if url is not None else config.SUPABASE_URL
        self.key = key if key is not None else config.SUPABASE_KEY
        self.client_factory = client_factory
        self.client = None
        self.channel = None
        self.user_id: Optional[str] = None

    @property
    def is_subscribed(self) -> bool:
        return self.channel is not None

    async def start(self, user_id: str, access_token: Optional[str],
                    on_change: Callable[[Dict[str, Any]], Any]):
        """
        変更通知の購読を開始

        Args:
            user_id: 購読対象のユーザー（user_id=eq.<id>で絞り込む）
            access_token: RLSを通すためのユーザートークン
            on_change: 変更1件ごとに呼ばれる（payloadをそのまま渡す）
        """
        await self.stop()
        if not self.url or not self.key:
            logger.warning("Supabaseの接続情報がないため変更通知を購読しません")
            return

        def handle(payload: Dict[str, Any]):
            try:
                on_change(payload)
            except LifeTaskerError as e:
                logger.error("変更通知の処理に失敗: %s", e)

        client = self.client_factory(realtime_url(self.url), self.key)
        try:
            await client.connect()
            if access_token:
                await client.set_auth(access_token)
            channel = client.channel(CHANNEL_NAME)
            channel.on_postgres_changes(
                "*",
                schema="public",
                table="tasks",
                filter=f"user_id=eq.{user_id}",
                callback=handle,
            )
            await channel.subscribe()
        except Exception as e:
            logger.error("変更通知の購読に失敗: %s", e)
            await client.close()
            raise RemoteOperationError(f"変更通知の購読に失敗しました: {e}")

        self.client = client
        self.channel = channel
        self.user_id = user_id
        logger.info("tasksの変更通知を購読開始: user=%s", user_id)

    async def stop(self):
        """購読を解除して接続を閉じる（未購読なら何もしない）"""
        if self.client is None:
            return
        client, channel = self.client, self.channel
        self.client = None
        self.channel = None
        try:
            if channel is not None:
                await client.remove_channel(channel)
        finally:
            await client.close()
        logger.info("tasksの変更通知を購読解除: user=%s", self.user_id)
        self.user_id = None

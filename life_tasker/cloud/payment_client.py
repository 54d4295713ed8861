"""
決済連携モジュール
WeChat Pay（QRコード）と銀行カード決済をEdge Function経由で扱う

タスク・目標の画面やJSON APIからは呼ばない。
課金画面や管理用スクリプトが life_tasker.cloud から取り込み、SupabaseDBを渡して使う
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from .. import config
from ..errors import LifeTaskerError, NotFoundError, ValidationError
from .supabase_client import SupabaseDB

logger = logging.getLogger(__name__)

PAYMENT_TABLES = {
    "wechat": "wechat_payments",
    "bank_card": "bank_card_payments",
}

FINAL_STATUSES = ("completed", "failed")

CARD_FIELDS = ("number", "expiry", "cvv", "name")


class PaymentGateway:
    """決済の開始・状態確認・取消を行う窓口"""

    def __init__(self, db: SupabaseDB):
        self.db = db

    def _table(self, method: str) -> str:
        if method not in PAYMENT_TABLES:
            raise ValidationError(f"未対応の決済方法です: {method}")
        return PAYMENT_TABLES[method]

    def initiate(self, method: str, user_id: str, amount: int, description: str = "",
                 card: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        決済を開始

        Args:
            method: "wechat" または "bank_card"
            amount: 金額（最小通貨単位）
            card: 銀行カード決済時のカード情報（number, expiry, cvv, name）

        Returns:
            作成された決済レコード
        """
        self._table(method)
        if amount <= 0:
            raise ValidationError("金額は1以上で指定してください")

        if method == "wechat":
            payment = self.db.invoke_function(
                "create-wechat-payment",
                {"amount": amount, "userId": user_id, "description": description},
            )
        else:
            card = card or {}
            missing = [name for name in CARD_FIELDS if not card.get(name)]
            if missing:
                raise ValidationError(f"カード情報が不足しています: {', '.join(missing)}")
            payment = self.db.invoke_function(
                "create-bank-card-payment",
                {"amount": amount, "userId": user_id, "cardDetails": card},
            )

        logger.info("決済を開始しました: %s %s", method, payment.get("order_id") if payment else None)
        return payment

    def get_status(self, method: str, payment_id: str) -> str:
        """決済レコードの現在のステータスを取得"""
        rows = self.db.select(self._table(method), {"id": payment_id}, limit=1)
        if not rows:
            raise NotFoundError(f"決済が見つかりません: {payment_id}")
        return rows[0].get("status", "pending")

    def confirm(self, payment_id: str) -> str:
        """WeChat Pay側に注文状態を問い合わせてステータスを確定"""
        result = self.db.invoke_function("verify-wechat-payment", {"paymentId": payment_id}) or {}
        return result.get("status", "pending")

    def cancel(self, method: str, payment_id: str) -> bool:
        """保留中の決済を取り消す（完了済みは取り消さない）"""
        rows = self.db.update(
            self._table(method),
            {"status": "failed"},
            {"id": payment_id, "status": "pending"},
        )
        return bool(rows)


class PaymentStatusPoller:
    """QR決済のステータスを一定間隔で確認する"""

    def __init__(self, gateway: PaymentGateway, method: str = "wechat", interval: float = None):
        self.gateway = gateway
        self.method = method
        self.interval = config.PAYMENT_POLL_INTERVAL if interval is None else interval
        self.is_running = False
        self.last_status: Optional[str] = None

        # コールバック
        self.on_update: Optional[Callable] = None
        self.on_success: Optional[Callable] = None
        self.on_failure: Optional[Callable] = None

    async def run(self, payment_id: str) -> Optional[str]:
        """完了/失敗になるか停止されるまで確認を続け、最後のステータスを返す"""
        self.is_running = True
        while self.is_running:
            await asyncio.sleep(self.interval)
            if not self.is_running:
                break

            try:
                status = self.gateway.get_status(self.method, payment_id)
            except LifeTaskerError as e:
                # 一時的な失敗は次回の確認に回す
                logger.warning("決済ステータス確認エラー: %s", e)
                continue

            self.last_status = status
            if self.on_update:
                self.on_update(status)

            if status in FINAL_STATUSES:
                self.is_running = False
                if status == "completed" and self.on_success:
                    self.on_success()
                elif status == "failed" and self.on_failure:
                    self.on_failure()

        return self.last_status

    def stop(self):
        """確認を停止"""
        self.is_running = False

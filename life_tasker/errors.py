"""
エラー定義
"""
from typing import Optional


# 既知の制約名 → 表示用メッセージ
CONSTRAINT_MESSAGES = {
    "unique_account_name_per_user": "同じ名前の口座がすでに存在します",
    "unique_account_number_per_institution": "この金融機関にはすでに同じ口座番号が登録されています",
    "valid_account_number": "口座番号は4桁の数字で入力してください",
    "valid_progress": "進捗は0〜100の範囲で入力してください",
    "valid_estimated_minutes": "見積もり時間は1〜1440分の範囲で入力してください",
}


class LifeTaskerError(Exception):
    """アプリ共通の基底例外"""


class ValidationError(LifeTaskerError):
    """入力・状態遷移の前提条件を満たさない"""


class NotFoundError(LifeTaskerError):
    """対象のデータが見つからない"""


class RemoteOperationError(LifeTaskerError):
    """Supabaseへのリクエストが失敗した"""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    @property
    def friendly_message(self) -> str:
        """制約名から利用者向けのメッセージを導出"""
        return friendly_message(self.message)


def friendly_message(raw: str) -> str:
    """エラーメッセージ中の制約名を表示用メッセージに置き換える"""
    for constraint, message in CONSTRAINT_MESSAGES.items():
        if constraint in raw:
            return message
    return raw


def describe(error: Exception) -> str:
    """画面表示用のエラー文言"""
    if isinstance(error, RemoteOperationError):
        return error.friendly_message
    return str(error)

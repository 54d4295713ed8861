"""
環境設定モジュール
.envファイルと環境変数から接続先・各種間隔を読み込む
"""
import logging
import os
from dotenv import load_dotenv

# 環境変数を読み込み
load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

# HTTPリクエストのタイムアウト（秒）
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10.0"))

# カウントダウン再描画間隔（秒）
TICK_INTERVAL = float(os.getenv("TICK_INTERVAL", "0.05"))

# QR決済ステータス確認間隔（秒）
PAYMENT_POLL_INTERVAL = float(os.getenv("PAYMENT_POLL_INTERVAL", "3.0"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

SECRET_KEY = os.getenv("SECRET_KEY", "life-tasker-secret-key")


def is_configured() -> bool:
    """Supabaseの接続情報が揃っているか"""
    return bool(SUPABASE_URL and SUPABASE_KEY)


def configure_logging(level: str = None):
    """ログ出力を初期化（エントリーポイントから一度だけ呼ぶ）"""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

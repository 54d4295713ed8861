"""
Supabase接続とユーザー認証モジュール（HTTP API版）
supabaseパッケージの代わりにhttpxで直接REST/RPC/Edge Functionを呼び出す
"""
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from .. import config
from ..errors import NotFoundError, RemoteOperationError
from ..models import Goal, GoalNode, Task, utc_now

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> tuple:
    """エラーレスポンスから (メッセージ, コード) を取り出す"""
    try:
        error_data = response.json() if response.text else {}
    except ValueError:
        error_data = {"message": response.text}
    if not isinstance(error_data, dict):
        error_data = {}
    message = (
        error_data.get("message")
        or error_data.get("error_description")
        or error_data.get("msg")
        or error_data.get("error")
        or f"エラー({response.status_code})"
    )
    return message, error_data.get("code")


class SupabaseAuth:
    """Supabase認証を管理するクラス（HTTP API版）"""

    def __init__(self, url: str = None, key: str = None, client: httpx.Client = None):
        self.url = (config.SUPABASE_URL if url is None else url).rstrip("/")
        self.key = config.SUPABASE_KEY if key is None else key
        self.http = client or httpx.Client(timeout=config.REQUEST_TIMEOUT)
        self._user = None
        self._access_token = None
        self._listeners: List[Callable] = []

    @property
    def is_configured(self) -> bool:
        """Supabaseが設定されているか"""
        return bool(self.url and self.key)

    @property
    def is_authenticated(self) -> bool:
        """ログイン済みか"""
        return self._user is not None

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        """現在のユーザー情報"""
        return self._user

    @property
    def user_id(self) -> Optional[str]:
        """現在のユーザーID"""
        if self._user:
            return self._user.get("id")
        return None

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def get_headers(self) -> dict:
        """APIヘッダーを取得（ログイン中はユーザーのトークンを使う）"""
        headers = {
            "apikey": self.key,
            "Content-Type": "application/json",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        else:
            headers["Authorization"] = f"Bearer {self.key}"
        return headers

    def on_auth_state_change(self, callback: Callable) -> Callable:
        """セッション変化の通知先を登録し、解除用の関数を返す"""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self._user)

    def _set_session(self, data: dict, email: str):
        self._access_token = data.get("access_token")
        user_data = data.get("user") or {}
        metadata = user_data.get("user_metadata") or {}
        self._user = {
            "id": user_data.get("id"),
            "email": user_data.get("email", email),
            "name": metadata.get("full_name", email.split("@")[0]),
        }

    def sign_in_with_email(self, email: str, password: str) -> dict:
        """Email/Passwordでログイン"""
        if not self.is_configured:
            return {"error": "Supabaseが設定されていません"}

        try:
            response = self.http.post(
                f"{self.url}/auth/v1/token",
                params={"grant_type": "password"},
                headers=self.get_headers(),
                json={"email": email, "password": password},
            )
        except httpx.HTTPError as e:
            logger.error("ログイン接続エラー: %s", e)
            return {"error": f"接続エラー: {e}"}

        if response.status_code == 200:
            self._set_session(response.json(), email)
            self._notify()
            return {"success": True}

        message, _ = _error_message(response)
        logger.warning("ログイン失敗(%s): %s", response.status_code, message)
        return {"error": message}

    def sign_up_with_email(self, email: str, password: str) -> dict:
        """Email/Passwordで新規登録"""
        if not self.is_configured:
            return {"error": "Supabaseが設定されていません"}

        try:
            response = self.http.post(
                f"{self.url}/auth/v1/signup",
                headers=self.get_headers(),
                json={"email": email, "password": password},
            )
        except httpx.HTTPError as e:
            logger.error("新規登録接続エラー: %s", e)
            return {"error": f"接続エラー: {e}"}

        if response.status_code in (200, 201):
            data = response.json()
            # メール確認が必要な設定ではトークンが返らない
            if data.get("access_token"):
                self._set_session(data, email)
                self._notify()
            return {"success": True}

        message, _ = _error_message(response)
        logger.warning("新規登録失敗(%s): %s", response.status_code, message)
        return {"error": message}

    def restore_session(self, access_token: str, user: Dict[str, Any]):
        """保存済みのセッションを復元（Webアプリのリクエスト毎に使用）"""
        self._access_token = access_token
        self._user = user

    def sign_out(self) -> bool:
        """ログアウト"""
        if self._access_token and self.is_configured:
            try:
                self.http.post(f"{self.url}/auth/v1/logout", headers=self.get_headers())
            except httpx.HTTPError as e:
                # サーバー側の失効に失敗してもローカルのセッションは破棄する
                logger.warning("ログアウト通知エラー: %s", e)
        self._user = None
        self._access_token = None
        self._notify()
        return True


class SupabaseDB:
    """Supabaseデータベース操作クラス（HTTP API版）"""

    def __init__(self, auth: SupabaseAuth, client: httpx.Client = None):
        self.auth = auth
        self.http = client or auth.http

    # === 共通 ===

    def _request(self, method: str, path: str, params: dict = None, json: Any = None,
                 prefer: str = None) -> Any:
        """REST APIを呼び出し、失敗時はRemoteOperationErrorを送出"""
        if not self.auth.url:
            raise RemoteOperationError("Supabaseが設定されていません")

        headers = self.auth.get_headers()
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = self.http.request(
                method, f"{self.auth.url}{path}", headers=headers, params=params, json=json
            )
        except httpx.HTTPError as e:
            logger.error("接続エラー %s %s: %s", method, path, e)
            raise RemoteOperationError(f"接続エラー: {e}") from e

        if response.status_code >= 400:
            message, code = _error_message(response)
            logger.error("リクエスト失敗 %s %s (%s): %s", method, path, response.status_code, message)
            raise RemoteOperationError(message, status_code=response.status_code, code=code)

        if not response.text:
            return None
        return response.json()

    @staticmethod
    def _eq(filters: Dict[str, Any]) -> dict:
        return {column: f"eq.{value}" for column, value in filters.items()}

    def select(self, table: str, filters: Dict[str, Any] = None, order: str = None,
               limit: int = None, columns: str = "*") -> List[dict]:
        """行を取得（filtersは等値条件、orderは "列.asc" 形式）"""
        params = {"select": columns}
        params.update(self._eq(filters or {}))
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", f"/rest/v1/{table}", params=params) or []

    def insert(self, table: str, rows) -> List[dict]:
        """行を挿入し、作成された行を返す"""
        return self._request(
            "POST", f"/rest/v1/{table}", json=rows, prefer="return=representation"
        ) or []

    def update(self, table: str, changes: Dict[str, Any], filters: Dict[str, Any]) -> List[dict]:
        """条件に一致する行を更新し、更新後の行を返す"""
        return self._request(
            "PATCH", f"/rest/v1/{table}", params=self._eq(filters), json=changes,
            prefer="return=representation",
        ) or []

    def delete(self, table: str, filters: Dict[str, Any]):
        """条件に一致する行を削除"""
        self._request("DELETE", f"/rest/v1/{table}", params=self._eq(filters))

    def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        """データベース関数を呼び出す"""
        return self._request("POST", f"/rest/v1/rpc/{function}", json=params)

    def invoke_function(self, name: str, payload: Dict[str, Any]) -> Any:
        """Edge Functionを呼び出す"""
        return self._request("POST", f"/functions/v1/{name}", json=payload)

    # === タスク ===

    def get_tasks(self, user_id: str) -> List[Task]:
        """ユーザーのタスク一覧を期日順に取得"""
        rows = self.select("tasks", {"user_id": user_id}, order="due_date.asc")
        return [Task.from_row(row) for row in rows]

    def insert_tasks(self, tasks: List[Task]) -> List[Task]:
        """タスクをまとめて作成"""
        if not tasks:
            return []
        rows = self.insert("tasks", [task.to_row(for_insert=True) for task in tasks])
        return [Task.from_row(row) for row in rows]

    def update_task(self, task: Task) -> Task:
        """タスクを更新"""
        changes = task.to_row()
        for column in ("id", "user_id", "created_at"):
            changes.pop(column, None)
        changes["updated_at"] = utc_now().isoformat()
        rows = self.update("tasks", changes, {"id": task.id, "user_id": task.user_id})
        if not rows:
            raise NotFoundError(f"タスクが見つかりません: {task.id}")
        return Task.from_row(rows[0])

    def delete_task(self, task_id: str, user_id: str):
        """タスクを削除"""
        self.delete("tasks", {"id": task_id, "user_id": user_id})

    # === 目標 ===

    def get_goals(self, user_id: str) -> List[Goal]:
        """ユーザーの目標一覧を新しい順に取得"""
        rows = self.select("goals", {"user_id": user_id}, order="created_at.desc")
        return [Goal.from_row(row) for row in rows]

    def insert_goal(self, goal: Goal) -> Goal:
        """目標を作成"""
        rows = self.insert("goals", goal.to_row(for_insert=True))
        return Goal.from_row(rows[0])

    def update_goal(self, goal: Goal) -> Goal:
        """目標を更新"""
        changes = {
            "title": goal.title,
            "description": goal.description,
            "progress": goal.progress,
            "status": goal.status,
            "target_date": goal.target_date.isoformat() if goal.target_date else None,
            "updated_at": utc_now().isoformat(),
        }
        rows = self.update("goals", changes, {"id": goal.id, "user_id": goal.user_id})
        if not rows:
            raise NotFoundError(f"目標が見つかりません: {goal.id}")
        return Goal.from_row(rows[0])

    # === 目標ツリー ===

    def get_goal_tree(self, goal_id: str) -> List[GoalNode]:
        """目標に紐づくツリーの全ノードを取得"""
        rows = self.rpc("get_goal_tree_by_goal", {"p_goal_id": goal_id})
        return [GoalNode.from_row(row) for row in rows or []]

    def create_goal_root_node(self, goal_id: str, user_id: str) -> Any:
        """目標のルートノードを作成"""
        return self.rpc("create_goal_root_node", {"p_goal_id": goal_id, "p_user_id": user_id})

    def insert_goal_node(self, node: GoalNode) -> GoalNode:
        """目標ノードを作成"""
        rows = self.insert("goal_nodes", node.to_row(for_insert=True))
        return GoalNode.from_row(rows[0])

    def update_goal_node(self, node_id: str, user_id: str, changes: Dict[str, Any]) -> GoalNode:
        """目標ノードを部分更新"""
        changes = dict(changes)
        changes["updated_at"] = utc_now().isoformat()
        rows = self.update("goal_nodes", changes, {"id": node_id, "user_id": user_id})
        if not rows:
            raise NotFoundError(f"目標ノードが見つかりません: {node_id}")
        return GoalNode.from_row(rows[0])

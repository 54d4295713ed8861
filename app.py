"""
Life Tasker - Flask Application
タスク・目標・目標ツリーを扱うJSON API
"""
import logging
import os

from flask import Flask, abort, jsonify, request, session

from life_tasker import config
from life_tasker.cloud import SupabaseAuth, SupabaseDB
from life_tasker.errors import NotFoundError, RemoteOperationError, ValidationError
from life_tasker.logic.app_state import AppState
from life_tasker.logic.goal_tree import GoalTreeEngine
from life_tasker.logic.task_time import active_tasks, remaining_time, tasks_for_month
from life_tasker.models import Goal, parse_date, utc_now

logger = logging.getLogger(__name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON形式のリクエストボディが必要です")
    return data


def _optional_date(value):
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationError(f"日付は YYYY-MM-DD 形式で指定してください: {value}")


def _optional_int(value, name: str):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name}は整数で指定してください")


def _year_month(value: str):
    try:
        year, month = (int(part) for part in value.split("-"))
    except ValueError:
        raise ValidationError(f"月は YYYY-MM 形式で指定してください: {value}")
    if not 1 <= month <= 12:
        raise ValidationError(f"月は YYYY-MM 形式で指定してください: {value}")
    return year, month


def _tree_payload(engine: GoalTreeEngine) -> dict:
    root = engine.root
    return {
        "goal_id": engine.goal_id,
        "needs_root": engine.needs_root,
        "root_id": root.id if root else None,
        "nodes": [
            dict(row.node.to_row(), depth=row.depth, has_children=row.has_children)
            for row in engine.render(expand_all=True)
        ],
    }


def create_app(db_factory=None, auth_factory=SupabaseAuth) -> Flask:
    """アプリケーションを生成（db_factoryでデータ層を差し替え可能）"""
    config.configure_logging()

    app = Flask(__name__)
    app.secret_key = config.SECRET_KEY

    def session_db():
        """セッションのトークンでSupabaseに接続"""
        auth = auth_factory()
        if session.get("access_token"):
            auth.restore_session(session["access_token"], session.get("user"))
        return SupabaseDB(auth)

    make_db = db_factory or session_db

    def current_user_id() -> str:
        user_id = session.get("user_id")
        if not user_id:
            abort(401)
        return user_id

    def current_state(load_tasks: bool = False, load_goals: bool = False) -> AppState:
        state = AppState(make_db(), current_user_id())
        if load_tasks:
            state.load_tasks()
        if load_goals:
            state.load_goals()
        return state

    def tree_engine(goal_id: str, load: bool = True) -> GoalTreeEngine:
        engine = GoalTreeEngine(make_db(), goal_id, current_user_id())
        if load:
            engine.load_tree()
        return engine

    # ============ AUTH ============

    @app.route("/api/login", methods=["POST"])
    def login():
        """ログイン処理"""
        data = _json_body()
        auth = auth_factory()
        result = auth.sign_in_with_email(data.get("email", ""), data.get("password", ""))
        if result.get("error"):
            return jsonify({"error": result["error"]}), 401

        session["user_id"] = auth.user_id
        session["user"] = auth.user
        session["access_token"] = auth.access_token
        return jsonify({"user": auth.user})

    @app.route("/api/logout", methods=["POST"])
    def logout():
        """ログアウト処理"""
        session.clear()
        return jsonify({"success": True})

    # ============ TASKS ============

    @app.route("/api/tasks")
    def list_tasks():
        """優先度で絞り込み・並び替えたタスク一覧（month=YYYY-MMで月指定）"""
        state = current_state(load_tasks=True)
        state.set_priority_filter(request.args.get("priority", "all"))
        tasks = state.visible_tasks()
        month = request.args.get("month")
        if month:
            year, month_number = _year_month(month)
            tasks = tasks_for_month(tasks, year, month_number)
        return jsonify([task.to_row() for task in tasks])

    @app.route("/api/tasks/active")
    def list_active_tasks():
        """実行中タスクと残り時間"""
        state = current_state(load_tasks=True)
        now = utc_now()
        return jsonify([
            dict(task.to_row(), remaining=remaining_time(task, now))
            for task in active_tasks(state.tasks)
        ])

    @app.route("/api/tasks", methods=["POST"])
    def create_task():
        """タスク作成（daily=trueで毎日タスクを月の日数分作成）"""
        data = _json_body()
        state = current_state()
        kwargs = dict(
            title=data.get("title", ""),
            description=data.get("description", ""),
            priority=data.get("priority", "medium"),
            estimated_minutes=_optional_int(data.get("estimated_minutes"), "見積もり時間"),
        )
        due_date = _optional_date(data.get("due_date"))
        if data.get("daily"):
            created = state.add_daily_tasks(anchor_date=due_date, **kwargs)
        else:
            created = [state.add_task(due_date=due_date, **kwargs)]
        return jsonify([task.to_row() for task in created]), 201

    @app.route("/api/tasks/<task_id>/<action>", methods=["POST"])
    def transition_task(task_id, action):
        """開始/一時停止/完了"""
        if action not in ("start", "pause", "complete"):
            abort(404)
        state = current_state(load_tasks=True)
        task = state.transition_task(task_id, action)
        return jsonify(task.to_row())

    @app.route("/api/tasks/<task_id>", methods=["PATCH"])
    def edit_task(task_id):
        """優先度・見積もり時間・進捗を変更"""
        data = _json_body()
        unknown = set(data) - {"priority", "estimated_minutes", "progress"}
        if unknown:
            raise ValidationError(f"変更できない項目です: {', '.join(sorted(unknown))}")
        state = current_state(load_tasks=True)
        task = state.edit_task(
            task_id,
            priority=data.get("priority"),
            estimated_minutes=_optional_int(data.get("estimated_minutes"), "見積もり時間"),
            progress=_optional_int(data.get("progress"), "進捗"),
        )
        return jsonify(task.to_row())

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    def delete_task(task_id):
        """タスク削除"""
        state = current_state()
        state.delete_task(task_id)
        return "", 204

    # ============ GOALS ============

    @app.route("/api/goals")
    def list_goals():
        state = current_state(load_goals=True)
        return jsonify([goal.to_row() for goal in state.goals])

    @app.route("/api/goals", methods=["POST"])
    def create_goal():
        """目標作成"""
        data = _json_body()
        state = current_state()
        goal = Goal(
            title=data.get("title", ""),
            description=data.get("description", ""),
            dimension=data.get("dimension", "personal"),
            period=data.get("period", "yearly"),
            target_date=_optional_date(data.get("target_date")),
            progress=_optional_int(data.get("progress"), "進捗") or 0,
            status=data.get("status", "not_started"),
        )
        created = state.add_goal(goal)
        return jsonify(created.to_row()), 201

    @app.route("/api/goals/<goal_id>", methods=["PATCH"])
    def update_goal(goal_id):
        """目標更新"""
        data = _json_body()
        state = current_state(load_goals=True)
        goal = state.find_goal(goal_id)
        if "title" in data:
            goal.title = data["title"]
        if "description" in data:
            goal.description = data["description"]
        if "status" in data:
            goal.status = data["status"]
        if "progress" in data:
            goal.progress = _optional_int(data["progress"], "進捗")
        if "target_date" in data:
            goal.target_date = _optional_date(data["target_date"])
        updated = state.update_goal(goal)
        return jsonify(updated.to_row())

    # ============ GOAL TREE ============

    @app.route("/api/goals/<goal_id>/tree")
    def get_goal_tree(goal_id):
        """目標ツリー（全ノードを深さ付きで返す）"""
        return jsonify(_tree_payload(tree_engine(goal_id)))

    @app.route("/api/goals/<goal_id>/tree/root", methods=["POST"])
    def create_goal_root(goal_id):
        """ルート目標を作成"""
        engine = tree_engine(goal_id, load=False)
        engine.create_root()
        return jsonify(_tree_payload(engine)), 201

    @app.route("/api/goals/<goal_id>/tree/nodes", methods=["POST"])
    def add_goal_node(goal_id):
        """サブ目標を追加"""
        data = _json_body()
        engine = tree_engine(goal_id)
        if "content" in data:
            node = engine.add_child(data.get("parent_id"), data["content"])
        else:
            node = engine.add_child(data.get("parent_id"))
        return jsonify(node.to_row()), 201

    @app.route("/api/goals/<goal_id>/tree/nodes/<node_id>", methods=["PATCH"])
    def update_goal_node(goal_id, node_id):
        """目標ノードを編集"""
        data = _json_body()
        engine = tree_engine(goal_id)
        node = engine.update_node(node_id, data)
        return jsonify(node.to_row())

    # ============ ERROR HANDLERS ============

    @app.errorhandler(ValidationError)
    def validation_error(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(NotFoundError)
    def not_found_error(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(RemoteOperationError)
    def remote_error(e):
        logger.error("Supabase操作エラー: %s", e)
        return jsonify({"error": e.friendly_message}), 502

    @app.errorhandler(401)
    def unauthorized(e):
        return jsonify({"error": "ログインしてください"}), 401

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "見つかりません"}), 404

    @app.route("/health")
    def health_check():
        return jsonify({"status": "ok"})

    return app


# ============ MAIN ============

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    debug = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    create_app().run(host="0.0.0.0", port=port, debug=debug)

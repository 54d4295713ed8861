"""
Life Tasker - タスク・目標管理アプリ
"""
__version__ = "0.1.0"

from .task_store import SqlTaskStore, TaskStore, get_task_store, parse_task_id

__all__ = ["SqlTaskStore", "TaskStore", "get_task_store", "parse_task_id"]

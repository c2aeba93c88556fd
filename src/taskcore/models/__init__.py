"""
Models for TaskCore.

SQLAlchemy table for tasks plus the Pydantic schemas the API speaks.
"""

from .task import Task as DatabaseTask, Base as TaskBase
from .task_api import TaskCreate, TaskUpdate, TaskRead, FIELD_MESSAGES

__all__ = ["DatabaseTask", "TaskBase", "TaskCreate", "TaskUpdate", "TaskRead", "FIELD_MESSAGES"]

# taskcore/persistence/task_store.py

from __future__ import annotations
import logging
import uuid
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Union

from fastapi import Depends  # pyright: ignore[reportMissingImports]
from prometheus_client import Histogram  # pyright: ignore[reportMissingImports]
from sqlalchemy import delete, select, update  # pyright: ignore[reportMissingImports]
from sqlalchemy.exc import SQLAlchemyError  # pyright: ignore[reportMissingImports]
from sqlalchemy.ext.asyncio import AsyncSession  # pyright: ignore[reportMissingImports]

from ..database import get_async_pg_session
from ..errors import StoreError
from ..models import DatabaseTask as Task

logger = logging.getLogger(__name__)

STORE_LATENCY = Histogram(
    "taskcore_store_latency_seconds", "Task store call latency", ["operation"]
)

TaskId = Union[str, uuid.UUID]

# Columns a caller may change after creation.
UPDATABLE_FIELDS = frozenset({"title", "description", "completed"})


class TaskStore(Protocol):
    """What the router needs from persistence. Absent or malformed ids read as None."""

    async def list_tasks(self, completed: Optional[bool] = None) -> List[Task]: ...

    async def get_task(self, task_id: TaskId) -> Optional[Task]: ...

    async def create_task(self, title: str, description: Optional[str] = None) -> Task: ...

    async def update_task(self, task_id: TaskId, fields: Dict[str, Any]) -> Optional[Task]: ...

    async def delete_task(self, task_id: TaskId) -> bool: ...


def parse_task_id(task_id: TaskId) -> Optional[uuid.UUID]:
    """Return the UUID for ``task_id``, or None if it is not well-formed."""
    if isinstance(task_id, uuid.UUID):
        return task_id
    try:
        return uuid.UUID(str(task_id))
    except ValueError:
        return None


class SqlTaskStore:
    """
    Task persistence over a single AsyncSession.

    One statement (plus commit) per call; no caching. Every SQLAlchemy failure
    is rolled back and re-raised as StoreError so callers never see driver
    exceptions.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        started = perf_counter()
        try:
            yield
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Task store %s failed: %s", name, exc)
            raise StoreError(name, str(getattr(exc, "orig", None) or exc), cause=exc) from exc
        finally:
            STORE_LATENCY.labels(name).observe(perf_counter() - started)

    async def list_tasks(self, completed: Optional[bool] = None) -> List[Task]:
        stmt = select(Task).order_by(Task.created_at.asc())
        if completed is not None:
            stmt = stmt.where(Task.completed == completed)
        async with self._operation("list"):
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def get_task(self, task_id: TaskId) -> Optional[Task]:
        uid = parse_task_id(task_id)
        if uid is None:
            return None
        async with self._operation("get"):
            return await self.session.get(Task, uid)

    async def create_task(self, title: str, description: Optional[str] = None) -> Task:
        task = Task(title=title, description=description, completed=False)
        async with self._operation("create"):
            self.session.add(task)
            await self.session.commit()
            await self.session.refresh(task)
        logger.info("Task %s created", task.short_id())
        return task

    async def update_task(self, task_id: TaskId, fields: Dict[str, Any]) -> Optional[Task]:
        uid = parse_task_id(task_id)
        if uid is None:
            return None

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        if not fields:
            return await self.get_task(uid)

        stmt = (
            update(Task)
            .where(Task.id == uid)
            .values(**fields)
            .returning(Task)
        )
        async with self._operation("update"):
            result = await self.session.execute(stmt)
            task = result.scalar_one_or_none()
            await self.session.commit()

        if task is not None:
            logger.info("Task %s updated (%s)", task.short_id(), ", ".join(sorted(fields)))
        return task

    async def delete_task(self, task_id: TaskId) -> bool:
        """Hard delete. Returns whether a row was removed; absent ids are not an error."""
        uid = parse_task_id(task_id)
        if uid is None:
            return False
        async with self._operation("delete"):
            result = await self.session.execute(delete(Task).where(Task.id == uid))
            await self.session.commit()
        removed = bool(getattr(result, "rowcount", 0))
        if removed:
            logger.info("Task %s deleted", str(uid).split("-")[0])
        return removed


async def get_task_store(session: AsyncSession = Depends(get_async_pg_session)) -> TaskStore:
    """FastAPI dependency; override it to swap in another store."""
    return SqlTaskStore(session)

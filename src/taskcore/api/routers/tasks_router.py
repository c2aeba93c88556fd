from __future__ import annotations
import logging
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Query, status  # pyright: ignore[reportMissingImports]
from prometheus_client import Counter  # pyright: ignore[reportMissingImports]

from ...auth import require_identity
from ...errors import StoreError
from ...models import DatabaseTask as Task, TaskCreate, TaskRead, TaskUpdate
from ...models.task_api import MessageResponse, ValidationErrorResponse
from ...persistence import TaskStore, get_task_store

router = APIRouter(dependencies=[Depends(require_identity)])
logger = logging.getLogger(__name__)

# --- Observability ---
TASK_OPERATIONS = Counter(
    "taskcore_task_operations_total", "Task API calls by outcome", ["operation", "outcome"]
)

_UNAUTHORIZED = {401: {"model": MessageResponse, "description": "Missing or invalid bearer token"}}
_NOT_FOUND = {404: {"model": MessageResponse, "description": "Task not found"}}
_INVALID = {400: {"model": ValidationErrorResponse, "description": "Validation or store error"}}
_FAILED = {500: {"model": MessageResponse, "description": "Store error"}}

# --- Helpers ---
def _task_to_task_read(task: Task) -> TaskRead:
    """Safe conversion from ORM to Pydantic."""
    return TaskRead.model_validate(task)

def _not_found(operation: str) -> HTTPException:
    TASK_OPERATIONS.labels(operation, "not_found").inc()
    return HTTPException(status.HTTP_404_NOT_FOUND, "Task not found")

def _store_failed(operation: str, exc: StoreError, status_code: int) -> HTTPException:
    # create/update report store failures as 400, reads and deletes as 500
    TASK_OPERATIONS.labels(operation, "store_error").inc()
    # SqlTaskStore already logged the traceback
    logger.debug(f"Task {operation} failed, responding {status_code}: {exc}")
    return HTTPException(status_code, exc.args[0])

# --- Endpoints ---

@router.get(
    "/tasks",
    response_model=List[TaskRead],
    summary="List tasks, optionally filtered by completion state",
    responses={**_UNAUTHORIZED, **_FAILED},
)
async def list_tasks(
    completed: Optional[str] = Query(
        None, description="Filter by state: true for completed tasks, false for pending ones"
    ),
    store: TaskStore = Depends(get_task_store),
) -> List[TaskRead]:
    # Any value other than "true" selects pending tasks
    completed_filter = None if completed is None else completed.strip().lower() == "true"
    try:
        tasks = await store.list_tasks(completed=completed_filter)
    except StoreError as e:
        raise _store_failed("list", e, status.HTTP_500_INTERNAL_SERVER_ERROR)
    TASK_OPERATIONS.labels("list", "ok").inc()
    return [_task_to_task_read(t) for t in tasks]


@router.get(
    "/tasks/{task_id}",
    response_model=TaskRead,
    summary="Fetch one task",
    responses={**_UNAUTHORIZED, **_NOT_FOUND, **_FAILED},
)
async def get_task(
    task_id: str,
    store: TaskStore = Depends(get_task_store),
) -> TaskRead:
    try:
        task = await store.get_task(task_id)
    except StoreError as e:
        raise _store_failed("get", e, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if task is None:
        raise _not_found("get")
    TASK_OPERATIONS.labels("get", "ok").inc()
    return _task_to_task_read(task)


@router.post(
    "/tasks",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task",
    responses={**_UNAUTHORIZED, **_INVALID},
)
async def create_task(
    payload: TaskCreate,
    store: TaskStore = Depends(get_task_store),
) -> TaskRead:
    """
    Create a new task from ``title`` (required) and ``description``.

    New tasks always start with ``completed=false``; the store assigns
    ``id`` and ``createdAt``.
    """
    try:
        task = await store.create_task(payload.title, payload.description)
    except StoreError as e:
        raise _store_failed("create", e, status.HTTP_400_BAD_REQUEST)
    TASK_OPERATIONS.labels("create", "ok").inc()
    return _task_to_task_read(task)


@router.put(
    "/tasks/{task_id}",
    response_model=TaskRead,
    summary="Update some or all fields of a task",
    responses={**_UNAUTHORIZED, **_NOT_FOUND, **_INVALID},
)
async def update_task(
    task_id: str,
    payload: TaskUpdate = Body(default_factory=TaskUpdate),
    store: TaskStore = Depends(get_task_store),
) -> TaskRead:
    """Fields left out of the body keep their current values; no body changes nothing."""
    try:
        task = await store.update_task(task_id, payload.changes())
    except StoreError as e:
        raise _store_failed("update", e, status.HTTP_400_BAD_REQUEST)
    if task is None:
        raise _not_found("update")
    TASK_OPERATIONS.labels("update", "ok").inc()
    return _task_to_task_read(task)


@router.delete(
    "/tasks/{task_id}",
    response_model=MessageResponse,
    summary="Delete a task",
    responses={**_UNAUTHORIZED, **_FAILED},
)
async def delete_task(
    task_id: str,
    store: TaskStore = Depends(get_task_store),
) -> MessageResponse:
    # Deleting an id that does not exist still reports success
    try:
        await store.delete_task(task_id)
    except StoreError as e:
        raise _store_failed("delete", e, status.HTTP_500_INTERNAL_SERVER_ERROR)
    TASK_OPERATIONS.labels("delete", "ok").inc()
    return MessageResponse(message="Task deleted")

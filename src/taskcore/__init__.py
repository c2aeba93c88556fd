# src/taskcore/__init__.py
"""
TaskCore
========
A small, database-backed REST service for managing tasks.

Every task endpoint sits behind a bearer-token gate; task records live in
PostgreSQL and are reached through an injected store.

Layout:
-------
    taskcore.main                         FastAPI application + lifespan
    taskcore.api.routers.tasks_router     list / get / create / update / delete
    taskcore.auth                         bearer gate + token verifier
    taskcore.models                       ORM table + request/response schemas
    taskcore.persistence.task_store       SQL-backed task store
    taskcore.database                     async engine / session factories
"""

__version__ = "1.0.0"

__all__ = ["__version__"]

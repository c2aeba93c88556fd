"""
Unit tests for SqlTaskStore.

The AsyncSession is mocked; assertions look at the statements handed to it.
"""
import logging
import re
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from taskcore.errors import StoreError
from taskcore.models import DatabaseTask as Task
from taskcore.persistence import SqlTaskStore, parse_task_id


def _session():
    session = AsyncMock()
    session.add = MagicMock()
    return session


def _rows(*tasks):
    result = MagicMock()
    result.scalars.return_value.all.return_value = list(tasks)
    return result


def test_parse_task_id():
    uid = uuid.uuid4()
    assert parse_task_id(uid) is uid
    assert parse_task_id(str(uid)) == uid
    assert parse_task_id("64dfc63e0d1234567890abcd") is None
    assert parse_task_id("") is None


class TestListTasks:

    @pytest.mark.asyncio
    async def test_list_without_filter(self):
        session = _session()
        task = Task(title="a")
        session.execute = AsyncMock(return_value=_rows(task))

        tasks = await SqlTaskStore(session).list_tasks()

        assert tasks == [task]
        sql = str(session.execute.call_args.args[0])
        assert "WHERE" not in sql
        assert "ORDER BY tasks.created_at ASC" in sql

    @pytest.mark.asyncio
    @pytest.mark.parametrize("completed, rendered", [(True, "true"), (False, "false")])
    async def test_list_filters_on_completed(self, completed, rendered):
        session = _session()
        session.execute = AsyncMock(return_value=_rows())

        await SqlTaskStore(session).list_tasks(completed=completed)

        stmt = session.execute.call_args.args[0]
        sql = str(stmt.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))
        assert re.search(rf"WHERE tasks\.completed (=|IS) {rendered}\b", sql, re.IGNORECASE)

    @pytest.mark.asyncio
    async def test_database_failure_becomes_store_error(self):
        session = _session()
        session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("connection refused")))

        with pytest.raises(StoreError) as exc_info:
            await SqlTaskStore(session).list_tasks()

        assert exc_info.value.operation == "list"
        assert "connection refused" in exc_info.value.args[0]
        session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_database_failure_is_logged_once(self, caplog):
        session = _session()
        session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("connection refused")))

        with pytest.raises(StoreError):
            await SqlTaskStore(session).list_tasks()

        errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert len(errors) == 1
        assert errors[0].name == "taskcore.persistence.task_store"
        assert errors[0].exc_info is not None


class TestGetTask:

    @pytest.mark.asyncio
    async def test_get_by_uuid(self):
        session = _session()
        uid = uuid.uuid4()
        session.get = AsyncMock(return_value=Task(id=uid, title="a"))

        task = await SqlTaskStore(session).get_task(str(uid))

        assert task.id == uid
        session.get.assert_awaited_once_with(Task, uid)

    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found_without_query(self):
        session = _session()

        assert await SqlTaskStore(session).get_task("nope") is None
        session.get.assert_not_awaited()


class TestCreateTask:

    @pytest.mark.asyncio
    async def test_create_adds_commits_and_refreshes(self):
        session = _session()

        task = await SqlTaskStore(session).create_task("Write tests", "all of them")

        added = session.add.call_args.args[0]
        assert added is task
        assert task.title == "Write tests"
        assert task.description == "all of them"
        assert task.completed is False
        session.commit.assert_awaited_once()
        session.refresh.assert_awaited_once_with(task)

    @pytest.mark.asyncio
    async def test_commit_failure_is_rolled_back(self):
        session = _session()
        session.commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk full")))

        with pytest.raises(StoreError) as exc_info:
            await SqlTaskStore(session).create_task("x")

        assert exc_info.value.operation == "create"
        session.rollback.assert_awaited_once()


class TestUpdateTask:

    @pytest.mark.asyncio
    async def test_update_is_single_returning_statement(self):
        session = _session()
        uid = uuid.uuid4()
        updated = Task(id=uid, title="a", completed=True)
        result = MagicMock()
        result.scalar_one_or_none.return_value = updated
        session.execute = AsyncMock(return_value=result)

        task = await SqlTaskStore(session).update_task(uid, {"completed": True})

        assert task is updated
        assert session.execute.await_count == 1
        sql = str(session.execute.call_args.args[0])
        assert sql.startswith("UPDATE tasks SET completed=")
        assert "title" not in sql.split("WHERE")[0]
        assert "RETURNING" in sql
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self):
        session = _session()
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        session.execute = AsyncMock(return_value=result)

        assert await SqlTaskStore(session).update_task(uuid.uuid4(), {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_empty_update_reads_current_row(self):
        session = _session()
        uid = uuid.uuid4()
        session.get = AsyncMock(return_value=Task(id=uid, title="same"))

        task = await SqlTaskStore(session).update_task(uid, {})

        assert task.title == "same"
        session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_fields_are_refused(self):
        with pytest.raises(ValueError):
            await SqlTaskStore(_session()).update_task(uuid.uuid4(), {"created_at": None})

    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found(self):
        session = _session()

        assert await SqlTaskStore(session).update_task("bad", {"title": "x"}) is None
        session.execute.assert_not_awaited()


class TestDeleteTask:

    @pytest.mark.asyncio
    async def test_delete_reports_rowcount(self):
        session = _session()
        result = MagicMock()
        result.rowcount = 1
        session.execute = AsyncMock(return_value=result)

        assert await SqlTaskStore(session).delete_task(uuid.uuid4()) is True
        assert str(session.execute.call_args.args[0]).startswith("DELETE FROM tasks WHERE tasks.id =")
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_missing_is_not_an_error(self):
        session = _session()
        result = MagicMock()
        result.rowcount = 0
        session.execute = AsyncMock(return_value=result)

        assert await SqlTaskStore(session).delete_task(uuid.uuid4()) is False

    @pytest.mark.asyncio
    async def test_delete_malformed_id_is_noop(self):
        session = _session()

        assert await SqlTaskStore(session).delete_task("garbage") is False
        session.execute.assert_not_awaited()

"""
Unit tests for the task request/response schemas.
"""
import uuid
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from taskcore.models import DatabaseTask, TaskCreate, TaskRead, TaskUpdate


def _fields(exc_info):
    return sorted(err["loc"][0] for err in exc_info.value.errors())


class TestTaskCreate:

    def test_title_is_stored_as_submitted(self):
        assert TaskCreate(title="  groceries ").title == "  groceries "

    @pytest.mark.parametrize("title", ["", " \t ", None, 42])
    def test_bad_titles(self, title):
        with pytest.raises(ValidationError) as exc_info:
            TaskCreate(title=title)
        assert _fields(exc_info) == ["title"]

    def test_description_is_optional(self):
        assert TaskCreate(title="x").description is None


class TestTaskUpdate:

    def test_only_sent_fields_are_changes(self):
        assert TaskUpdate.model_validate({"completed": False}).changes() == {"completed": False}
        assert TaskUpdate.model_validate({}).changes() == {}

    @pytest.mark.parametrize("value", ["true", "false", 1, 0, "yes"])
    def test_completed_must_be_real_boolean(self, value):
        with pytest.raises(ValidationError) as exc_info:
            TaskUpdate.model_validate({"completed": value})
        assert _fields(exc_info) == ["completed"]

    def test_collects_every_violation(self):
        with pytest.raises(ValidationError) as exc_info:
            TaskUpdate.model_validate({"title": " ", "description": "", "completed": "no"})
        assert _fields(exc_info) == ["completed", "description", "title"]

    @pytest.mark.parametrize("field", ["title", "description", "completed"])
    def test_explicit_null_is_rejected(self, field):
        with pytest.raises(ValidationError) as exc_info:
            TaskUpdate.model_validate({field: None})
        assert _fields(exc_info) == [field]


class TestTaskRead:

    def test_from_orm_uses_camel_case_timestamp(self):
        created = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        row = DatabaseTask(id=uuid.uuid4(), title="t", description=None, completed=False, created_at=created)

        dumped = TaskRead.model_validate(row).model_dump(by_alias=True)

        assert dumped["createdAt"] == created
        assert "created_at" not in dumped

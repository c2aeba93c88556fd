"""
Pydantic request/response models for the task API.

These are separate from the SQLAlchemy table in ``task.py``. The request
models double as the validation layer: FastAPI validates the body against
them before a handler (and therefore the store) runs, and every violation in
a body is reported together.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictBool, field_validator  # pyright: ignore[reportMissingImports]


def _not_blank(v: str) -> str:
    # Whitespace-only is empty; the value itself is stored as submitted.
    if not v.strip():
        raise ValueError("must not be empty")
    return v


NonEmptyStr = Annotated[str, AfterValidator(_not_blank)]

# One message per field, independent of which check on that field failed.
FIELD_MESSAGES: Dict[str, str] = {
    "title": "Title is required",
    "description": "Description is required",
    "completed": "Completed must be a boolean",
}


class TaskCreate(BaseModel):
    title: NonEmptyStr
    description: Optional[str] = None


class TaskUpdate(BaseModel):
    """Partial update; only fields present in the body are written."""

    title: Optional[NonEmptyStr] = None
    description: Optional[NonEmptyStr] = None
    completed: Optional[StrictBool] = None

    @field_validator("title", "description", "completed", mode="before")
    @classmethod
    def reject_explicit_null(cls, v):
        # Only runs for keys present in the body; omitted keys keep their default.
        if v is None:
            raise ValueError("must not be null")
        return v

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class TaskRead(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str]
    completed: bool
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class FieldError(BaseModel):
    field: str
    message: str
    location: str = "body"


class ValidationErrorResponse(BaseModel):
    message: str = "Validation failed"
    errors: List[FieldError]


class MessageResponse(BaseModel):
    message: str

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (  # pyright: ignore[reportMissingImports]
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column  # pyright: ignore[reportMissingImports]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for ORM models."""

    pass


class Task(Base):
    """A single to-do record: title, optional description, completion flag."""

    __tablename__ = "tasks"

    # --- Identifiers ---
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Task UUID (v4)",
    )

    # --- Content ---
    title: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Short human-readable title (never empty)",
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Optional free-text description",
    )

    # --- State ---
    completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
        comment="Completion flag",
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        comment="Creation time (UTC)",
    )

    __table_args__ = (
        CheckConstraint("length(trim(title)) > 0", name="ck_tasks_title_nonempty"),
        Index("ix_tasks_completed", "completed"),
        Index("ix_tasks_created_at", "created_at"),
    )

    def short_id(self, length: int = 8) -> str:
        """Human-friendly short ID used in logs."""
        return str(self.id).split("-")[0][:length]

    def __repr__(self) -> str:
        return (
            f"<Task id={self.short_id()} title={self.title!r} "
            f"completed={self.completed} created_at={self.created_at}>"
        )

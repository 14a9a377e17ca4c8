"""SQLAlchemy ORM models.

The models define the schema only; reads and writes go through
offcron.db.table.Table with parameterized SQL.
"""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""


class JobRecord(Base):
    """A scheduled job.

    Timestamps are stored as "YYYY-MM-DD HH:MM:SS" UTC text so that due-time
    comparisons are plain string comparisons at second granularity.
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[str] = mapped_column(String(19), nullable=False, index=True)
    hook: Mapped[str] = mapped_column(String, nullable=False, index=True)
    args: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    recurrence: Mapped[int | None] = mapped_column(Integer, nullable=True)


class RunnerStateRecord(Base):
    """Runner state shared between the triggering and runner processes."""

    __tablename__ = "runner_state"

    instance_id: Mapped[str] = mapped_column(String, primary_key=True)
    state: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_run_at: Mapped[str | None] = mapped_column(String(19), nullable=True)
    updated_at: Mapped[str | None] = mapped_column(String(19), nullable=True)

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScheduleRecord(SQLModel, table=True):
    """Stored schedule snapshot, one row per (event, schedule)."""

    event_id: str = Field(primary_key=True)
    schedule_id: str = Field(primary_key=True)
    published: bool = Field(default=False, index=True)
    snapshot: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

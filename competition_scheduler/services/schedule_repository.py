"""
SQLModel-backed schedule storage.

Schedules are stored whole, as their snapshot dict in a JSON column, keyed
by (event_id, schedule_id). The blocking database work runs in a worker
thread so the async service never stalls the event loop.

The repository assumes a single writer per schedule; it does not detect
stale snapshots.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from competition_scheduler.models.schedule_record import ScheduleRecord
from competition_scheduler.services.schedule import Schedule

logger = logging.getLogger(__name__)


class SqlModelScheduleRepository:
    def __init__(self, engine: Engine):
        self.engine = engine

    # ------------------------------------------------------------------
    # Sync workers
    # ------------------------------------------------------------------

    def _save(self, schedule: Schedule) -> None:
        snapshot = schedule.to_snapshot()
        with Session(self.engine) as session:
            record = session.get(ScheduleRecord, (schedule.event_id, schedule.schedule_id))
            if record is None:
                record = ScheduleRecord(event_id=schedule.event_id, schedule_id=schedule.schedule_id)
            record.published = schedule.published
            record.snapshot = snapshot
            record.updated_at = datetime.now(timezone.utc)
            session.add(record)
            session.commit()

    def _find_by_id(self, event_id: str, schedule_id: str) -> Optional[Schedule]:
        with Session(self.engine) as session:
            record = session.get(ScheduleRecord, (event_id, schedule_id))
            return Schedule.from_snapshot(record.snapshot) if record else None

    def _find_many(self, event_id: str, published_only: bool) -> List[Schedule]:
        with Session(self.engine) as session:
            query = select(ScheduleRecord).where(ScheduleRecord.event_id == event_id)
            if published_only:
                query = query.where(ScheduleRecord.published == True)  # noqa: E712
            records = session.exec(
                query.order_by(ScheduleRecord.created_at, ScheduleRecord.schedule_id)
            ).all()
            return [Schedule.from_snapshot(r.snapshot) for r in records]

    def _delete(self, event_id: str, schedule_id: str) -> None:
        with Session(self.engine) as session:
            record = session.get(ScheduleRecord, (event_id, schedule_id))
            if record is None:
                return
            session.delete(record)
            session.commit()

    # ------------------------------------------------------------------
    # Async interface
    # ------------------------------------------------------------------

    async def save(self, schedule: Schedule) -> Schedule:
        await asyncio.to_thread(self._save, schedule)
        logger.debug("Saved schedule %s for event %s", schedule.schedule_id, schedule.event_id)
        return schedule

    async def find_by_id(self, event_id: str, schedule_id: str) -> Optional[Schedule]:
        return await asyncio.to_thread(self._find_by_id, event_id, schedule_id)

    async def find_by_event_id(self, event_id: str) -> List[Schedule]:
        return await asyncio.to_thread(self._find_many, event_id, False)

    async def find_published_by_event_id(self, event_id: str) -> List[Schedule]:
        return await asyncio.to_thread(self._find_many, event_id, True)

    async def delete(self, event_id: str, schedule_id: str) -> None:
        await asyncio.to_thread(self._delete, event_id, schedule_id)

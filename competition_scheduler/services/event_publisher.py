"""
Domain event publishing.

Events are notifications, not part of the persistence transaction: the
schedule is saved first and a failed publish never undoes the save.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

EVENT_SOURCE = "schedule.service"

SCHEDULE_GENERATED = "ScheduleGenerated"
SCHEDULE_PUBLISHED = "SchedulePublished"
SCHEDULE_UNPUBLISHED = "ScheduleUnpublished"
SCHEDULE_UPDATED = "ScheduleUpdated"
SCHEDULE_DELETED = "ScheduleDeleted"
TOURNAMENT_PROGRESSED = "TournamentProgressed"
TOURNAMENT_STAGE_GENERATED = "TournamentStageGenerated"


def build_domain_event(event_type: str, event_id: str, schedule_id: str, **payload: Any) -> Dict[str, Any]:
    return {
        "event_type": event_type,
        "source": EVENT_SOURCE,
        "event_id": event_id,
        "schedule_id": schedule_id,
        **payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class LoggingEventPublisher:
    """Writes domain events to the log as JSON lines and keeps the last few in memory."""

    def __init__(self, history_size: int = 100):
        self.history_size = history_size
        self.published: List[Dict[str, Any]] = []

    async def publish(self, event: Dict[str, Any]) -> None:
        logger.info("Domain event %s: %s", event.get("event_type"), json.dumps(event, default=str))
        self.published.append(event)
        del self.published[: -self.history_size]

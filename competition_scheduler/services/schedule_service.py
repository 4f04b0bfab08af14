"""
Schedule Service — orchestrates schedule lifecycle and tournament progression.

Lifecycle:
    generate -> publish / unpublish -> update (session level) -> delete
Tournament:
    process_tournament_results -> generate_next_tournament_stage -> ... -> champion

Every mutating operation does exactly one save followed by one domain event.
Collaborator failures surface as ExternalDependencyError; engine errors
(ValidationError, NotFoundError, PreconditionError) pass through untouched.
"""
import logging
from typing import Any, Awaitable, Dict, List, Mapping, Optional, TypeVar

from competition_scheduler.errors import (
    ExternalDependencyError,
    NotFoundError,
    PreconditionError,
    SchedulingError,
    ValidationError,
)
from competition_scheduler.services import event_publisher as events
from competition_scheduler.services.competition_session import CompetitionSession
from competition_scheduler.services.ports import (
    EventData,
    EventDataProvider,
    EventPublisher,
    ScheduleRepository,
    ScoreProvider,
)
from competition_scheduler.services.schedule import Schedule, generate_days_from_range

logger = logging.getLogger(__name__)

T = TypeVar("T")

EVENT_DATA = "event data provider"
SCORES = "score provider"
REPOSITORY = "schedule repository"


class ScheduleService:
    def __init__(
        self,
        schedule_repository: ScheduleRepository,
        event_data_provider: EventDataProvider,
        event_publisher: EventPublisher,
        score_provider: Optional[ScoreProvider] = None,
    ):
        self.schedule_repository = schedule_repository
        self.event_data_provider = event_data_provider
        self.event_publisher = event_publisher
        self.score_provider = score_provider

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _external(self, dependency: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except SchedulingError:
            raise
        except Exception as exc:
            logger.error("%s call failed: %s", dependency, exc)
            raise ExternalDependencyError(dependency, str(exc)) from exc

    async def _emit(self, event_type: str, event_id: str, schedule_id: str, **payload: Any) -> None:
        event = events.build_domain_event(event_type, event_id, schedule_id, **payload)
        try:
            await self.event_publisher.publish(event)
        except Exception as exc:
            # Best effort: the schedule is already saved
            logger.warning("Failed to publish %s for schedule %s: %s", event_type, schedule_id, exc)

    async def _load(self, event_id: str, schedule_id: str) -> Schedule:
        schedule = await self._external(REPOSITORY, self.schedule_repository.find_by_id(event_id, schedule_id))
        if schedule is None:
            raise NotFoundError(f"Schedule {schedule_id} not found for event {event_id}")
        return schedule

    async def _save(self, schedule: Schedule) -> None:
        await self._external(REPOSITORY, self.schedule_repository.save(schedule))

    @staticmethod
    def _versus_session(schedule: Schedule) -> CompetitionSession:
        session = schedule.find_versus_session()
        if session is None:
            raise NotFoundError(f"No tournament session found in schedule {schedule.schedule_id}")
        return session

    @staticmethod
    def _validate_event_data(data: EventData) -> None:
        if not data.days:
            raise ValidationError("No event days found. Create event days first.")
        if not data.workouts:
            raise ValidationError("No workouts found. Add workouts to the event first.")
        if not data.categories:
            raise ValidationError("No categories found. Add categories to the event first.")
        if not data.athletes:
            raise ValidationError("No registered athletes found for this event.")

    # ========================================================================
    # Schedule lifecycle
    # ========================================================================

    async def generate_schedule(self, event_id: str, config: Optional[Mapping[str, Any]] = None) -> Schedule:
        data = await self._external(EVENT_DATA, self.event_data_provider.get_event_data(event_id))
        if not data.days and data.event and data.event.start_date and data.event.end_date:
            data.days = generate_days_from_range(data.event.start_date, data.event.end_date)
        self._validate_event_data(data)

        schedule = Schedule(event_id, config)
        for day in data.days:
            schedule.add_day(day, data.athletes, data.categories, data.workouts)

        await self._save(schedule)
        session_count = sum(len(d.sessions) for d in schedule.days)
        logger.info(
            "Generated schedule %s for event %s: %d days, %d sessions",
            schedule.schedule_id,
            event_id,
            len(schedule.days),
            session_count,
        )
        await self._emit(
            events.SCHEDULE_GENERATED,
            event_id,
            schedule.schedule_id,
            days=len(schedule.days),
            sessions=session_count,
        )
        return schedule

    async def get_schedule(self, event_id: str, schedule_id: str) -> Schedule:
        return await self._load(event_id, schedule_id)

    async def get_schedules_by_event(self, event_id: str) -> List[Schedule]:
        return await self._external(REPOSITORY, self.schedule_repository.find_by_event_id(event_id))

    async def get_published_schedules(self, event_id: str) -> List[Schedule]:
        return await self._external(REPOSITORY, self.schedule_repository.find_published_by_event_id(event_id))

    async def publish_schedule(self, event_id: str, schedule_id: str) -> Schedule:
        schedule = await self._load(event_id, schedule_id)
        schedule.publish()
        await self._save(schedule)
        await self._emit(events.SCHEDULE_PUBLISHED, event_id, schedule_id)
        return schedule

    async def unpublish_schedule(self, event_id: str, schedule_id: str) -> Schedule:
        schedule = await self._load(event_id, schedule_id)
        schedule.unpublish()
        await self._save(schedule)
        await self._emit(events.SCHEDULE_UNPUBLISHED, event_id, schedule_id)
        return schedule

    async def update_schedule(self, event_id: str, schedule_id: str, updates: Mapping[str, Any]) -> Schedule:
        """
        updates = {"sessions": [{"session_id": ..., "updates": {"start_time": "10:30"}}, ...]}
        """
        schedule = await self._load(event_id, schedule_id)
        session_updates = updates.get("sessions") or []
        for item in session_updates:
            schedule.update_session(item["session_id"], item.get("updates") or {})

        await self._save(schedule)
        await self._emit(
            events.SCHEDULE_UPDATED,
            event_id,
            schedule_id,
            sessions=[item["session_id"] for item in session_updates],
        )
        return schedule

    async def delete_schedule(self, event_id: str, schedule_id: str) -> None:
        await self._load(event_id, schedule_id)
        await self._external(REPOSITORY, self.schedule_repository.delete(event_id, schedule_id))
        logger.info("Deleted schedule %s for event %s", schedule_id, event_id)
        await self._emit(events.SCHEDULE_DELETED, event_id, schedule_id)

    # ========================================================================
    # Tournament progression
    # ========================================================================

    async def process_tournament_results(
        self, event_id: str, schedule_id: str, filter_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Pull match results for the current stage, close it if every match is
        decided (picking wildcards from the score provider) and persist the
        new bracket state.
        """
        schedule = await self._load(event_id, schedule_id)
        session = self._versus_session(schedule)
        stage = session.tournament.get_current_stage()
        if stage is None:
            raise PreconditionError("Tournament is already complete")
        if self.score_provider is None:
            raise PreconditionError("No score provider configured for tournament results")

        filter_id = filter_id or stage.filter_id
        match_results = await self._external(SCORES, self.score_provider.get_match_results(event_id, filter_id))
        if not match_results:
            raise PreconditionError(f"No match results found for filter {filter_id}")

        result = await session.process_results(match_results, self.score_provider)

        await self._save(schedule)
        await self._emit(
            events.TOURNAMENT_PROGRESSED,
            event_id,
            schedule_id,
            stage=result.stage_number,
            stage_name=result.stage_name,
            stage_complete=result.stage_complete,
            advancing=len(result.advancing),
            wildcards=len(result.wildcards),
            eliminated=len(result.eliminated),
            tournament_complete=result.tournament_complete,
            champion=result.champion.model_dump() if result.champion else None,
        )
        return {
            "schedule": schedule.to_snapshot(),
            "tournament_result": result.to_dict(),
            "bracket": session.get_bracket().model_dump(),
        }

    async def generate_next_tournament_stage(self, event_id: str, schedule_id: str, start_time: str) -> Schedule:
        schedule = await self._load(event_id, schedule_id)
        session = self._versus_session(schedule)

        next_stage = session.schedule_next_stage(start_time)
        if next_stage is None:
            raise PreconditionError("Tournament is complete or no next stage is available")

        await self._save(schedule)
        await self._emit(
            events.TOURNAMENT_STAGE_GENERATED,
            event_id,
            schedule_id,
            next_stage=next_stage.bracket.current_stage,
            matches=len(next_stage.matches),
        )
        return schedule

    async def get_tournament_bracket(self, event_id: str, schedule_id: str) -> Dict[str, Any]:
        schedule = await self._load(event_id, schedule_id)
        session = self._versus_session(schedule)
        return {
            "session_id": session.session_id,
            "bracket": session.get_bracket().model_dump(),
            "tournament": session.tournament.to_snapshot(),
        }

"""
Schedule aggregate — the competition-wide plan for one event.

Schedule -> DaySchedule -> CompetitionSession. Days chain their sessions
back to back: each session starts after the previous one plus a transition
gap, and each workout block is followed by setup time. The aggregate is
persisted as a plain snapshot dict and rebuilt with from_snapshot().
"""
import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from competition_scheduler.errors import NotFoundError, PreconditionError, ValidationError
from competition_scheduler.services.competition_modes import CompetitionMode
from competition_scheduler.services.competition_session import CompetitionSession
from competition_scheduler.services.ports import Athlete, Category, EventDay, Workout
from competition_scheduler.utils.time_slot import TimeSlot

logger = logging.getLogger(__name__)


class ScheduleConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    start_time: str = "08:00"
    transition_time: int = Field(default=5, ge=0)
    setup_time: int = Field(default=10, ge=0)
    max_day_hours: float = Field(default=10, gt=0)
    competition_mode: CompetitionMode = CompetitionMode.HEATS
    mode_config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("start_time")
    @classmethod
    def _check_start_time(cls, v: str) -> str:
        return str(TimeSlot.from_string(v))

    @field_validator("competition_mode", mode="before")
    @classmethod
    def _check_mode(cls, v):
        return CompetitionMode.parse(v)

    @classmethod
    def parse(cls, data: Optional[Mapping[str, Any]]) -> "ScheduleConfig":
        if isinstance(data, ScheduleConfig):
            return data
        try:
            return cls.model_validate(dict(data or {}))
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid schedule config: {exc}") from exc

    def session_settings(self, workout: Workout):
        """(mode, mode config) for one workout: workout overrides win over defaults."""
        mode = CompetitionMode.parse(workout.competition_mode or self.competition_mode)
        mode_config = dict(self.mode_config)
        if workout.duration:
            mode_config["wod_duration"] = workout.duration
        mode_config.update(workout.mode_config)
        return mode, mode_config


def generate_days_from_range(start_date: str, end_date: str) -> List[EventDay]:
    """One EventDay per calendar day, inclusive."""
    start = date.fromisoformat(start_date[:10])
    end = date.fromisoformat(end_date[:10])
    days: List[EventDay] = []
    current = start
    while current <= end:
        days.append(EventDay(day_id=f"day-{current.isoformat()}", name=f"Day {len(days) + 1}", date=current.isoformat()))
        current += timedelta(days=1)
    return days


class DaySchedule:
    def __init__(self, day_id: str, name: Optional[str], day_date: Optional[str], config: ScheduleConfig):
        self.day_id = day_id
        self.name = name
        self.date = day_date
        self.config = config
        self.sessions: List[CompetitionSession] = []
        self.current_time = TimeSlot.from_string(config.start_time)

    def generate_sessions(
        self, athletes: List[Athlete], categories: List[Category], workouts: List[Workout]
    ) -> None:
        for workout in workouts:
            for category in categories:
                category_athletes = [a for a in athletes if a.category_id == category.category_id]
                if not category_athletes:
                    continue
                mode, mode_config = self.config.session_settings(workout)
                session = CompetitionSession(
                    session_id=f"{self.day_id}-{workout.wod_id}-{category.category_id}",
                    wod_id=workout.wod_id,
                    wod_name=workout.name,
                    category_id=category.category_id,
                    category_name=category.name,
                    competition_mode=mode,
                    config=mode_config,
                )
                session.schedule_athletes(category_athletes, self.current_time)
                self.sessions.append(session)
                self.current_time = self.current_time.add_minutes(
                    session.get_duration() + self.config.transition_time
                )
            self.current_time = self.current_time.add_minutes(self.config.setup_time)

    def find_session(self, session_id: str) -> Optional[CompetitionSession]:
        return next((s for s in self.sessions if s.session_id == session_id), None)

    def get_total_duration(self) -> int:
        return sum(s.get_duration() for s in self.sessions)

    def is_within_time_limit(self, max_hours: float) -> bool:
        return self.get_total_duration() <= max_hours * 60

    def is_valid(self) -> bool:
        return bool(self.sessions) and all(s.is_valid() for s in self.sessions)

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "day_id": self.day_id,
            "name": self.name,
            "date": self.date,
            "current_time": str(self.current_time),
            "sessions": [s.to_snapshot() for s in self.sessions],
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any], config: ScheduleConfig) -> "DaySchedule":
        day = cls(data["day_id"], data.get("name"), data.get("date"), config)
        day.sessions = [CompetitionSession.from_snapshot(s) for s in data.get("sessions", [])]
        if data.get("current_time"):
            day.current_time = TimeSlot.from_string(data["current_time"])
        return day


class Schedule:
    def __init__(self, event_id: str, config: Optional[Mapping[str, Any]] = None, schedule_id: Optional[str] = None):
        self.event_id = event_id
        self.schedule_id = schedule_id or f"schedule-{uuid.uuid4().hex}"
        self.config = ScheduleConfig.parse(config)
        self.days: List[DaySchedule] = []
        self.published = False
        self.created_at = datetime.now(timezone.utc).isoformat()
        self.published_at: Optional[str] = None

    def add_day(
        self,
        day: EventDay,
        athletes: List[Athlete],
        categories: List[Category],
        workouts: List[Workout],
    ) -> DaySchedule:
        day_schedule = DaySchedule(day.day_id, day.name, day.date, self.config)
        day_schedule.generate_sessions(athletes, categories, workouts)
        self.days.append(day_schedule)
        self._validate_time_constraints()
        return day_schedule

    def publish(self) -> None:
        if self.published:
            return
        if not self.can_publish():
            raise PreconditionError(
                f"Schedule {self.schedule_id} cannot be published: every day needs valid sessions"
            )
        self.published = True
        self.published_at = datetime.now(timezone.utc).isoformat()

    def unpublish(self) -> None:
        self.published = False
        self.published_at = None

    def can_publish(self) -> bool:
        return bool(self.days) and all(day.is_valid() for day in self.days)

    def find_session(self, session_id: str) -> Optional[CompetitionSession]:
        for day in self.days:
            session = day.find_session(session_id)
            if session:
                return session
        return None

    def find_versus_session(self) -> Optional[CompetitionSession]:
        for day in self.days:
            for session in day.sessions:
                if session.is_versus and session.tournament is not None:
                    return session
        return None

    def update_session(self, session_id: str, updates: Mapping[str, Any]) -> CompetitionSession:
        session = self.find_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found in schedule {self.schedule_id}")
        session.update(updates)
        self._validate_time_constraints()
        return session

    def get_total_duration(self) -> int:
        return sum(day.get_total_duration() for day in self.days)

    def _validate_time_constraints(self) -> None:
        over = [d.day_id for d in self.days if not d.is_within_time_limit(self.config.max_day_hours)]
        if over:
            raise ValidationError(
                f"Days exceed {self.config.max_day_hours}h of competition: {', '.join(over)}"
            )

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "schedule_id": self.schedule_id,
            "published": self.published,
            "config": self.config.model_dump(mode="json"),
            "created_at": self.created_at,
            "published_at": self.published_at,
            "days": [day.to_snapshot() for day in self.days],
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "Schedule":
        schedule = cls(data["event_id"], data.get("config"), schedule_id=data["schedule_id"])
        schedule.published = bool(data.get("published"))
        schedule.created_at = data.get("created_at") or schedule.created_at
        schedule.published_at = data.get("published_at")
        schedule.days = [DaySchedule.from_snapshot(d, schedule.config) for d in data.get("days", [])]
        return schedule

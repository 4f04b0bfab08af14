"""
Shapes exchanged with external collaborators, and the async interfaces the
engine consumes.

Collaborators (event data, scores, schedule storage, domain events) live
outside the engine; anything implementing these protocols can be plugged
into ScheduleService.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from competition_scheduler.services.schedule import Schedule


class Athlete(BaseModel):
    """Athlete reference as supplied by the event data provider. Never mutated."""

    model_config = ConfigDict(frozen=True)

    athlete_id: str
    first_name: str = ""
    last_name: str = ""
    category_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Category(BaseModel):
    category_id: str
    name: str


class Workout(BaseModel):
    wod_id: str
    name: str
    # Per-workout overrides of the schedule-wide defaults
    duration: Optional[int] = None
    competition_mode: Optional[str] = None
    mode_config: Dict[str, Any] = Field(default_factory=dict)


class EventDay(BaseModel):
    day_id: str
    name: Optional[str] = None
    date: Optional[str] = None


class EventInfo(BaseModel):
    event_id: str
    name: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class EventData(BaseModel):
    event: Optional[EventInfo] = None
    days: List[EventDay] = Field(default_factory=list)
    athletes: List[Athlete] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    workouts: List[Workout] = Field(default_factory=list)


class AthleteScore(BaseModel):
    athlete_id: str
    score: float = 0
    submitted_at: Optional[datetime] = None


class MatchResult(BaseModel):
    match_id: str
    winner_id: str
    loser_id: Optional[str] = None
    winner_score: Optional[float] = None
    loser_score: Optional[float] = None


class EventDataProvider(Protocol):
    async def get_event_data(self, event_id: str) -> EventData: ...


class ScoreProvider(Protocol):
    async def get_athlete_scores(self, athlete_ids: List[str], filter_id: str) -> List[AthleteScore]: ...

    async def get_match_results(self, event_id: str, filter_id: str) -> List[MatchResult]: ...


class ScheduleRepository(Protocol):
    async def save(self, schedule: "Schedule") -> "Schedule": ...

    async def find_by_id(self, event_id: str, schedule_id: str) -> Optional["Schedule"]: ...

    async def find_by_event_id(self, event_id: str) -> List["Schedule"]: ...

    async def find_published_by_event_id(self, event_id: str) -> List["Schedule"]: ...

    async def delete(self, event_id: str, schedule_id: str) -> None: ...


class EventPublisher(Protocol):
    async def publish(self, event: Dict[str, Any]) -> None: ...

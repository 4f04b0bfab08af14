"""Builders and stub collaborators shared by the test modules."""
from typing import Dict, List, Optional, Set

from competition_scheduler.services.ports import (
    Athlete,
    AthleteScore,
    Category,
    EventData,
    EventDay,
    MatchResult,
    Workout,
)


# ============================================================================
# Builders
# ============================================================================


def make_athletes(n: int, category_id: Optional[str] = "rx", prefix: str = "a") -> List[Athlete]:
    """Athletes a01..aNN with predictable names."""
    return [
        Athlete(
            athlete_id=f"{prefix}{i:02d}",
            first_name=f"First{i:02d}",
            last_name=f"Last{i:02d}",
            category_id=category_id,
        )
        for i in range(1, n + 1)
    ]


def athlete1_wins(matches) -> List[MatchResult]:
    """Results where the first athlete of every non-bye match wins."""
    return [
        MatchResult(
            match_id=m.match_id,
            winner_id=m.athlete1.athlete_id,
            loser_id=m.athlete2.athlete_id,
            winner_score=100,
            loser_score=50,
        )
        for m in matches
        if not m.is_bye
    ]


# ============================================================================
# Stub collaborators
# ============================================================================


class StubEventDataProvider:
    def __init__(self, data: Optional[EventData] = None, error: Optional[Exception] = None):
        self.data = data
        self.error = error
        self.calls: List[str] = []

    async def get_event_data(self, event_id: str) -> EventData:
        self.calls.append(event_id)
        if self.error:
            raise self.error
        return self.data.model_copy(deep=True)


class StubScoreProvider:
    """
    athlete_scores: {filter_id: {athlete_id: score}}
    match_results:  {filter_id: [MatchResult]}
    failing_athletes: lookups that include one of these ids raise
    """

    def __init__(
        self,
        athlete_scores: Optional[Dict[str, Dict[str, float]]] = None,
        match_results: Optional[Dict[str, List[MatchResult]]] = None,
        failing_athletes: Optional[Set[str]] = None,
    ):
        self.athlete_scores = athlete_scores or {}
        self.match_results = match_results or {}
        self.failing_athletes = failing_athletes or set()
        self.score_calls: List[tuple] = []

    async def get_athlete_scores(self, athlete_ids: List[str], filter_id: str) -> List[AthleteScore]:
        self.score_calls.append((tuple(athlete_ids), filter_id))
        if self.failing_athletes.intersection(athlete_ids):
            raise RuntimeError("score store timeout")
        scores = self.athlete_scores.get(filter_id, {})
        return [AthleteScore(athlete_id=a, score=scores[a]) for a in athlete_ids if a in scores]

    async def get_match_results(self, event_id: str, filter_id: str) -> List[MatchResult]:
        return list(self.match_results.get(filter_id, []))


class RecordingPublisher:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: List[dict] = []

    async def publish(self, event: dict) -> None:
        if self.fail:
            raise RuntimeError("event bus unavailable")
        self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [e["event_type"] for e in self.events]


def make_event_data(athletes: List[Athlete], workouts: Optional[List[Workout]] = None) -> EventData:
    categories = sorted({a.category_id for a in athletes})
    return EventData(
        days=[EventDay(day_id="day-1", name="Day 1", date="2026-03-14")],
        athletes=athletes,
        categories=[Category(category_id=c, name=c.upper()) for c in categories],
        workouts=workouts or [Workout(wod_id="wod-1", name="Fran", duration=20)],
    )

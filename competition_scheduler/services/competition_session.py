"""
Competition session — one workout + category pairing run in one competition mode.

A session is populated once by schedule_athletes(). After that it only
changes through update() (time shift, composition kept) or, for VERSUS,
through tournament progression.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from competition_scheduler.errors import PreconditionError
from competition_scheduler.services.competition_modes import (
    CompetitionMode,
    ModeSchedule,
    VersusMode,
    create_competition_mode,
)
from competition_scheduler.services.elimination import Match
from competition_scheduler.services.ports import Athlete, MatchResult, ScoreProvider
from competition_scheduler.services.progressive_tournament import (
    BracketSummary,
    ProgressiveTournament,
    StageResult,
)
from competition_scheduler.utils.time_slot import TimeSlot

logger = logging.getLogger(__name__)


class CompetitionSession:
    def __init__(
        self,
        session_id: str,
        wod_id: str,
        wod_name: str,
        category_id: str,
        category_name: str,
        competition_mode: Any = CompetitionMode.HEATS,
        config: Optional[Mapping[str, Any]] = None,
    ):
        self.session_id = session_id
        self.wod_id = wod_id
        self.wod_name = wod_name
        self.category_id = category_id
        self.category_name = category_name
        self.competition_mode = CompetitionMode.parse(competition_mode)
        self.config: Dict[str, Any] = dict(config or {})
        self.heats: List[Dict[str, Any]] = []
        self.matches: List[Match] = []
        self.athlete_schedule: List[Dict[str, Any]] = []
        self.start_time: Optional[str] = None
        self.duration: int = 0
        self.tournament: Optional[ProgressiveTournament] = None

    @property
    def is_versus(self) -> bool:
        return self.competition_mode == CompetitionMode.VERSUS

    def _mode(self):
        return create_competition_mode(self.competition_mode, self.config, tournament=self.tournament)

    def _versus_mode(self) -> VersusMode:
        if not self.is_versus or self.tournament is None:
            raise PreconditionError(f"Session {self.session_id} has no tournament")
        return self._mode()

    def _store(self, result: ModeSchedule, start_time: TimeSlot) -> None:
        self.heats = result.heats
        self.matches = result.matches
        self.athlete_schedule = result.athlete_schedule
        self.duration = result.duration
        self.start_time = str(start_time)
        if result.tournament is not None:
            self.tournament = result.tournament

    def schedule_athletes(self, athletes: List[Athlete], start_time) -> None:
        start = TimeSlot.coerce(start_time)
        self._store(self._mode().schedule(athletes, start), start)
        logger.debug(
            "Session %s scheduled %d athletes (%s, %d min)",
            self.session_id,
            len(athletes),
            self.competition_mode.value,
            self.duration,
        )

    def update(self, updates: Mapping[str, Any]) -> None:
        """
        Apply partial updates. A new start_time shifts every athlete time through
        the mode's recalculation; duration is stored as given.
        """
        if updates.get("start_time"):
            start = TimeSlot.coerce(updates["start_time"])
            self.start_time = str(start)
            self.athlete_schedule = self._mode().recalculate_schedule(self.athlete_schedule, start)
        if updates.get("duration"):
            self.duration = int(updates["duration"])

    def get_duration(self) -> int:
        return self.duration or 0

    def is_valid(self) -> bool:
        return len(self.athlete_schedule) > 0 and self.get_duration() > 0

    # ------------------------------------------------------------------
    # Tournament progression (VERSUS only)
    # ------------------------------------------------------------------

    async def process_results(
        self, match_results: List[MatchResult], score_provider: Optional[ScoreProvider]
    ) -> StageResult:
        result = await self._versus_mode().process_results(match_results, score_provider)
        stage = next(s for s in self.tournament.stages if s.stage_number == result.stage_number)
        current = {m.match_id: m for m in stage.matches}
        self.matches = [current.get(m.match_id, m) for m in self.matches]
        return result

    def schedule_next_stage(self, start_time) -> Optional[ModeSchedule]:
        start = TimeSlot.coerce(start_time)
        result = self._versus_mode().get_next_stage_schedule(start)
        if result is not None:
            self._store(result, start)
        return result

    def get_bracket(self) -> Optional[BracketSummary]:
        return self.tournament.get_tournament_bracket() if self.tournament else None

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def to_snapshot(self) -> Dict[str, Any]:
        bracket = self.get_bracket()
        return {
            "session_id": self.session_id,
            "wod_id": self.wod_id,
            "wod_name": self.wod_name,
            "category_id": self.category_id,
            "category_name": self.category_name,
            "competition_mode": self.competition_mode.value,
            "config": dict(self.config),
            "start_time": self.start_time,
            "duration": self.duration,
            "heats": list(self.heats),
            "matches": [m.to_snapshot() for m in self.matches],
            "athlete_schedule": list(self.athlete_schedule),
            "tournament": self.tournament.to_snapshot() if self.tournament else None,
            "bracket": bracket.model_dump() if bracket else None,
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "CompetitionSession":
        session = cls(
            session_id=data["session_id"],
            wod_id=data["wod_id"],
            wod_name=data.get("wod_name", ""),
            category_id=data["category_id"],
            category_name=data.get("category_name", ""),
            competition_mode=data.get("competition_mode", CompetitionMode.HEATS),
            config=data.get("config") or {},
        )
        session.start_time = data.get("start_time")
        session.duration = data.get("duration") or 0
        session.heats = list(data.get("heats") or [])
        session.matches = [Match.from_snapshot(m) for m in data.get("matches") or []]
        session.athlete_schedule = list(data.get("athlete_schedule") or [])
        if data.get("tournament"):
            session.tournament = ProgressiveTournament.from_snapshot(data["tournament"])
        return session

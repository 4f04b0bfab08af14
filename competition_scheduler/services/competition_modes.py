"""
Competition modes — how one workout/category pairing is run.

HEATS         sequential groups of athletes, one lane each
SIMULTANEOUS  everybody at once, one station each
VERSUS        head-to-head matches driven by a ProgressiveTournament

Every mode exposes schedule(athletes, start_time) and
recalculate_schedule(existing, new_start_time). Recalculation only shifts
times; who is in which heat or match never changes. Durations are always a
whole multiple of wod_duration.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from competition_scheduler.errors import PreconditionError, ValidationError
from competition_scheduler.services.elimination import STATUS_PENDING, Match
from competition_scheduler.services.ports import Athlete, MatchResult, ScoreProvider
from competition_scheduler.services.progressive_tournament import (
    BracketSummary,
    ProgressiveTournament,
    StageResult,
)
from competition_scheduler.utils.time_slot import TimeSlot

logger = logging.getLogger(__name__)

BYE = "BYE"

TimeInput = Union[TimeSlot, str]


class CompetitionMode(str, Enum):
    HEATS = "HEATS"
    VERSUS = "VERSUS"
    SIMULTANEOUS = "SIMULTANEOUS"

    @classmethod
    def parse(cls, value: Union["CompetitionMode", str]) -> "CompetitionMode":
        if isinstance(value, CompetitionMode):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValidationError(f"Unknown competition mode: {value!r}") from None


# ============================================================================
# Configs
# ============================================================================


class ModeConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    wod_duration: int = Field(gt=0)


class HeatsConfig(ModeConfig):
    athletes_per_heat: int = Field(default=8, gt=0)


class SimultaneousConfig(ModeConfig):
    pass


class VersusConfig(ModeConfig):
    concurrent_matches: int = Field(default=1, gt=0)
    elimination_rules: Optional[List[Dict[str, Any]]] = None


def _parse_config(model: type, config: Mapping[str, Any]):
    try:
        return model.model_validate(dict(config or {}))
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ValidationError(f"Invalid {model.__name__}: {problems}") from exc


@dataclass
class ModeSchedule:
    duration: int
    athlete_schedule: List[Dict[str, Any]]
    heats: List[Dict[str, Any]] = field(default_factory=list)
    matches: List[Match] = field(default_factory=list)
    tournament: Optional[ProgressiveTournament] = None
    bracket: Optional[BracketSummary] = None


def _slot(value: TimeInput) -> TimeSlot:
    return TimeSlot.coerce(value)


# ============================================================================
# Heats
# ============================================================================


class HeatsMode:
    mode = CompetitionMode.HEATS

    def __init__(self, config: Mapping[str, Any]):
        cfg = _parse_config(HeatsConfig, config)
        self.athletes_per_heat = cfg.athletes_per_heat
        self.wod_duration = cfg.wod_duration

    def schedule(self, athletes: List[Athlete], start_time: TimeInput) -> ModeSchedule:
        heats = self._create_heats(athletes)
        return ModeSchedule(
            duration=len(heats) * self.wod_duration,
            athlete_schedule=self._generate_athlete_schedule(heats, _slot(start_time)),
            heats=[
                {"heat_id": h["heat_id"], "heat_number": h["heat_number"], "athletes": [a.model_dump() for a in h["athletes"]]}
                for h in heats
            ],
        )

    def recalculate_schedule(self, existing: List[Dict[str, Any]], new_start_time: TimeInput) -> List[Dict[str, Any]]:
        start = _slot(new_start_time)
        updated = []
        for entry in existing:
            heat_start = start.add_minutes((entry["heat_number"] - 1) * self.wod_duration)
            updated.append(
                {
                    **entry,
                    "start_time": str(heat_start),
                    "end_time": str(heat_start.add_minutes(self.wod_duration)),
                }
            )
        return updated

    def _create_heats(self, athletes: List[Athlete]) -> List[Dict[str, Any]]:
        heats = []
        for i in range(0, len(athletes), self.athletes_per_heat):
            number = i // self.athletes_per_heat + 1
            heats.append(
                {
                    "heat_id": f"heat-{number}",
                    "heat_number": number,
                    "athletes": athletes[i : i + self.athletes_per_heat],
                }
            )
        return heats

    def _generate_athlete_schedule(self, heats: List[Dict[str, Any]], start: TimeSlot) -> List[Dict[str, Any]]:
        schedule = []
        for heat_index, heat in enumerate(heats):
            heat_start = start.add_minutes(heat_index * self.wod_duration)
            heat_end = heat_start.add_minutes(self.wod_duration)
            for lane_index, athlete in enumerate(heat["athletes"]):
                schedule.append(
                    {
                        "athlete_id": athlete.athlete_id,
                        "athlete_name": athlete.full_name,
                        "heat_id": heat["heat_id"],
                        "heat_number": heat["heat_number"],
                        "lane": lane_index + 1,
                        "start_time": str(heat_start),
                        "end_time": str(heat_end),
                    }
                )
        return schedule


# ============================================================================
# Simultaneous
# ============================================================================


class SimultaneousMode:
    mode = CompetitionMode.SIMULTANEOUS

    def __init__(self, config: Mapping[str, Any]):
        self.wod_duration = _parse_config(SimultaneousConfig, config).wod_duration

    def schedule(self, athletes: List[Athlete], start_time: TimeInput) -> ModeSchedule:
        start = _slot(start_time)
        end = start.add_minutes(self.wod_duration)
        return ModeSchedule(
            duration=self.wod_duration,
            athlete_schedule=[
                {
                    "athlete_id": athlete.athlete_id,
                    "athlete_name": athlete.full_name,
                    "station": index + 1,
                    "start_time": str(start),
                    "end_time": str(end),
                }
                for index, athlete in enumerate(athletes)
            ],
        )

    def recalculate_schedule(self, existing: List[Dict[str, Any]], new_start_time: TimeInput) -> List[Dict[str, Any]]:
        start = _slot(new_start_time)
        end = start.add_minutes(self.wod_duration)
        return [{**entry, "start_time": str(start), "end_time": str(end)} for entry in existing]


# ============================================================================
# Versus
# ============================================================================


class VersusMode:
    """
    Head-to-head rounds. Unlike the other modes this one spans several
    scheduling passes: results come in, the stage closes, and the advancing
    roster is scheduled as the next round.
    """

    mode = CompetitionMode.VERSUS

    def __init__(self, config: Mapping[str, Any], tournament: Optional[ProgressiveTournament] = None):
        cfg = _parse_config(VersusConfig, config)
        self.wod_duration = cfg.wod_duration
        self.concurrent_matches = cfg.concurrent_matches
        self.elimination_rules = cfg.elimination_rules
        self.tournament = tournament

    def schedule(self, athletes: List[Athlete], start_time: TimeInput) -> ModeSchedule:
        if self.tournament is None:
            if len(athletes) < 2:
                # Nobody to pair: empty session, no bracket
                logger.warning("Versus needs at least 2 athletes, got %d; no matches scheduled", len(athletes))
                return ModeSchedule(duration=0, athlete_schedule=[])
            self.tournament = ProgressiveTournament(len(athletes), self.elimination_rules)
        matches = self.tournament.create_current_stage_matches(athletes)
        slots = math.ceil(len(matches) / self.concurrent_matches)
        return ModeSchedule(
            duration=slots * self.wod_duration,
            athlete_schedule=self._generate_athlete_schedule(matches, _slot(start_time)),
            matches=matches,
            tournament=self.tournament,
            bracket=self.tournament.get_tournament_bracket(),
        )

    async def process_results(
        self, match_results: List[MatchResult], score_provider: Optional[ScoreProvider]
    ) -> StageResult:
        if self.tournament is None:
            raise PreconditionError("No active tournament to process results")
        return await self.tournament.process_stage_results(match_results, score_provider)

    def get_next_stage_schedule(self, start_time: TimeInput) -> Optional[ModeSchedule]:
        """
        Schedule the roster that advanced from the last completed stage.
        Returns None once the tournament has a champion.
        """
        if self.tournament is None or self.tournament.is_complete():
            return None
        current = self.tournament.get_current_stage()
        if current.status != STATUS_PENDING:
            raise PreconditionError(f"{current.stage_name} is still in progress")
        previous = self.tournament.get_previous_stage()
        if previous is None:
            raise PreconditionError("First stage has not been scheduled yet")
        return self.schedule(previous.get_advancing_athletes(), start_time)

    def recalculate_schedule(self, existing: List[Dict[str, Any]], new_start_time: TimeInput) -> List[Dict[str, Any]]:
        start = _slot(new_start_time)
        match_index: Dict[str, int] = {}
        updated = []
        for entry in existing:
            index = match_index.setdefault(entry["match_id"], len(match_index))
            match_start = start.add_minutes((index // self.concurrent_matches) * self.wod_duration)
            updated.append(
                {
                    **entry,
                    "start_time": str(match_start),
                    "end_time": str(match_start.add_minutes(self.wod_duration)),
                }
            )
        return updated

    def _generate_athlete_schedule(self, matches: List[Match], start: TimeSlot) -> List[Dict[str, Any]]:
        schedule = []
        for index, match in enumerate(matches):
            match_start = start.add_minutes((index // self.concurrent_matches) * self.wod_duration)
            match_end = match_start.add_minutes(self.wod_duration)
            pairs = [(match.athlete1, match.athlete2)]
            if match.athlete2 is not None:
                pairs.append((match.athlete2, match.athlete1))
            for athlete, opponent in pairs:
                schedule.append(
                    {
                        "athlete_id": athlete.athlete_id,
                        "athlete_name": athlete.full_name,
                        "match_id": match.match_id,
                        "opponent_id": opponent.athlete_id if opponent else None,
                        "opponent": opponent.full_name if opponent else BYE,
                        "start_time": str(match_start),
                        "end_time": str(match_end),
                    }
                )
        return schedule


# ============================================================================
# Factory
# ============================================================================

CompetitionModeStrategy = Union[HeatsMode, SimultaneousMode, VersusMode]


def create_competition_mode(
    mode: Union[CompetitionMode, str],
    config: Mapping[str, Any],
    tournament: Optional[ProgressiveTournament] = None,
) -> CompetitionModeStrategy:
    mode = CompetitionMode.parse(mode)
    if mode == CompetitionMode.HEATS:
        return HeatsMode(config)
    if mode == CompetitionMode.SIMULTANEOUS:
        return SimultaneousMode(config)
    return VersusMode(config, tournament=tournament)

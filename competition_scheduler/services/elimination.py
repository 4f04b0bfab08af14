"""
Elimination stage — one round of a progressive bracket.

Lifecycle: pending -> in-progress (matches created) -> complete (every match
decided and wildcards picked). Wildcards are only picked once all matches
are completed; partial results never move a stage to complete.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from competition_scheduler.errors import PreconditionError, ValidationError
from competition_scheduler.services.ports import Athlete, AthleteScore, MatchResult

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETE = "complete"


@dataclass
class Match:
    match_id: str
    athlete1: Athlete
    athlete2: Optional[Athlete] = None  # None = bye
    winner_id: Optional[str] = None
    loser_id: Optional[str] = None
    winner_score: Optional[float] = None
    loser_score: Optional[float] = None
    completed: bool = False

    @property
    def is_bye(self) -> bool:
        return self.athlete2 is None

    def athletes(self) -> List[Athlete]:
        return [a for a in (self.athlete1, self.athlete2) if a is not None]

    def athlete(self, athlete_id: Optional[str]) -> Optional[Athlete]:
        for a in self.athletes():
            if a.athlete_id == athlete_id:
                return a
        return None

    def record(self, result: MatchResult) -> None:
        if self.athlete(result.winner_id) is None:
            raise ValidationError(
                f"Winner {result.winner_id} did not compete in match {self.match_id}"
            )
        loser = next((a for a in self.athletes() if a.athlete_id != result.winner_id), None)
        if result.loser_id is not None and (loser is None or loser.athlete_id != result.loser_id):
            raise ValidationError(f"Loser {result.loser_id} did not compete in match {self.match_id}")
        self.winner_id = result.winner_id
        self.loser_id = loser.athlete_id if loser else None
        self.winner_score = result.winner_score
        self.loser_score = result.loser_score
        self.completed = True

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "match_id": self.match_id,
            "athlete1": self.athlete1.model_dump(),
            "athlete2": self.athlete2.model_dump() if self.athlete2 else None,
            "winner_id": self.winner_id,
            "loser_id": self.loser_id,
            "winner_score": self.winner_score,
            "loser_score": self.loser_score,
            "completed": self.completed,
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "Match":
        return cls(
            match_id=data["match_id"],
            athlete1=Athlete.model_validate(data["athlete1"]),
            athlete2=Athlete.model_validate(data["athlete2"]) if data.get("athlete2") else None,
            winner_id=data.get("winner_id"),
            loser_id=data.get("loser_id"),
            winner_score=data.get("winner_score"),
            loser_score=data.get("loser_score"),
            completed=bool(data.get("completed")),
        )


@dataclass
class Elimination:
    stage_id: str
    stage_name: str
    stage_number: int
    from_count: int
    to_count: int
    wildcard_count: int = 0
    status: str = STATUS_PENDING
    matches: List[Match] = field(default_factory=list)
    winners: List[Athlete] = field(default_factory=list)
    wildcards: List[Athlete] = field(default_factory=list)
    eliminated: List[Athlete] = field(default_factory=list)

    @property
    def filter_id(self) -> str:
        """Scoring filter that holds this stage's scores."""
        return self.stage_id

    # ------------------------------------------------------------------
    # Pairing
    # ------------------------------------------------------------------

    def create_matches(self, athletes: List[Athlete]) -> List[Match]:
        """
        Pair athletes in input order: (1, 2), (3, 4), ...
        An odd last athlete gets a bye, recorded straight away as a win.
        """
        if self.status != STATUS_PENDING:
            raise PreconditionError(f"{self.stage_name}: matches already created (status {self.status})")
        if len(athletes) != self.from_count:
            raise ValidationError(
                f"{self.stage_name} expects {self.from_count} athletes, got {len(athletes)}"
            )

        self.matches = []
        for i in range(0, len(athletes), 2):
            match = Match(
                match_id=f"{self.stage_id}-match-{i // 2 + 1}",
                athlete1=athletes[i],
                athlete2=athletes[i + 1] if i + 1 < len(athletes) else None,
            )
            if match.is_bye:
                match.winner_id = match.athlete1.athlete_id
                match.completed = True
            self.matches.append(match)

        self.winners = [m.athlete1 for m in self.matches if m.is_bye]
        self.wildcards = []
        self.eliminated = []
        self.status = STATUS_IN_PROGRESS
        return self.matches

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def apply_results(self, results: Iterable[MatchResult]) -> Dict[str, List[Athlete]]:
        """
        Record match results. Winners advance; losers are tentatively eliminated
        until wildcards are resolved.
        """
        if self.status == STATUS_PENDING:
            raise PreconditionError(f"{self.stage_name}: no matches created yet")
        if self.status == STATUS_COMPLETE:
            raise PreconditionError(f"{self.stage_name} is already complete")

        by_id = {m.match_id: m for m in self.matches}
        for result in results:
            match = by_id.get(result.match_id)
            if match is None:
                logger.warning("%s: ignoring result for unknown match %s", self.stage_id, result.match_id)
                continue
            if match.is_bye:
                continue
            match.record(result)

        self.winners = [m.athlete(m.winner_id) for m in self.matches if m.completed]
        losers = self.pending_losers()
        self.eliminated = list(losers)
        return {"winners": list(self.winners), "eliminated": losers}

    def all_matches_completed(self) -> bool:
        return bool(self.matches) and all(m.completed for m in self.matches)

    def pending_losers(self) -> List[Athlete]:
        """Losers of completed matches, in match order."""
        return [m.athlete(m.loser_id) for m in self.matches if m.completed and m.loser_id]

    def resolve(self, scores: Optional[Mapping[str, AthleteScore]] = None) -> None:
        """
        Promote the best-scoring losers to wildcards and close the stage.

        Losers are ranked by score, highest first; ties keep match order and
        athletes without a score count as 0.
        """
        if not self.all_matches_completed():
            raise PreconditionError(f"{self.stage_name}: not all matches are completed")

        scores = scores or {}
        losers = self.pending_losers()
        ranked = sorted(
            losers,
            key=lambda a: -(scores[a.athlete_id].score if a.athlete_id in scores else 0),
        )
        self.wildcards = ranked[: self.wildcard_count]
        promoted = {a.athlete_id for a in self.wildcards}
        self.eliminated = [a for a in losers if a.athlete_id not in promoted]

        advancing = len(self.winners) + len(self.wildcards)
        if advancing != self.to_count:
            raise ValidationError(
                f"{self.stage_name}: {advancing} athletes advancing, expected {self.to_count}"
            )
        self.status = STATUS_COMPLETE

    def get_advancing_athletes(self) -> List[Athlete]:
        return [*self.winners, *self.wildcards]

    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE and len(self.winners) + len(self.wildcards) == self.to_count

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def describe(self) -> Dict[str, Any]:
        return {
            "stage": self.stage_number,
            "stage_id": self.stage_id,
            "name": self.stage_name,
            "from": self.from_count,
            "to": self.to_count,
            "wildcards": self.wildcard_count,
        }

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "stage_id": self.stage_id,
            "stage_name": self.stage_name,
            "stage_number": self.stage_number,
            "from_count": self.from_count,
            "to_count": self.to_count,
            "wildcard_count": self.wildcard_count,
            "status": self.status,
            "matches": [m.to_snapshot() for m in self.matches],
            "winners": [a.model_dump() for a in self.winners],
            "wildcards": [a.model_dump() for a in self.wildcards],
            "eliminated": [a.model_dump() for a in self.eliminated],
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "Elimination":
        return cls(
            stage_id=data["stage_id"],
            stage_name=data["stage_name"],
            stage_number=data["stage_number"],
            from_count=data["from_count"],
            to_count=data["to_count"],
            wildcard_count=data.get("wildcard_count", 0),
            status=data.get("status", STATUS_PENDING),
            matches=[Match.from_snapshot(m) for m in data.get("matches", [])],
            winners=[Athlete.model_validate(a) for a in data.get("winners", [])],
            wildcards=[Athlete.model_validate(a) for a in data.get("wildcards", [])],
            eliminated=[Athlete.model_validate(a) for a in data.get("eliminated", [])],
        )

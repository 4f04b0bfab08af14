"""
Progressive Tournament — a chain of elimination stages with a cursor.

The stage chain is derived from the roster size (or supplied explicitly) and
never changes afterwards. current_stage only moves forward, one step per
completed stage. The whole object round-trips through to_snapshot /
from_snapshot so a bracket can be persisted between stages.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel

from competition_scheduler.errors import PreconditionError
from competition_scheduler.services.elimination import Elimination, Match
from competition_scheduler.services.elimination_rules import (
    EliminationPolicy,
    EliminationRule,
    derive_elimination_rules,
    validate_elimination_rules,
)
from competition_scheduler.services.ports import Athlete, MatchResult, ScoreProvider
from competition_scheduler.services.scores import fetch_athlete_scores

logger = logging.getLogger(__name__)


# ============================================================================
# Read models
# ============================================================================


class BracketStage(BaseModel):
    stage: int
    name: str
    from_count: int
    to_count: int
    wildcards: int
    status: str
    matches: int
    completed: bool


class BracketSummary(BaseModel):
    total_athletes: int
    current_stage: int  # 1-based
    total_stages: int
    stages: List[BracketStage]
    champion: Optional[Athlete] = None


@dataclass
class StageResult:
    stage_number: int
    stage_name: str
    winners: List[Athlete]
    wildcards: List[Athlete]
    eliminated: List[Athlete]
    advancing: List[Athlete]
    stage_complete: bool
    tournament_complete: bool
    next_stage: Optional[Dict[str, Any]] = None
    champion: Optional[Athlete] = None
    unresolved_matches: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage_number,
            "stage_name": self.stage_name,
            "winners": [a.model_dump() for a in self.winners],
            "wildcards": [a.model_dump() for a in self.wildcards],
            "eliminated": [a.model_dump() for a in self.eliminated],
            "advancing": [a.model_dump() for a in self.advancing],
            "stage_complete": self.stage_complete,
            "tournament_complete": self.tournament_complete,
            "next_stage": self.next_stage,
            "champion": self.champion.model_dump() if self.champion else None,
            "unresolved_matches": list(self.unresolved_matches),
        }


RuleInput = Union[EliminationRule, Mapping[str, Any]]


class ProgressiveTournament:
    def __init__(
        self,
        total_athletes: int,
        elimination_rules: Optional[Sequence[RuleInput]] = None,
        policy: Optional[EliminationPolicy] = None,
    ):
        self.total_athletes = total_athletes
        if elimination_rules:
            rules = [r if isinstance(r, EliminationRule) else EliminationRule.from_dict(r) for r in elimination_rules]
            validate_elimination_rules(total_athletes, rules)
        else:
            rules = derive_elimination_rules(total_athletes, policy)
        self.elimination_rules: List[EliminationRule] = rules
        self.stages: List[Elimination] = [
            Elimination(
                stage_id=f"stage-{rule.stage}",
                stage_name=rule.stage_name,
                stage_number=rule.stage,
                from_count=rule.from_count,
                to_count=rule.to_count,
                wildcard_count=rule.wildcards,
            )
            for rule in rules
        ]
        self.current_stage = 0

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def get_current_stage(self) -> Optional[Elimination]:
        if self.current_stage < len(self.stages):
            return self.stages[self.current_stage]
        return None

    def get_previous_stage(self) -> Optional[Elimination]:
        if self.current_stage == 0:
            return None
        return self.stages[min(self.current_stage, len(self.stages)) - 1]

    def has_next_stage(self) -> bool:
        return self.current_stage < len(self.stages)

    def is_complete(self) -> bool:
        return self.current_stage >= len(self.stages)

    def get_champion(self) -> Optional[Athlete]:
        if not self.is_complete():
            return None
        final_stage = self.stages[-1]
        return final_stage.winners[0] if final_stage.winners else None

    # ------------------------------------------------------------------
    # Stage operations
    # ------------------------------------------------------------------

    def create_current_stage_matches(self, athletes: List[Athlete]) -> List[Match]:
        stage = self.get_current_stage()
        if stage is None:
            return []
        matches = stage.create_matches(athletes)
        logger.info("Created %d matches for %s", len(matches), stage.stage_name)
        return matches

    async def process_stage_results(
        self,
        match_results: List[MatchResult],
        score_provider: Optional[ScoreProvider] = None,
    ) -> StageResult:
        """
        Apply match results to the current stage.

        Once every match is completed the stage's wildcards are picked from the
        losers' scores (only looked up when the stage has wildcards), the stage
        closes and the cursor moves to the next stage.
        """
        stage = self.get_current_stage()
        if stage is None:
            raise PreconditionError("Tournament is already complete")
        if not match_results:
            raise PreconditionError(f"No match results to process for {stage.stage_name}")

        stage.apply_results(match_results)

        if stage.all_matches_completed():
            scores = {}
            if stage.wildcard_count > 0:
                loser_ids = [a.athlete_id for a in stage.pending_losers()]
                if score_provider is None:
                    logger.warning("%s: no score provider, wildcards ranked without scores", stage.stage_id)
                else:
                    scores = await fetch_athlete_scores(score_provider, loser_ids, stage.filter_id)
            stage.resolve(scores)
            self.current_stage += 1
            logger.info(
                "%s complete: %d advancing, %d eliminated",
                stage.stage_name,
                len(stage.get_advancing_athletes()),
                len(stage.eliminated),
            )

        next_stage = self.get_current_stage()
        return StageResult(
            stage_number=stage.stage_number,
            stage_name=stage.stage_name,
            winners=list(stage.winners),
            wildcards=list(stage.wildcards),
            eliminated=list(stage.eliminated),
            advancing=stage.get_advancing_athletes(),
            stage_complete=stage.is_complete(),
            tournament_complete=self.is_complete(),
            next_stage=next_stage.describe() if next_stage and stage.is_complete() else None,
            champion=self.get_champion(),
            unresolved_matches=[m.match_id for m in stage.matches if not m.completed],
        )

    # ------------------------------------------------------------------
    # Read model + snapshot
    # ------------------------------------------------------------------

    def get_tournament_bracket(self) -> BracketSummary:
        return BracketSummary(
            total_athletes=self.total_athletes,
            current_stage=self.current_stage + 1,
            total_stages=len(self.stages),
            stages=[
                BracketStage(
                    stage=s.stage_number,
                    name=s.stage_name,
                    from_count=s.from_count,
                    to_count=s.to_count,
                    wildcards=s.wildcard_count,
                    status=s.status,
                    matches=len(s.matches),
                    completed=s.is_complete(),
                )
                for s in self.stages
            ],
            champion=self.get_champion(),
        )

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "total_athletes": self.total_athletes,
            "elimination_rules": [r.to_dict() for r in self.elimination_rules],
            "current_stage": self.current_stage,
            "stages": [s.to_snapshot() for s in self.stages],
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "ProgressiveTournament":
        tournament = cls.__new__(cls)
        tournament.total_athletes = data["total_athletes"]
        tournament.elimination_rules = [EliminationRule.from_dict(r) for r in data["elimination_rules"]]
        tournament.stages = [Elimination.from_snapshot(s) for s in data["stages"]]
        tournament.current_stage = data["current_stage"]
        return tournament

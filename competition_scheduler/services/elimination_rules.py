"""
Elimination Rules — stage chain derivation for progressive tournaments.

Given a roster size, derive the sequence of stages that takes it down to a
single champion. Early rounds are forgiving (losers can come back as
wildcards), late rounds are straight knockouts.

All rule math lives here. Supplied rule chains are validated here too.

Direct winners are ceil(n / 2), not floor(n / 2): an odd roster gives its
last athlete a bye, and a bye is a win. So 7 athletes go 7 -> 4 -> 2 -> 1
rather than 7 -> 3 -> 1, and winners + wildcards always equals a stage's
advancing count.
"""
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from competition_scheduler.errors import ValidationError

# =============================================================================
# Policy constants
# =============================================================================

# Rosters at or below this size are knocked out directly (no wildcards)
DIRECT_ELIMINATION_MAX = 8
FINAL_STAGE_MAX = 4
# Share of a large roster that advances from an early round
EARLY_ROUND_ADVANCE_RATIO = 0.67


@dataclass(frozen=True)
class EliminationPolicy:
    direct_elimination_max: int = DIRECT_ELIMINATION_MAX
    final_stage_max: int = FINAL_STAGE_MAX
    early_round_advance_ratio: float = EARLY_ROUND_ADVANCE_RATIO


DEFAULT_POLICY = EliminationPolicy()


@dataclass(frozen=True)
class EliminationRule:
    stage: int
    from_count: int
    to_count: int
    wildcards: int
    stage_name: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EliminationRule":
        try:
            from_count = int(data.get("from_count", data.get("from")))
            to_count = int(data.get("to_count", data.get("to")))
            stage = int(data["stage"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed elimination rule: {dict(data)!r}") from exc
        wildcards = int(data.get("wildcards") or 0)
        name = data.get("stage_name") or stage_name(stage, from_count, to_count)
        return cls(stage=stage, from_count=from_count, to_count=to_count, wildcards=wildcards, stage_name=name)


# =============================================================================
# Derivation
# =============================================================================


def direct_winners(roster_size: int) -> int:
    """Winners of the head-to-head matches of a stage. A bye counts as a win."""
    return math.ceil(roster_size / 2)


def stage_name(stage: int, from_count: int, to_count: int) -> str:
    if to_count == 1:
        return "Championship"
    if to_count == 2:
        return "Finals"
    if to_count == 4:
        return "Semifinals"
    if to_count == 8:
        return "Quarterfinals"
    if from_count == 16:
        return "Round of 16"
    return f"Stage {stage} ({from_count}→{to_count})"


def next_stage_size(remaining: int, policy: EliminationPolicy = DEFAULT_POLICY) -> tuple:
    """
    Return (advancing, wildcards) for a stage starting with *remaining* athletes.

    - remaining <= final_stage_max or <= direct_elimination_max: direct elimination
    - larger: advance ~ratio of the roster, capped at remaining - 1; the gap above
      the direct winners is filled with wildcards
    """
    winners = direct_winners(remaining)
    if remaining <= policy.final_stage_max or remaining <= policy.direct_elimination_max:
        return winners, 0

    target = math.ceil(remaining * policy.early_round_advance_ratio)
    advancing = min(target, remaining - 1)
    wildcards = max(0, advancing - winners)
    return max(advancing, winners), wildcards


def derive_elimination_rules(
    total_athletes: int, policy: Optional[EliminationPolicy] = None
) -> List[EliminationRule]:
    """Derive the full stage chain from *total_athletes* down to one champion."""
    if total_athletes < 2:
        raise ValidationError(f"A tournament needs at least 2 athletes, got {total_athletes}")
    policy = policy or DEFAULT_POLICY

    rules: List[EliminationRule] = []
    remaining = total_athletes
    stage = 1
    while remaining > 1:
        advancing, wildcards = next_stage_size(remaining, policy)
        rules.append(
            EliminationRule(
                stage=stage,
                from_count=remaining,
                to_count=advancing,
                wildcards=wildcards,
                stage_name=stage_name(stage, remaining, advancing),
            )
        )
        remaining = advancing
        stage += 1
    return rules


def validate_elimination_rules(total_athletes: int, rules: Sequence[EliminationRule]) -> None:
    """
    Raise ValidationError unless *rules* form a playable chain:
    contiguous from total_athletes, strictly decreasing, ending at 1, and each
    stage's advancing count equal to its direct winners plus wildcards.
    """
    if not rules:
        raise ValidationError("Elimination rules must contain at least one stage")

    expected_from = total_athletes
    for rule in rules:
        if rule.from_count != expected_from:
            raise ValidationError(
                f"Stage {rule.stage} starts with {rule.from_count} athletes, expected {expected_from}"
            )
        if not 1 <= rule.to_count < rule.from_count:
            raise ValidationError(
                f"Stage {rule.stage} must reduce the roster ({rule.from_count}→{rule.to_count})"
            )
        if rule.wildcards < 0:
            raise ValidationError(f"Stage {rule.stage} has a negative wildcard count")
        if rule.to_count != direct_winners(rule.from_count) + rule.wildcards:
            raise ValidationError(
                f"Stage {rule.stage}: {rule.from_count}→{rule.to_count} needs "
                f"{rule.to_count - direct_winners(rule.from_count)} wildcards, got {rule.wildcards}"
            )
        expected_from = rule.to_count

    if rules[-1].to_count != 1:
        raise ValidationError("Elimination rules must end with a single champion")

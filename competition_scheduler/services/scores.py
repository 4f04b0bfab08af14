"""
Score lookups used by bracket progression.

Missing scores count as 0 so that athletes without a submitted score are
the first to be eliminated; a failing lookup for one athlete degrades to 0
instead of aborting wildcard selection for the whole stage.
"""
import logging
from typing import Dict, Iterable, List, Mapping

from competition_scheduler.services.ports import AthleteScore, MatchResult, ScoreProvider

logger = logging.getLogger(__name__)


def best_scores(scores: Iterable[AthleteScore]) -> Dict[str, AthleteScore]:
    """Keep the highest score per athlete."""
    best: Dict[str, AthleteScore] = {}
    for s in scores:
        current = best.get(s.athlete_id)
        if current is None or s.score > current.score:
            best[s.athlete_id] = s
    return best


async def fetch_athlete_scores(
    provider: ScoreProvider,
    athlete_ids: List[str],
    filter_id: str,
) -> Dict[str, AthleteScore]:
    """
    Return {athlete_id: best AthleteScore} for every requested athlete.

    The batch call is tried first. If it fails, each athlete is looked up on
    its own and failures are replaced by a zero score.
    """
    if not athlete_ids:
        return {}

    try:
        found = best_scores(await provider.get_athlete_scores(list(athlete_ids), filter_id))
    except Exception as exc:
        logger.warning(
            "Batch score lookup failed for filter %s (%s); retrying per athlete", filter_id, exc
        )
        found = {}
        for athlete_id in athlete_ids:
            try:
                found.update(best_scores(await provider.get_athlete_scores([athlete_id], filter_id)))
            except Exception as single_exc:
                logger.warning(
                    "Score lookup failed for athlete %s in %s: %s", athlete_id, filter_id, single_exc
                )

    result: Dict[str, AthleteScore] = {}
    for athlete_id in athlete_ids:
        result[athlete_id] = found.get(athlete_id) or AthleteScore(athlete_id=athlete_id, score=0)
    return result


def derive_match_results(entries_by_match: Mapping[str, List[AthleteScore]]) -> List[MatchResult]:
    """
    Turn raw per-match score entries into match results: higher score wins.

    Matches with anything other than exactly two entries are not decided yet
    and are left out. Equal scores go to the earlier submission.
    """
    results: List[MatchResult] = []
    for match_id, entries in entries_by_match.items():
        if len(entries) != 2:
            continue
        a, b = entries
        if b.score > a.score or (
            b.score == a.score
            and a.submitted_at is not None
            and b.submitted_at is not None
            and b.submitted_at < a.submitted_at
        ):
            a, b = b, a
        results.append(
            MatchResult(
                match_id=match_id,
                winner_id=a.athlete_id,
                loser_id=b.athlete_id,
                winner_score=a.score,
                loser_score=b.score,
            )
        )
    return results

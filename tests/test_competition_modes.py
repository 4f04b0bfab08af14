"""
Competition modes: heat packing, simultaneous stations, versus matches,
start-time recalculation and the mode factory.
"""
import pytest

from competition_scheduler.errors import PreconditionError, ValidationError
from competition_scheduler.services.competition_modes import (
    BYE,
    CompetitionMode,
    HeatsMode,
    SimultaneousMode,
    VersusMode,
    create_competition_mode,
)
from competition_scheduler.services.progressive_tournament import ProgressiveTournament
from tests.helpers import StubScoreProvider, athlete1_wins, make_athletes


# ============================================================================
# Heats
# ============================================================================


class TestHeatsMode:
    def test_packs_athletes_into_sequential_heats(self):
        mode = HeatsMode({"wod_duration": 20, "athletes_per_heat": 4})
        result = mode.schedule(make_athletes(10), "10:00")

        assert result.duration == 60
        assert [len(h["athletes"]) for h in result.heats] == [4, 4, 2]
        assert len(result.athlete_schedule) == 10

        last_heat = [e for e in result.athlete_schedule if e["heat_number"] == 3]
        assert [e["athlete_id"] for e in last_heat] == ["a09", "a10"]
        assert [e["lane"] for e in last_heat] == [1, 2]
        assert all(e["start_time"] == "10:40" and e["end_time"] == "11:00" for e in last_heat)

    def test_default_heat_size(self):
        result = HeatsMode({"wod_duration": 12}).schedule(make_athletes(9), "08:00")
        assert [len(h["athletes"]) for h in result.heats] == [8, 1]
        assert result.duration == 24

    def test_recalculate_shifts_times_only(self):
        mode = HeatsMode({"wod_duration": 20, "athletes_per_heat": 4})
        original = mode.schedule(make_athletes(10), "10:00").athlete_schedule

        moved = mode.recalculate_schedule(original, "12:00")

        assert [(e["athlete_id"], e["heat_id"], e["lane"]) for e in moved] == [
            (e["athlete_id"], e["heat_id"], e["lane"]) for e in original
        ]
        heat2 = next(e for e in moved if e["heat_number"] == 2)
        assert (heat2["start_time"], heat2["end_time"]) == ("12:20", "12:40")
        assert mode.recalculate_schedule(moved, "12:00") == moved
        assert mode.recalculate_schedule(moved, "10:00") == original


# ============================================================================
# Simultaneous
# ============================================================================


class TestSimultaneousMode:
    def test_everyone_runs_at_once(self):
        result = SimultaneousMode({"wod_duration": 15}).schedule(make_athletes(5), "09:00")

        assert result.duration == 15
        assert [e["station"] for e in result.athlete_schedule] == [1, 2, 3, 4, 5]
        assert {(e["start_time"], e["end_time"]) for e in result.athlete_schedule} == {("09:00", "09:15")}

    def test_recalculate(self):
        mode = SimultaneousMode({"wod_duration": 15})
        original = mode.schedule(make_athletes(3), "09:00").athlete_schedule
        moved = mode.recalculate_schedule(original, "13:30")
        assert {(e["start_time"], e["end_time"]) for e in moved} == {("13:30", "13:45")}
        assert [e["station"] for e in moved] == [1, 2, 3]


# ============================================================================
# Versus
# ============================================================================


class TestVersusMode:
    def test_schedules_first_stage(self):
        mode = VersusMode({"wod_duration": 15, "concurrent_matches": 2})
        result = mode.schedule(make_athletes(12), "10:00")

        assert len(result.matches) == 6
        assert result.duration == 45
        assert result.tournament is mode.tournament
        assert result.bracket.total_stages == 5
        assert len(result.athlete_schedule) == 12

        first = result.athlete_schedule[0]
        assert first["athlete_id"] == "a01"
        assert first["opponent_id"] == "a02"
        assert first["opponent"] == "First02 Last02"

        fifth = [e for e in result.athlete_schedule if e["match_id"] == "stage-1-match-5"]
        assert {(e["start_time"], e["end_time"]) for e in fifth} == {("10:30", "10:45")}

    def test_bye_has_no_opponent(self):
        result = VersusMode({"wod_duration": 10}).schedule(make_athletes(3), "10:00")
        bye_entry = next(e for e in result.athlete_schedule if e["athlete_id"] == "a03")
        assert bye_entry["opponent"] == BYE
        assert bye_entry["opponent_id"] is None
        assert len(result.athlete_schedule) == 3

    def test_single_athlete_gets_an_empty_session(self):
        mode = VersusMode({"wod_duration": 10})
        result = mode.schedule(make_athletes(1), "10:00")

        assert result.duration == 0
        assert result.matches == []
        assert result.athlete_schedule == []
        assert result.tournament is None
        assert mode.tournament is None

    def test_supplied_elimination_rules(self):
        rules = [{"stage": 1, "from": 4, "to": 2}, {"stage": 2, "from": 2, "to": 1}]
        mode = VersusMode({"wod_duration": 10, "elimination_rules": rules})
        result = mode.schedule(make_athletes(4), "10:00")
        assert result.bracket.total_stages == 2

    def test_recalculate_keeps_match_slots(self):
        mode = VersusMode({"wod_duration": 15, "concurrent_matches": 2})
        original = mode.schedule(make_athletes(12), "10:00").athlete_schedule

        moved = mode.recalculate_schedule(original, "14:00")

        assert [(e["athlete_id"], e["match_id"], e["opponent_id"]) for e in moved] == [
            (e["athlete_id"], e["match_id"], e["opponent_id"]) for e in original
        ]
        fifth = [e for e in moved if e["match_id"] == "stage-1-match-5"]
        assert {e["start_time"] for e in fifth} == {"14:30"}
        assert mode.recalculate_schedule(moved, "10:00") == original

    @pytest.mark.asyncio
    async def test_next_stage_uses_advancing_roster(self):
        mode = VersusMode({"wod_duration": 15, "concurrent_matches": 2})
        first = mode.schedule(make_athletes(12), "10:00")
        provider = StubScoreProvider(athlete_scores={"stage-1": {"a04": 90, "a08": 80, "a12": 70}})
        await mode.process_results(athlete1_wins(first.matches), provider)

        second = mode.get_next_stage_schedule("11:00")

        assert len(second.matches) == 5
        assert second.matches[-1].is_bye
        assert second.matches[-1].athlete1.athlete_id == "a12"
        assert second.duration == 45
        assert second.bracket.current_stage == 2
        assert {e["athlete_id"] for e in second.athlete_schedule} == {
            "a01", "a03", "a05", "a07", "a09", "a11", "a04", "a08", "a12",
        }

    def test_next_stage_before_results(self):
        mode = VersusMode({"wod_duration": 15})
        mode.schedule(make_athletes(4), "10:00")
        with pytest.raises(PreconditionError):
            mode.get_next_stage_schedule("11:00")

    def test_next_stage_before_first_stage(self):
        mode = VersusMode({"wod_duration": 15}, tournament=ProgressiveTournament(4))
        with pytest.raises(PreconditionError):
            mode.get_next_stage_schedule("11:00")

    @pytest.mark.asyncio
    async def test_next_stage_after_champion(self):
        mode = VersusMode({"wod_duration": 15})
        first = mode.schedule(make_athletes(2), "10:00")
        result = await mode.process_results(athlete1_wins(first.matches), None)
        assert result.tournament_complete
        assert mode.get_next_stage_schedule("11:00") is None

    @pytest.mark.asyncio
    async def test_results_without_tournament(self):
        with pytest.raises(PreconditionError):
            await VersusMode({"wod_duration": 15}).process_results([], None)


# ============================================================================
# Factory + config validation
# ============================================================================


class TestFactory:
    @pytest.mark.parametrize(
        "mode, cls",
        [("HEATS", HeatsMode), ("heats", HeatsMode), ("Simultaneous", SimultaneousMode), (CompetitionMode.VERSUS, VersusMode)],
    )
    def test_creates_strategy(self, mode, cls):
        assert isinstance(create_competition_mode(mode, {"wod_duration": 10}), cls)

    def test_unknown_mode(self):
        with pytest.raises(ValidationError):
            create_competition_mode("RELAY", {"wod_duration": 10})

    @pytest.mark.parametrize(
        "config",
        [{}, {"wod_duration": 0}, {"wod_duration": 10, "athletes_per_heat": 0}, {"wod_duration": "long"}],
    )
    def test_invalid_heats_config(self, config):
        with pytest.raises(ValidationError):
            create_competition_mode("HEATS", config)

    def test_invalid_versus_config(self):
        with pytest.raises(ValidationError):
            create_competition_mode("VERSUS", {"wod_duration": 10, "concurrent_matches": 0})

    def test_tournament_is_passed_through(self):
        tournament = ProgressiveTournament(4)
        mode = create_competition_mode("VERSUS", {"wod_duration": 10}, tournament=tournament)
        assert mode.tournament is tournament

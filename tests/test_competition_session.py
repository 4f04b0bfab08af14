import pytest

from competition_scheduler.errors import PreconditionError, ValidationError
from competition_scheduler.services.competition_modes import CompetitionMode
from competition_scheduler.services.competition_session import CompetitionSession
from tests.helpers import StubScoreProvider, athlete1_wins, make_athletes


def _session(mode=CompetitionMode.HEATS, **config):
    return CompetitionSession(
        session_id="day-1-wod-1-rx",
        wod_id="wod-1",
        wod_name="Fran",
        category_id="rx",
        category_name="RX",
        competition_mode=mode,
        config={"wod_duration": 20, **config},
    )


def test_schedule_heats_session():
    session = _session(athletes_per_heat=4)
    session.schedule_athletes(make_athletes(10), "10:00")

    assert session.start_time == "10:00"
    assert session.get_duration() == 60
    assert len(session.heats) == 3
    assert session.is_valid()
    assert not session.is_versus
    assert session.get_bracket() is None


def test_empty_session_is_not_valid():
    session = _session()
    session.schedule_athletes([], "10:00")
    assert not session.is_valid()


def test_update_start_time_recalculates():
    session = _session(athletes_per_heat=4)
    session.schedule_athletes(make_athletes(8), "10:00")

    session.update({"start_time": "13:00"})

    assert session.start_time == "13:00"
    assert [e["start_time"] for e in session.athlete_schedule] == ["13:00"] * 4 + ["13:20"] * 4
    assert session.get_duration() == 40


def test_update_duration():
    session = _session()
    session.schedule_athletes(make_athletes(4), "10:00")
    session.update({"duration": "35"})
    assert session.get_duration() == 35


def test_update_rejects_bad_time():
    session = _session()
    session.schedule_athletes(make_athletes(4), "10:00")
    with pytest.raises(ValidationError):
        session.update({"start_time": "25:99"})


def test_unknown_mode():
    with pytest.raises(ValidationError):
        _session(mode="RELAY")


def test_heats_session_has_no_tournament():
    session = _session()
    session.schedule_athletes(make_athletes(4), "10:00")
    with pytest.raises(PreconditionError):
        session.schedule_next_stage("11:00")


@pytest.mark.asyncio
async def test_versus_session_progression():
    session = _session(mode="VERSUS", wod_duration=15, concurrent_matches=2)
    session.schedule_athletes(make_athletes(12), "10:00")

    assert session.is_versus
    assert session.tournament is not None
    assert session.get_duration() == 45
    assert len(session.matches) == 6

    provider = StubScoreProvider(athlete_scores={"stage-1": {"a04": 90, "a08": 80, "a12": 70}})
    result = await session.process_results(athlete1_wins(session.matches), provider)

    assert result.stage_complete
    assert all(m.completed for m in session.matches)
    assert session.get_bracket().current_stage == 2

    next_stage = session.schedule_next_stage("11:00")

    assert next_stage is not None
    assert session.start_time == "11:00"
    assert [m.match_id for m in session.matches] == [f"stage-2-match-{i}" for i in range(1, 6)]
    assert session.get_duration() == 45


@pytest.mark.asyncio
async def test_snapshot_round_trip_keeps_tournament():
    session = _session(mode="VERSUS", wod_duration=15)
    session.schedule_athletes(make_athletes(4), "10:00")
    await session.process_results(athlete1_wins(session.matches)[:1], None)

    snapshot = session.to_snapshot()
    restored = CompetitionSession.from_snapshot(snapshot)

    assert restored.to_snapshot() == snapshot
    assert snapshot["bracket"]["total_stages"] == 2
    assert restored.matches[0].completed
    assert not restored.matches[1].completed
    assert restored.tournament.get_current_stage().status == "in-progress"

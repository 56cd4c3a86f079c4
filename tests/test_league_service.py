import pytest
from sqlalchemy.exc import OperationalError

from config import DEFAULT_POINTS
from conftest import make_result, make_roster
from lightsout import db
from lightsout.exceptions import DataIntegrityWarning, TransientStoreError, ValidationError
from lightsout.models import EventResult, LeaderboardEntry, ScoringProfile, UserPicks
from lightsout.models.leaderboard_entry import UNRANKED
from lightsout.services.league_service import LeagueRecalculator, build_leaderboard
from lightsout.services.result_service import record_result
from lightsout.utils.scoring import ScoringRuleSet


@pytest.fixture()
def manual_only(league, ctx):
    """Result writes no longer rebuild the league on their own"""
    ctx.config["AUTO_RECOMPUTE_ON_RESULTS"] = False
    return league


class BrokenCommitSession:
    """Session stand-in whose commit always fails"""

    def __init__(self, session):
        self._session = session

    def __getattr__(self, name):
        return getattr(self._session, name)

    def commit(self):
        raise OperationalError("UPDATE leaderboard_entries", {}, Exception("disk I/O error"))


def _board():
    return {
        entry.user_id: (entry.rank, entry.total_points, entry.breakdown())
        for entry in LeaderboardEntry.query.all()
    }


def _save_picks(user, event_id="bahrain", **overrides):
    UserPicks.save_roster(user.id, event_id, make_roster(**overrides))
    db.session.commit()


class TestBuildLeaderboard:
    def test_ranks_by_total_then_user_id(self):
        rules = ScoringRuleSet.from_dict(DEFAULT_POINTS)
        roster = {"a_drivers": ["norris"]}
        results = {"bahrain": make_result(driver_teams={})}
        aggregates = build_leaderboard(
            {3: {"bahrain": roster}, 1: {"bahrain": roster}, 2: {}},
            results,
            rules,
            {},
            {1: "Alpha", 2: "Bravo", 3: "Charlie"},
        )
        assert [(a["user_id"], a["rank"]) for a in aggregates] == [(1, 1), (3, 2), (2, 3)]
        assert aggregates[0]["total_points"] == aggregates[1]["total_points"] == 27

    def test_missing_display_name_falls_back(self):
        aggregates = build_leaderboard({7: {}}, {}, ScoringRuleSet(), {}, {})
        assert aggregates[0]["display_name"] == "Team 7"
        assert aggregates[0]["total_points"] == 0

    def test_events_without_a_result_are_skipped(self):
        rules = ScoringRuleSet.from_dict(DEFAULT_POINTS)
        aggregates = build_leaderboard(
            {1: {"monaco": {"a_drivers": ["norris"]}}},
            {"bahrain": make_result()},
            rules,
            {},
            {1: "Alpha"},
        )
        assert aggregates[0]["total_points"] == 0


class TestRecalculate:
    def test_aborts_without_results(self, manual_only):
        _save_picks(manual_only.alice)
        assert LeagueRecalculator().recalculate() == 0
        assert all(rank == UNRANKED for rank, _, _ in _board().values())

    def test_every_user_is_processed(self, manual_only):
        _save_picks(manual_only.alice)
        record_result("bahrain", make_result())

        assert LeagueRecalculator().recalculate() == 4
        board = _board()
        assert board[manual_only.alice.id][0] == 1
        # carol never submitted picks
        assert board[manual_only.carol.id][1] == 0

    def test_scores_roster_against_result(self, manual_only):
        _save_picks(manual_only.alice)
        record_result("bahrain", make_result())
        LeagueRecalculator().recalculate()

        entry = db.session.get(LeaderboardEntry, manual_only.alice.id)
        # race: norris 25*2, verstappen 18, leclerc 15*2, piastri 12, hamilton 10
        assert entry.race_points == 50 + 18 + 30 + 12 + 10
        # qualifying: verstappen 3, norris 2*2, leclerc 1*2
        assert entry.qualifying_points == 3 + 4 + 2
        assert entry.fastest_lap_points == 3
        assert entry.total_points == 120 + 9 + 3
        assert entry.last_place_count == 0

    def test_is_idempotent(self, manual_only):
        _save_picks(manual_only.alice)
        _save_picks(manual_only.bob, a_teams=["redbull", "ferrari"])
        record_result("bahrain", make_result())

        LeagueRecalculator().recalculate()
        first = _board()
        LeagueRecalculator().recalculate()
        assert _board() == first

    def test_ties_break_by_user_id(self, manual_only):
        _save_picks(manual_only.bob)
        _save_picks(manual_only.alice)
        record_result("bahrain", make_result())
        LeagueRecalculator().recalculate()

        board = _board()
        assert board[manual_only.alice.id][1] == board[manual_only.bob.id][1]
        assert board[manual_only.alice.id][0] == 1
        assert board[manual_only.bob.id][0] == 2

    def test_penalty_reduces_total(self, manual_only):
        _save_picks(manual_only.alice)
        UserPicks.set_penalty(manual_only.alice.id, "bahrain", 0.5, "late submission")
        db.session.commit()
        record_result("bahrain", make_result())
        LeagueRecalculator().recalculate()

        entry = db.session.get(LeaderboardEntry, manual_only.alice.id)
        assert entry.penalty_points == 66
        assert entry.total_points == 132 - 66


class TestSnapshots:
    def test_result_keeps_rule_set_it_was_saved_with(self, manual_only):
        _save_picks(manual_only.alice)
        record_result("bahrain", make_result())

        doubled = {k: v for k, v in DEFAULT_POINTS.items()}
        doubled["race"] = [p * 2 for p in DEFAULT_POINTS["race"]]
        ScoringProfile.create_profile("Doubled", config=doubled)
        db.session.commit()
        ScoringProfile.get_or_404("doubled").activate()

        LeagueRecalculator().recalculate()
        assert db.session.get(LeaderboardEntry, manual_only.alice.id).race_points == 120

    def test_legacy_result_uses_active_rule_set(self, manual_only):
        _save_picks(manual_only.alice)
        db.session.add(EventResult(event_id="bahrain", **make_result()))
        db.session.commit()

        minimal = ScoringRuleSet(race=[1], fastest_lap=0)
        LeagueRecalculator().recalculate(active_rule_set=minimal)

        # norris is picked as team and as driver
        assert db.session.get(LeaderboardEntry, manual_only.alice.id).race_points == 2

    def test_resave_does_not_replace_snapshot(self, manual_only):
        record_result("bahrain", make_result())
        ScoringProfile.create_profile("Flat", config=dict(DEFAULT_POINTS, race=[1] * 10))
        db.session.commit()
        ScoringProfile.get_or_404("flat").activate()

        result, created = record_result("bahrain", make_result(fastest_lap="leclerc"))
        assert created is False
        assert result.fastest_lap == "leclerc"
        assert result.scoring_snapshot["race"] == DEFAULT_POINTS["race"]
        assert result.scoring_profile_id is None

    def test_new_result_requires_snapshot(self, manual_only):
        with pytest.raises(ValidationError):
            EventResult.save_result("bahrain", make_result())
        assert db.session.get(EventResult, "bahrain") is None

    def test_referenced_profile_cannot_be_edited(self, manual_only):
        profile = ScoringProfile.create_profile("Season 2025")
        db.session.commit()
        profile.activate()
        record_result("bahrain", make_result())

        with pytest.raises(ValidationError, match="referenced"):
            profile.update_config(DEFAULT_POINTS)


class TestFailureModes:
    def test_missing_driver_warns_and_still_scores(self, manual_only):
        _save_picks(manual_only.alice, a_drivers=["norris", "leclerc", "ghost"])
        record_result("bahrain", make_result(race=["ghost"], gp_qualifying=[]))

        with pytest.warns(DataIntegrityWarning, match="ghost"):
            LeagueRecalculator().recalculate()
        assert db.session.get(LeaderboardEntry, manual_only.alice.id).race_points == 25

    def test_failed_commit_keeps_previous_leaderboard(self, manual_only):
        _save_picks(manual_only.alice)
        record_result("bahrain", make_result())
        LeagueRecalculator().recalculate()
        before = _board()

        _save_picks(manual_only.bob)
        record_result("monaco", make_result(race=["leclerc"]))

        with pytest.raises(TransientStoreError):
            LeagueRecalculator(session=BrokenCommitSession(db.session)).recalculate()

        assert _board() == before

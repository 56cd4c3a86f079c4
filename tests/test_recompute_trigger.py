from datetime import datetime, timezone

import pytest

from conftest import make_result, make_roster
from lightsout import db
from lightsout.exceptions import (
    PermissionDeniedError,
    RateLimitError,
    RecomputeFailedError,
    TransientStoreError,
)
from lightsout.models import (
    AdminAction,
    EventResult,
    LeaderboardEntry,
    RateLimitCounter,
    UserPicks,
)
from lightsout.models.leaderboard_entry import UNRANKED
from lightsout.services.league_service import LeagueRecalculator
from lightsout.services.recompute_trigger import trigger_manual_recompute
from lightsout.services.result_service import record_result
from lightsout.signals import leaderboard_replaced

NOW = datetime(2025, 5, 25, 15, 0, tzinfo=timezone.utc)


@pytest.fixture()
def with_picks(league):
    UserPicks.save_roster(league.alice.id, "bahrain", make_roster())
    db.session.commit()
    return league


class TestAutomaticTrigger:
    def test_result_write_rebuilds_leaderboard(self, with_picks):
        record_result("bahrain", make_result(), admin_user=with_picks.admin)

        entry = db.session.get(LeaderboardEntry, with_picks.alice.id)
        assert entry.rank == 1
        assert entry.total_points == 132

    def test_result_update_rebuilds_again(self, with_picks):
        record_result("bahrain", make_result())
        record_result("bahrain", make_result(fastest_lap="leclerc"))

        entry = db.session.get(LeaderboardEntry, with_picks.alice.id)
        assert entry.fastest_lap_points == 0
        assert entry.total_points == 129

    def test_failure_does_not_undo_result_write(self, with_picks, monkeypatch):
        def explode(self, active_rule_set=None):
            raise RuntimeError("boom")

        monkeypatch.setattr(LeagueRecalculator, "recalculate", explode)

        result, created = record_result("bahrain", make_result())
        assert created is True
        assert db.session.get(EventResult, "bahrain") is not None
        assert db.session.get(LeaderboardEntry, with_picks.alice.id).rank == UNRANKED

    def test_can_be_disabled(self, with_picks, ctx):
        ctx.config["AUTO_RECOMPUTE_ON_RESULTS"] = False
        record_result("bahrain", make_result())

        assert db.session.get(LeaderboardEntry, with_picks.alice.id).rank == UNRANKED

    def test_announces_replaced_leaderboard(self, with_picks):
        seen = []

        def listener(sender, users_processed):
            seen.append(users_processed)

        with leaderboard_replaced.connected_to(listener):
            record_result("bahrain", make_result())
        assert seen == [4]

    def test_audit_entry_written(self, with_picks):
        record_result("bahrain", make_result(), admin_user=with_picks.admin)

        (action,) = AdminAction.get_logs(event_id="bahrain")
        assert action.action_type == "create_result"
        assert "Entered GP Results" in action.action_description


class TestManualTrigger:
    def test_admin_recompute(self, with_picks, ctx):
        ctx.config["AUTO_RECOMPUTE_ON_RESULTS"] = False
        record_result("bahrain", make_result())

        response = trigger_manual_recompute(with_picks.admin.id, "10.0.0.1", now=NOW)

        assert response == {"success": True, "usersProcessed": 4}
        assert db.session.get(LeaderboardEntry, with_picks.alice.id).rank == 1
        assert AdminAction.query.filter_by(action_type="manual_recompute").count() == 1

    def test_non_admin_is_refused_without_side_effects(self, with_picks):
        with pytest.raises(PermissionDeniedError):
            trigger_manual_recompute(with_picks.bob.id, "10.0.0.1", now=NOW)

        assert RateLimitCounter.query.count() == 0
        assert AdminAction.query.count() == 0

    def test_unknown_caller_is_refused(self, with_picks):
        with pytest.raises(PermissionDeniedError):
            trigger_manual_recompute(9999, "10.0.0.1", now=NOW)
        with pytest.raises(PermissionDeniedError):
            trigger_manual_recompute(None, "10.0.0.1", now=NOW)

    def test_sixth_run_in_window_is_rate_limited(self, with_picks):
        for _ in range(5):
            trigger_manual_recompute(with_picks.admin.id, "10.0.0.1", now=NOW)

        with pytest.raises(RateLimitError) as excinfo:
            trigger_manual_recompute(with_picks.admin.id, "10.0.0.1", now=NOW)
        assert excinfo.value.retry_after == 300

    def test_no_results_processes_nobody(self, with_picks):
        response = trigger_manual_recompute(with_picks.admin.id, "10.0.0.1", now=NOW)
        assert response == {"success": True, "usersProcessed": 0}

    def test_internal_failure_is_wrapped(self, with_picks, monkeypatch):
        def explode(self, active_rule_set=None):
            raise RuntimeError("boom")

        monkeypatch.setattr(LeagueRecalculator, "recalculate", explode)

        with pytest.raises(RecomputeFailedError) as excinfo:
            trigger_manual_recompute(with_picks.admin.id, "10.0.0.1", now=NOW)
        assert excinfo.value.to_dict() == {
            "error": "internal",
            "message": "Recalculation failed on server",
        }

    def test_store_failure_keeps_retryable_code(self, with_picks, monkeypatch):
        def unavailable(self, active_rule_set=None):
            raise TransientStoreError()

        monkeypatch.setattr(LeagueRecalculator, "recalculate", unavailable)

        with pytest.raises(TransientStoreError) as excinfo:
            trigger_manual_recompute(with_picks.admin.id, "10.0.0.1", now=NOW)
        assert excinfo.value.to_dict()["error"] == "unavailable"
        assert excinfo.value.status_code == 503
        assert AdminAction.query.filter_by(action_type="manual_recompute").count() == 0

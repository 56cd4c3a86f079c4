"""
League recomputation service

Rebuilds every user's leaderboard aggregate from scratch: all rosters are
scored against all saved results and the whole rank table is replaced in a
single transaction. Runs are idempotent; two runs over the same stored data
write identical aggregates.
"""

import logging
import warnings
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from lightsout import db
from lightsout.exceptions import DataIntegrityWarning, TransientStoreError
from lightsout.models import (
    Driver,
    EventResult,
    LeaderboardEntry,
    ScoringProfile,
    User,
    UserPicks,
)
from lightsout.signals import leaderboard_replaced
from lightsout.utils.cache_utils import invalidate_leaderboard_cache
from lightsout.utils.performance import PerformanceMonitor
from lightsout.utils.scoring import (
    SESSIONS,
    ScoringRuleSet,
    add_breakdowns,
    calculate_event_score,
    empty_breakdown,
)

logger = logging.getLogger(__name__)


def fallback_display_name(user_id):
    return f"Team {user_id}"


def find_unresolved_drivers(results, driver_teams):
    """Driver ids in results that neither the snapshot nor reference data place in a team"""
    missing = set()
    for result in results.values():
        snapshot = result.get("driver_teams") or {}
        for session, _category in SESSIONS:
            for driver_id in result.get(session) or []:
                if driver_id and not snapshot.get(driver_id) and driver_id not in driver_teams:
                    missing.add(driver_id)
    return missing


def score_user(user_picks, results, active_rule_set, driver_teams):
    """Sum one user's per-event breakdowns over every event that has a result"""
    totals = empty_breakdown()
    for event_id, roster in user_picks.items():
        result = results.get(event_id)
        if not result:
            continue
        snapshot = result.get("scoring_snapshot")
        rule_set = (
            ScoringRuleSet.from_dict(snapshot) if snapshot is not None else active_rule_set
        )
        add_breakdowns(
            totals, calculate_event_score(roster, result, rule_set, driver_teams)
        )
    return totals


def build_leaderboard(all_picks, results, active_rule_set, driver_teams, display_names):
    """
    Pure ranking pass over already-loaded league data.

    Args:
        all_picks: {user_id: {event_id: roster}}
        results: {event_id: result dict}
        active_rule_set: rule set for results saved without a snapshot
        driver_teams: current {driver_id: constructor_id} reference map
        display_names: {user_id: display name}

    Returns:
        List of aggregates sorted by total descending (ties by user id),
        each with user_id, display_name, total_points, breakdown and rank.
    """
    user_ids = set(all_picks) | set(display_names)

    aggregates = []
    for user_id in user_ids:
        breakdown = score_user(
            all_picks.get(user_id) or {}, results, active_rule_set, driver_teams
        )
        aggregates.append(
            {
                "user_id": user_id,
                "display_name": display_names.get(user_id)
                or fallback_display_name(user_id),
                "total_points": breakdown["total"],
                "breakdown": breakdown,
            }
        )

    aggregates.sort(key=lambda a: (-a["total_points"], a["user_id"]))
    for position, aggregate in enumerate(aggregates):
        aggregate["rank"] = position + 1
    return aggregates


class LeagueRecalculator:
    """Full-league rebuild of the leaderboard"""

    def __init__(self, session=None):
        self.session = session or db.session
        self.last_run = None

    def load_inputs(self, active_rule_set=None):
        """Read everything a run needs; returns None when no result exists"""
        results = EventResult.get_all_by_event()
        if not results:
            return None

        if active_rule_set is None:
            active_rule_set = ScoringProfile.get_active_rule_set()

        all_picks = {record.user_id: dict(record.picks or {}) for record in UserPicks.query.all()}
        display_names = {user.id: user.display_name for user in User.query.all()}

        return {
            "results": results,
            "all_picks": all_picks,
            "active_rule_set": active_rule_set,
            "driver_teams": Driver.get_team_map(),
            "display_names": display_names,
        }

    def recalculate(self, active_rule_set=None):
        """
        Rebuild and atomically replace the leaderboard.

        Args:
            active_rule_set: rule set for results without a snapshot; the
                active scoring profile (or default table) when omitted

        Returns:
            Number of users processed (0 when aborted for lack of results).

        Raises:
            TransientStoreError: the replacement could not be committed; the
                previous leaderboard is untouched and the run may be retried.
        """
        logger.info("Starting league recalculation")

        with PerformanceMonitor("league_recalculation"):
            inputs = self.load_inputs(active_rule_set)
            if inputs is None:
                logger.warning("Recalculation aborted: no race results found")
                return 0

            missing = find_unresolved_drivers(inputs["results"], inputs["driver_teams"])
            if missing:
                message = (
                    f"Drivers without a constructor: {', '.join(sorted(missing))}. "
                    "They score through driver picks only."
                )
                logger.warning(message)
                warnings.warn(message, DataIntegrityWarning, stacklevel=2)

            aggregates = build_leaderboard(
                inputs["all_picks"],
                inputs["results"],
                inputs["active_rule_set"],
                inputs["driver_teams"],
                inputs["display_names"],
            )

            self.replace_leaderboard(aggregates)

        self.last_run = {
            "finished_at": datetime.now(timezone.utc),
            "users_processed": len(aggregates),
        }
        logger.info(f"League recalculation complete. Processed {len(aggregates)} users.")
        leaderboard_replaced.send(self, users_processed=len(aggregates))
        return len(aggregates)

    def replace_leaderboard(self, aggregates):
        """Write every aggregate in one transaction; all or nothing"""
        now = datetime.now(timezone.utc)
        try:
            existing = {entry.user_id: entry for entry in LeaderboardEntry.query.all()}
            for aggregate in aggregates:
                entry = existing.get(aggregate["user_id"])
                if entry is None:
                    entry = LeaderboardEntry(user_id=aggregate["user_id"])
                    self.session.add(entry)
                entry.replace_with(aggregate, now=now)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Leaderboard commit failed, previous leaderboard kept: {e}")
            raise TransientStoreError(
                "Leaderboard update failed; previous leaderboard kept"
            ) from e

        invalidate_leaderboard_cache()


def recalculate_entire_league(active_rule_set=None):
    """Run a full rebuild with a fresh recalculator"""
    return LeagueRecalculator().recalculate(active_rule_set=active_rule_set)

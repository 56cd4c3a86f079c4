"""
Recompute triggers

Two ways a league rebuild starts:
- automatically, whenever an event result is created or updated
- manually, by an admin, rate limited per caller origin
"""

import logging

from lightsout import db
from lightsout.exceptions import (
    LeagueError,
    PermissionDeniedError,
    RecomputeFailedError,
    TransientStoreError,
)
from lightsout.models import AdminAction, User
from lightsout.services.league_service import LeagueRecalculator
from lightsout.services.rate_limiter import check_rate_limit
from lightsout.signals import result_written

logger = logging.getLogger(__name__)


def on_result_written(app, event_id=None, created=False, **extra):
    """Rebuild the league after a committed result write"""
    if not app.config.get("AUTO_RECOMPUTE_ON_RESULTS", True):
        return None

    logger.info(
        f"Result for {event_id} {'created' if created else 'updated'}, "
        "recalculating league"
    )
    try:
        return LeagueRecalculator().recalculate()
    except Exception:
        # The result itself is already committed; the next write or a manual
        # recompute brings the leaderboard back in line
        logger.exception(f"Automatic recompute after {event_id} failed")
        return None


def init_triggers(app):
    """Subscribe the automatic recompute to result writes for this app"""
    result_written.connect(on_result_written, sender=app, weak=False)
    logger.debug(
        "Automatic recompute %s",
        "enabled" if app.config.get("AUTO_RECOMPUTE_ON_RESULTS", True) else "disabled",
    )


def trigger_manual_recompute(caller_id, origin, now=None, rule_set=None):
    """
    Admin-initiated league rebuild.

    Args:
        caller_id: id of the authenticated caller
        origin: client address the rate limit is keyed on
        now: clock override for the rate limiter
        rule_set: rule set for results without a snapshot

    Returns:
        {"success": True, "usersProcessed": n}

    Raises:
        PermissionDeniedError: caller is not a stored admin; nothing is recorded
        RateLimitError: more than the allowed manual runs in the window
        TransientStoreError: the leaderboard commit failed; safe to retry
        RecomputeFailedError: the rebuild itself failed
    """
    caller = db.session.get(User, caller_id) if caller_id is not None else None
    if caller is None or not caller.is_admin:
        logger.warning(f"Manual recompute refused for non-admin caller {caller_id}")
        raise PermissionDeniedError("Only admins can perform this operation")

    check_rate_limit("manual_sync", origin, now=now)

    logger.info(f"Manual recompute requested by {caller.username} from {origin}")
    try:
        users_processed = LeagueRecalculator().recalculate(active_rule_set=rule_set)
    except TransientStoreError as e:
        logger.error(f"Manual recompute not committed: {e.message}")
        raise
    except LeagueError as e:
        logger.error(f"Manual recompute failed: {e.message}")
        raise RecomputeFailedError("Recalculation failed on server") from e
    except Exception as e:
        logger.exception("Manual recompute failed")
        raise RecomputeFailedError("Recalculation failed on server") from e

    AdminAction.log_action(
        caller,
        "manual_recompute",
        f"Manual league recompute ({users_processed} users)",
        action_metadata={"users_processed": users_processed, "origin": origin},
    )
    db.session.commit()

    return {"success": True, "usersProcessed": users_processed}

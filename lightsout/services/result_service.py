"""
Result entry

Wraps EventResult.save_result with the snapshot a first save must embed:
the rule set in effect and the current driver -> constructor map.
"""

import logging

from lightsout.models import Driver, EventResult, ScoringProfile

logger = logging.getLogger(__name__)


def build_result_snapshot():
    """Snapshot of the scoring context as of now"""
    profile = ScoringProfile.get_active()
    rule_set = profile.rule_set if profile else ScoringProfile.get_active_rule_set()
    return {
        "scoring_snapshot": rule_set.to_dict(),
        "scoring_profile_id": profile.id if profile else None,
        "driver_teams": Driver.get_team_map(),
    }


def record_result(event_id, data, admin_user=None):
    """Save an event result, freezing today's scoring context on first save"""
    snapshot = build_result_snapshot()
    result, created = EventResult.save_result(
        event_id,
        data,
        scoring_snapshot=snapshot["scoring_snapshot"],
        driver_teams=snapshot["driver_teams"],
        scoring_profile_id=snapshot["scoring_profile_id"],
        admin_user=admin_user,
    )
    if not created and result.scoring_profile_id != snapshot["scoring_profile_id"]:
        logger.info(
            f"Result {event_id} keeps its original scoring snapshot "
            f"({result.scoring_profile_id or 'default table'})"
        )
    return result, created

import logging
from functools import wraps

from flask import jsonify, request
from flask_login import current_user, login_required

from lightsout import db, get_real_ip, limiter
from lightsout.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from lightsout.models import (
    AdminAction,
    Constructor,
    Driver,
    EventResult,
    InvitationCode,
    LeaderboardEntry,
    User,
    UserPicks,
)
from lightsout.routes.api import bp
from lightsout.services.rate_limiter import check_rate_limit
from lightsout.services.recompute_trigger import trigger_manual_recompute
from lightsout.services.result_service import record_result
from lightsout.utils.cache_utils import (
    LEADERBOARD_PREFIX,
    cached_route,
    invalidate_leaderboard_cache,
)

logger = logging.getLogger(__name__)


def admin_required(f):
    """Reject non-admin callers with permission-denied"""

    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            raise PermissionDeniedError("Only admins can perform this operation")
        return f(*args, **kwargs)

    return decorated_function


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _int_arg(name, default=None):
    value = request.args.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"'{name}' must be an integer")


# Results


@bp.route("/results/<event_id>", methods=["PUT"])
@admin_required
def save_result(event_id):
    """Create or update an event result; a commit triggers the league rebuild"""
    result, created = record_result(event_id, _json_body(), admin_user=current_user)
    return jsonify(result.to_dict()), 201 if created else 200


@bp.route("/results/<event_id>")
@login_required
def get_result(event_id):
    result = db.session.get(EventResult, event_id)
    if result is None:
        raise NotFoundError(f"No result for event '{event_id}'")
    return jsonify(result.to_dict())


# Picks


@bp.route("/picks/<event_id>", methods=["PUT"])
@login_required
def save_picks(event_id):
    """Submit the caller's roster for one event"""
    roster = UserPicks.save_roster(
        current_user.id,
        event_id,
        _json_body(),
        driver_classes=Driver.get_class_map() or None,
        constructor_classes=Constructor.get_class_map() or None,
    )
    db.session.commit()
    logger.info(f"User {current_user.username} saved picks for {event_id}")
    return jsonify({"success": True, "event_id": event_id, "roster": roster})


@bp.route("/picks")
@login_required
def get_picks():
    return jsonify({"picks": UserPicks.get_for_user(current_user.id)})


@bp.route("/admin/picks/<int:user_id>/<event_id>/penalty", methods=["PUT"])
@admin_required
def set_penalty(user_id, event_id):
    """Apply a penalty fraction to one user's roster"""
    data = _json_body()
    penalty = data.get("penalty")
    reason = data.get("reason", "")

    roster = UserPicks.set_penalty(user_id, event_id, penalty, reason)
    AdminAction.log_penalty(current_user, user_id, event_id, roster["penalty"], reason)
    db.session.commit()

    logger.info(
        f"Admin {current_user.username} set {roster['penalty']} penalty on "
        f"user {user_id} for {event_id}"
    )
    return jsonify({"success": True, "roster": roster})


# League


@bp.route("/admin/recompute", methods=["POST"])
@login_required
def manual_recompute():
    """Admin-triggered full league rebuild (rate limited per origin)"""
    return jsonify(trigger_manual_recompute(current_user.id, get_real_ip()))


@bp.route("/leaderboard")
@cached_route(timeout=300, key_prefix=LEADERBOARD_PREFIX)
def leaderboard():
    """One page of the leaderboard, ordered by total points"""
    pagination = LeaderboardEntry.get_page(
        page=_int_arg("page", 1), per_page=_int_arg("per_page")
    )
    return {
        "entries": [entry.to_dict() for entry in pagination.items],
        "page": pagination.page,
        "per_page": pagination.per_page,
        "total": pagination.total,
        "pages": pagination.pages,
    }


@bp.route("/admin/actions")
@admin_required
def admin_actions():
    """Audit trail, optionally for one event"""
    logs = AdminAction.get_logs(event_id=request.args.get("event_id"))
    return jsonify({"actions": [log.to_dict() for log in logs]})


# Invitations and users


@bp.route("/invitations/validate", methods=["POST"])
@limiter.limit("20 per hour")
def validate_invitation():
    """Check an invitation code and reserve it for the signup in progress"""
    code = (_json_body().get("code") or "").strip().upper()
    if not code:
        raise ValidationError("Invitation code is required")

    check_rate_limit("validate_invitation", get_real_ip())
    InvitationCode.reserve(code)
    return jsonify({"valid": True})


@bp.route("/admin/users/<int:user_id>", methods=["DELETE"])
@admin_required
def purge_user(user_id):
    """Delete a user together with their rosters and leaderboard entry"""
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    if user.id == current_user.id:
        raise ValidationError("Admins cannot purge their own account")

    username = user.username
    AdminAction.log_action(
        current_user,
        "purge_user",
        f"Purged user {username}",
        target_user_id=user_id,
    )
    user.purge()
    db.session.commit()
    invalidate_leaderboard_cache()

    logger.info(f"Admin {current_user.username} purged user {username}")
    return jsonify({"success": True})

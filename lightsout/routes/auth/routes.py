import logging

from flask import jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from lightsout import db, limiter, login_manager
from lightsout.exceptions import (
    AuthenticationRequiredError,
    NotFoundError,
    ValidationError,
)
from lightsout.models import InvitationCode, User
from lightsout.models.invitation_code import STATUS_USED
from lightsout.routes.auth import bp
from lightsout.utils.cache_utils import invalidate_leaderboard_cache

logger = logging.getLogger(__name__)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    error = AuthenticationRequiredError("Login required")
    return jsonify(error.to_dict()), error.status_code


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    """Token for the X-CSRFToken header on state-changing requests"""
    return jsonify({"csrf_token": generate_csrf()})


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    data = _json_body()
    user = User.query.filter_by(username=data.get("username") or "").first()

    if user is None or not user.check_password(data.get("password") or ""):
        raise AuthenticationRequiredError("Invalid username or password")
    if not user.is_active:
        raise AuthenticationRequiredError(
            "Your account has been deactivated. Please contact the league admin."
        )

    login_user(user, remember=bool(data.get("remember_me")))
    logger.info(f"User {user.username} logged in")
    return jsonify({"success": True, "user": user.to_dict()})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


@bp.route("/signup", methods=["POST"])
@limiter.limit("5 per hour")
def signup():
    """Create an account with a previously validated invitation code"""
    data = _json_body()
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    code = (data.get("invitation_code") or "").strip().upper()

    if not username or not email or len(password) < 8:
        raise ValidationError(
            "Username, email and a password of at least 8 characters are required"
        )
    if User.query.filter(
        (User.username == username) | (User.email == email)
    ).first():
        raise ValidationError("Username or email already registered")

    invitation = InvitationCode.query.filter_by(code=code).with_for_update().first()
    if invitation is None:
        raise NotFoundError("Invalid code")
    if invitation.status == STATUS_USED:
        raise ValidationError("Code used")

    user = User.create_user(
        username, email, display_name=data.get("display_name"), password=password
    )
    invitation.mark_used(user)
    db.session.commit()
    invalidate_leaderboard_cache()

    login_user(user)
    logger.info(f"New user {username} signed up with code {code}")
    return jsonify({"success": True, "user": user.to_dict()}), 201


@bp.route("/profile", methods=["PUT"])
@login_required
def update_profile():
    """Change the caller's display name"""
    display_name = (_json_body().get("display_name") or "").strip()
    if not display_name or len(display_name) > 100:
        raise ValidationError("Display name must be 1-100 characters")

    current_user.set_display_name(display_name)
    db.session.commit()
    invalidate_leaderboard_cache()
    return jsonify({"success": True, "user": current_user.to_dict()})

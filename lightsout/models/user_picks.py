from datetime import datetime, timezone

from lightsout import db
from lightsout.exceptions import NotFoundError
from lightsout.utils.validation import validate_penalty, validate_roster


class UserPicks(db.Model):
    """All of one user's rosters, keyed by event id"""

    __tablename__ = "user_picks"

    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )

    # {event_id: roster}
    picks = db.Column(db.JSON, nullable=False, default=dict)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<UserPicks user_id={self.user_id} events={len(self.picks or {})}>"

    @staticmethod
    def get_for_user(user_id):
        """Get {event_id: roster} for a user (empty if none submitted)"""
        record = UserPicks.query.get(user_id)
        return dict(record.picks or {}) if record else {}

    @staticmethod
    def save_roster(user_id, event_id, data, driver_classes=None, constructor_classes=None):
        """
        Validate and merge one event's roster into the user's record.

        Other events in the same record are left untouched. An existing
        penalty is kept: only admins set penalties (see set_penalty).
        """
        roster = validate_roster(
            data,
            require_complete=True,
            driver_classes=driver_classes,
            constructor_classes=constructor_classes,
        )

        record = UserPicks.query.get(user_id)
        if record is None:
            record = UserPicks(user_id=user_id, picks={})
            db.session.add(record)

        existing = (record.picks or {}).get(event_id) or {}
        roster["penalty"] = existing.get("penalty", 0)
        roster["penalty_reason"] = existing.get("penalty_reason", "")

        # Reassign so SQLAlchemy sees the JSON change
        merged = dict(record.picks or {})
        merged[event_id] = roster
        record.picks = merged
        return roster

    @staticmethod
    def set_penalty(user_id, event_id, penalty, reason=""):
        """Set the penalty fraction on an existing roster"""
        penalty, reason = validate_penalty(penalty, reason)

        record = UserPicks.query.get(user_id)
        if record is None or event_id not in (record.picks or {}):
            raise NotFoundError(f"No picks for user {user_id} at event '{event_id}'")

        merged = dict(record.picks)
        roster = dict(merged[event_id])
        roster["penalty"] = penalty
        roster["penalty_reason"] = reason
        merged[event_id] = roster
        record.picks = merged
        return roster

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "picks": self.picks or {},
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

from datetime import datetime, timezone

from lightsout import db


class AdminAction(db.Model):
    __tablename__ = "admin_actions"

    id = db.Column(db.Integer, primary_key=True)

    # Action details
    admin_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    admin_name = db.Column(db.String(100))  # Kept when the admin is purged
    target_user_id = db.Column(db.Integer, nullable=True)  # User being acted upon
    event_id = db.Column(db.String(50), nullable=True)

    # Action type and details
    action_type = db.Column(
        db.String(50), nullable=False
    )  # 'create_result', 'update_result', 'set_penalty', 'manual_recompute', 'purge_user'
    action_description = db.Column(db.String(1000), nullable=False)

    # Additional context data (JSON)
    action_metadata = db.Column(db.JSON, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    admin_user = db.relationship("User", foreign_keys=[admin_user_id])

    # Indexes
    __table_args__ = (
        db.Index("idx_admin_action_admin", "admin_user_id"),
        db.Index("idx_admin_action_event", "event_id"),
        db.Index("idx_admin_action_type", "action_type"),
        db.Index("idx_admin_action_created", "created_at"),
    )

    def __repr__(self):
        return f"<AdminAction {self.action_type} by {self.admin_name or 'Unknown'}>"

    @staticmethod
    def log_action(
        admin_user,
        action_type,
        description,
        target_user_id=None,
        event_id=None,
        action_metadata=None,
    ):
        """Log an admin action (added to the current transaction)"""
        action = AdminAction(
            admin_user_id=admin_user.id if admin_user else None,
            admin_name=admin_user.full_name if admin_user else None,
            target_user_id=target_user_id,
            event_id=event_id,
            action_type=action_type,
            action_description=description,
            action_metadata=action_metadata or {},
        )

        db.session.add(action)
        return action

    @staticmethod
    def log_result_change(admin_user, event_id, created, changes):
        """Convenience method for logging result entry"""
        return AdminAction.log_action(
            admin_user,
            "create_result" if created else "update_result",
            changes,
            event_id=event_id,
        )

    @staticmethod
    def log_penalty(admin_user, target_user_id, event_id, penalty, reason):
        """Convenience method for logging a roster penalty"""
        return AdminAction.log_action(
            admin_user,
            "set_penalty",
            f"Set {penalty:.0%} penalty on user {target_user_id} for {event_id}: {reason or 'no reason given'}",
            target_user_id=target_user_id,
            event_id=event_id,
            action_metadata={"penalty": penalty, "reason": reason},
        )

    @staticmethod
    def get_logs(event_id=None):
        """Get audit entries, newest first, optionally for one event"""
        query = AdminAction.query
        if event_id:
            query = query.filter_by(event_id=event_id)
        return query.order_by(AdminAction.created_at.desc(), AdminAction.id.desc()).all()

    def to_dict(self):
        """Convert action to dictionary for API responses"""
        return {
            "id": self.id,
            "admin_name": self.admin_name,
            "target_user_id": self.target_user_id,
            "event_id": self.event_id,
            "action_type": self.action_type,
            "action_description": self.action_description,
            "action_metadata": self.action_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

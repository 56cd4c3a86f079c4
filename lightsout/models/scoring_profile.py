import logging
import re
from datetime import datetime, timezone

from flask import current_app

from lightsout import db
from lightsout.exceptions import NotFoundError, ValidationError
from lightsout.utils.scoring import ScoringRuleSet
from lightsout.utils.validation import validate_point_table

logger = logging.getLogger(__name__)


class ScoringProfile(db.Model):
    """Named point table; exactly one profile is active at a time"""

    __tablename__ = "scoring_profiles"

    id = db.Column(db.String(50), primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # Point table: race, sprint, gp_qualifying, sprint_qualifying, fastest_lap
    config = db.Column(db.JSON, nullable=False)

    # Status
    is_active = db.Column(db.Boolean, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (db.Index("idx_scoring_profile_active", "is_active"),)

    def __repr__(self):
        return f"<ScoringProfile {self.id}{' (active)' if self.is_active else ''}>"

    @property
    def rule_set(self):
        return ScoringRuleSet.from_dict(self.config)

    @staticmethod
    def get_active():
        """Get the currently active profile"""
        return ScoringProfile.query.filter_by(is_active=True).first()

    @staticmethod
    def get_active_rule_set():
        """Active profile's rule set, or the configured default table"""
        active = ScoringProfile.get_active()
        if active:
            return active.rule_set
        return ScoringRuleSet.from_dict(current_app.config["DEFAULT_POINTS"])

    @staticmethod
    def create_profile(name, config=None, profile_id=None):
        """Create a new (inactive) profile"""
        table = validate_point_table(
            config if config is not None else current_app.config["DEFAULT_POINTS"]
        )
        profile_id = profile_id or re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
        if not profile_id:
            raise ValidationError("Profile name must contain letters or digits")
        if ScoringProfile.query.get(profile_id):
            raise ValidationError(f"Scoring profile '{profile_id}' already exists")

        profile = ScoringProfile(id=profile_id, name=name, config=table)
        db.session.add(profile)
        return profile

    @staticmethod
    def get_or_404(profile_id):
        profile = ScoringProfile.query.get(profile_id)
        if not profile:
            raise NotFoundError(f"Scoring profile '{profile_id}' not found")
        return profile

    def activate(self):
        """Activate this profile (deactivates all others)"""
        ScoringProfile.query.update({"is_active": False})
        self.is_active = True
        db.session.commit()
        logger.info(f"Scoring profile '{self.id}' activated")

    @property
    def is_referenced(self):
        """True once any event result has frozen this profile in its snapshot"""
        from .event_result import EventResult

        return (
            EventResult.query.filter_by(scoring_profile_id=self.id).first() is not None
        )

    def update_config(self, config):
        """Edit the point table; refused once a result snapshot references it"""
        if self.is_referenced:
            raise ValidationError(
                f"Scoring profile '{self.id}' is referenced by a saved result "
                "and can no longer be edited"
            )
        self.config = validate_point_table(config)

    def to_dict(self):
        """Convert profile to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "config": self.config,
            "is_active": self.is_active,
        }

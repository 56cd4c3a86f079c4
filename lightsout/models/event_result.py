import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from lightsout import db
from lightsout.exceptions import ValidationError
from lightsout.signals import result_written
from lightsout.utils.scoring import ScoringRuleSet
from lightsout.utils.validation import (
    validate_driver_teams,
    validate_point_table,
    validate_result,
)

logger = logging.getLogger(__name__)

SESSION_LABELS = (
    ("race", "GP"),
    ("gp_qualifying", "GP Quali"),
    ("sprint", "Sprint"),
    ("sprint_qualifying", "Sprint Quali"),
)


class EventResult(db.Model):
    """Real-world outcome of one event, with its frozen scoring snapshot"""

    __tablename__ = "event_results"

    event_id = db.Column(db.String(50), primary_key=True)

    # Ordered finisher ids (nullable slots)
    race = db.Column(db.JSON, nullable=False, default=list)
    sprint = db.Column(db.JSON, nullable=False, default=list)
    gp_qualifying = db.Column(db.JSON, nullable=False, default=list)
    sprint_qualifying = db.Column(db.JSON, nullable=False, default=list)

    fastest_lap = db.Column(db.String(50))
    last_place_driver = db.Column(db.String(50))  # "P22"

    # Snapshot frozen at first save; NULL for results saved before snapshots
    scoring_snapshot = db.Column(db.JSON, nullable=True)
    scoring_profile_id = db.Column(
        db.String(50), db.ForeignKey("scoring_profiles.id"), nullable=True
    )
    driver_teams = db.Column(db.JSON, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (db.Index("idx_event_result_profile", "scoring_profile_id"),)

    def __repr__(self):
        return f"<EventResult {self.event_id}{'' if self.has_snapshot else ' (no snapshot)'}>"

    @property
    def has_snapshot(self):
        return self.scoring_snapshot is not None

    @property
    def snapshot_rule_set(self):
        """Frozen rule set, or None for results saved before snapshots"""
        if self.scoring_snapshot is None:
            return None
        return ScoringRuleSet.from_dict(self.scoring_snapshot)

    @staticmethod
    def get_all_by_event():
        """Get {event_id: result dict} for every saved result"""
        return {r.event_id: r.to_dict() for r in EventResult.query.all()}

    @staticmethod
    def save_result(
        event_id,
        data,
        scoring_snapshot=None,
        driver_teams=None,
        scoring_profile_id=None,
        admin_user=None,
    ):
        """
        Validate, persist and announce an event result.

        The caller embeds the snapshot (rule set in effect plus the
        driver -> constructor map). It is mandatory on first save and kept
        unchanged on later saves, so re-entering results never rescores an
        event under a different rule set.

        Returns:
            (EventResult, created)
        """
        payload = validate_result(data)
        if isinstance(scoring_snapshot, ScoringRuleSet):
            scoring_snapshot = scoring_snapshot.to_dict()
        if scoring_snapshot is not None:
            scoring_snapshot = validate_point_table(scoring_snapshot)
        if driver_teams is not None:
            driver_teams = validate_driver_teams(driver_teams)

        result = EventResult.query.get(event_id)
        created = result is None
        previous = result.to_dict() if result else {}

        if created:
            if scoring_snapshot is None or driver_teams is None:
                raise ValidationError(
                    "A new result must embed the scoring snapshot and driver teams"
                )
            result = EventResult(event_id=event_id)
            db.session.add(result)

        for field, value in payload.items():
            setattr(result, field, value)

        if result.scoring_snapshot is None and scoring_snapshot is not None:
            result.scoring_snapshot = scoring_snapshot
            result.scoring_profile_id = scoring_profile_id
        if result.driver_teams is None and driver_teams is not None:
            result.driver_teams = driver_teams

        changes = describe_changes(previous, payload)
        if admin_user is not None:
            from .admin_action import AdminAction

            AdminAction.log_result_change(admin_user, event_id, created, changes)

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error saving result for {event_id}: {e}")
            db.session.rollback()
            raise

        logger.info(
            f"Result for {event_id} {'created' if created else 'updated'}: {changes}"
        )
        result_written.send(
            current_app._get_current_object(), event_id=event_id, created=created
        )
        return result, created

    def to_dict(self):
        """Convert result to the dictionary shape the scoring engine reads"""
        return {
            "event_id": self.event_id,
            "race": list(self.race or []),
            "sprint": list(self.sprint or []),
            "gp_qualifying": list(self.gp_qualifying or []),
            "sprint_qualifying": list(self.sprint_qualifying or []),
            "fastest_lap": self.fastest_lap,
            "last_place_driver": self.last_place_driver,
            "driver_teams": dict(self.driver_teams) if self.driver_teams else None,
            "scoring_snapshot": self.scoring_snapshot,
            "scoring_profile_id": self.scoring_profile_id,
        }


def describe_changes(old, new):
    """Human readable summary of what a result save changed, for the audit log"""
    changes = []

    if old.get("fastest_lap") != new.get("fastest_lap"):
        changes.append(
            f"Fastest Lap: {old.get('fastest_lap') or '-'} -> {new.get('fastest_lap') or '-'}"
        )
    if old.get("last_place_driver") != new.get("last_place_driver"):
        changes.append(
            f"P22: {old.get('last_place_driver') or '-'} -> {new.get('last_place_driver') or '-'}"
        )

    for session, label in SESSION_LABELS:
        new_list = new.get(session) or []
        old_list = old.get(session) or []

        if not any(old_list) and any(new_list):
            changes.append(f"Entered {label} Results")
            continue

        diffs = []
        for index in range(max(len(old_list), len(new_list))):
            old_value = old_list[index] if index < len(old_list) else None
            new_value = new_list[index] if index < len(new_list) else None
            if old_value != new_value:
                diffs.append(f"P{index + 1}: {old_value or '-'}->{new_value or '-'}")
        if diffs:
            changes.append(f"{label}: {', '.join(diffs)}")

    if not changes:
        return "No visible changes (Save Triggered)"
    return "; ".join(changes)

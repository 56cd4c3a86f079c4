from datetime import datetime, timezone

from lightsout import db


class Driver(db.Model):
    __tablename__ = "drivers"

    id = db.Column(db.String(50), primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # Current team; results freeze this mapping in their snapshot
    constructor_id = db.Column(
        db.String(50), db.ForeignKey("constructors.id"), nullable=True
    )

    # Pick tier: "A" or "B"
    entity_class = db.Column(db.String(1), nullable=False, default="A")

    # Status
    is_active = db.Column(db.Boolean, default=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("idx_driver_constructor", "constructor_id"),
        db.Index("idx_driver_class", "entity_class"),
    )

    def __repr__(self):
        return f"<Driver {self.id} ({self.constructor_id})>"

    @staticmethod
    def get_team_map():
        """Get the current {driver_id: constructor_id} assignment"""
        return {
            d.id: d.constructor_id for d in Driver.query.all() if d.constructor_id
        }

    @staticmethod
    def get_class_map():
        """Get {driver_id: entity_class} for all drivers"""
        return {d.id: d.entity_class for d in Driver.query.all()}

    def to_dict(self):
        """Convert driver to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "constructor_id": self.constructor_id,
            "class": self.entity_class,
            "is_active": self.is_active,
        }

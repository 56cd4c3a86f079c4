from datetime import datetime, timezone

from lightsout import db


class Constructor(db.Model):
    __tablename__ = "constructors"

    # Stable string ids (e.g. "mclaren") shared with rosters and results
    id = db.Column(db.String(50), primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # Pick tier: "A" or "B"
    entity_class = db.Column(db.String(1), nullable=False, default="A")

    # Visual elements
    color = db.Column(db.String(7))  # Hex color

    # Status
    is_active = db.Column(db.Boolean, default=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    drivers = db.relationship("Driver", backref="constructor", lazy="dynamic")

    __table_args__ = (db.Index("idx_constructor_class", "entity_class"),)

    def __repr__(self):
        return f"<Constructor {self.id} ({self.entity_class})>"

    @staticmethod
    def get_class_map():
        """Get {constructor_id: entity_class} for all constructors"""
        return {c.id: c.entity_class for c in Constructor.query.all()}

    def to_dict(self):
        """Convert constructor to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "class": self.entity_class,
            "color": self.color,
            "is_active": self.is_active,
        }

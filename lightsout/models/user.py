import html
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from lightsout import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False, default="")

    # Profile information
    first_name = db.Column(db.String(50))
    last_name = db.Column(db.String(50))
    display_name = db.Column(db.String(100))

    # Account status
    is_active = db.Column(db.Boolean, default=True)
    is_admin = db.Column(db.Boolean, default=False)  # League admin privileges
    dues_paid = db.Column(db.Boolean, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship(
        "UserPicks",
        backref="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    leaderboard_entry = db.relationship(
        "LeaderboardEntry",
        backref="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<User {self.username}>"

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check password against hash"""
        return check_password_hash(self.password_hash, password)

    @property
    def full_name(self):
        """Return display name or username"""
        return self.display_name or self.username

    @staticmethod
    def create_user(username, email, display_name=None, password=None, is_admin=False):
        """Create a user together with its empty leaderboard entry"""
        from .leaderboard_entry import LeaderboardEntry

        user = User(username=username, email=email, is_admin=is_admin)
        user.set_display_name(display_name or username)
        if password:
            user.set_password(password)

        db.session.add(user)
        db.session.flush()  # Need the id for the leaderboard entry

        db.session.add(LeaderboardEntry.empty_for(user))
        return user

    def set_display_name(self, display_name):
        """Set display name with sanitization and sync the public entry"""
        if display_name:
            self.display_name = html.escape(display_name.strip())
        else:
            self.display_name = display_name

        # Cosmetic repair only - scores are never patched field by field
        if self.leaderboard_entry is not None and self.display_name:
            self.leaderboard_entry.display_name = self.display_name

    def purge(self):
        """Delete the user with their rosters and leaderboard entry"""
        db.session.delete(self)

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "full_name": self.full_name,
            "is_admin": bool(self.is_admin),
            "is_active": bool(self.is_active),
            "dues_paid": bool(self.dues_paid),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

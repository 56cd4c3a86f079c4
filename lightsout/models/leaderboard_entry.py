from datetime import datetime, timezone

from flask import current_app

from lightsout import db

UNRANKED = 999


class LeaderboardEntry(db.Model):
    """Public, derived per-user aggregate; rebuilt wholesale on every recompute"""

    __tablename__ = "leaderboard_entries"

    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    display_name = db.Column(db.String(100), nullable=False, default="New Team")

    # Aggregate score
    total_points = db.Column(db.Integer, nullable=False, default=0)
    rank = db.Column(db.Integer, nullable=False, default=UNRANKED)

    # Category breakdown
    race_points = db.Column(db.Integer, nullable=False, default=0)
    sprint_points = db.Column(db.Integer, nullable=False, default=0)
    qualifying_points = db.Column(db.Integer, nullable=False, default=0)
    fastest_lap_points = db.Column(db.Integer, nullable=False, default=0)
    penalty_points = db.Column(db.Integer, nullable=False, default=0)
    last_place_count = db.Column(db.Integer, nullable=False, default=0)  # analytics only

    last_updated = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("idx_leaderboard_total", "total_points"),
        db.Index("idx_leaderboard_rank", "rank"),
    )

    def __repr__(self):
        return f"<LeaderboardEntry user_id={self.user_id} rank={self.rank} total={self.total_points}>"

    @staticmethod
    def empty_for(user):
        """Blank entry created at signup"""
        return LeaderboardEntry(
            user_id=user.id,
            display_name=user.display_name or "New Team",
            total_points=0,
            rank=UNRANKED,
            race_points=0,
            sprint_points=0,
            qualifying_points=0,
            fastest_lap_points=0,
            penalty_points=0,
            last_place_count=0,
        )

    def replace_with(self, aggregate, now=None):
        """Overwrite every derived field from a recompute aggregate"""
        breakdown = aggregate["breakdown"]
        self.display_name = aggregate["display_name"]
        self.total_points = aggregate["total_points"]
        self.rank = aggregate["rank"]
        self.race_points = breakdown["race"]
        self.sprint_points = breakdown["sprint"]
        self.qualifying_points = breakdown["qualifying"]
        self.fastest_lap_points = breakdown["fastest_lap"]
        self.penalty_points = breakdown["penalty"]
        self.last_place_count = breakdown["last_place_count"]
        self.last_updated = now or datetime.now(timezone.utc)

    @staticmethod
    def get_page(page=1, per_page=None):
        """
        Get one page of the leaderboard, ordered by total descending.

        per_page defaults to LEADERBOARD_PAGE_SIZE and is capped at
        LEADERBOARD_MAX_PAGE_SIZE.
        """
        default_size = current_app.config.get("LEADERBOARD_PAGE_SIZE", 50)
        max_size = current_app.config.get("LEADERBOARD_MAX_PAGE_SIZE", 100)

        per_page = per_page or default_size
        per_page = max(1, min(int(per_page), max_size))
        page = max(1, int(page or 1))

        return LeaderboardEntry.query.order_by(
            LeaderboardEntry.total_points.desc(),
            LeaderboardEntry.rank.asc(),
            LeaderboardEntry.user_id.asc(),
        ).paginate(page=page, per_page=per_page, max_per_page=max_size, error_out=False)

    def breakdown(self):
        return {
            "race": self.race_points,
            "sprint": self.sprint_points,
            "qualifying": self.qualifying_points,
            "fastest_lap": self.fastest_lap_points,
            "penalty": self.penalty_points,
            "last_place_count": self.last_place_count,
        }

    def to_dict(self):
        """Convert entry to dictionary for API responses"""
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "total_points": self.total_points,
            "rank": self.rank,
            "breakdown": self.breakdown(),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

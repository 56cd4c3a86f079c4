from lightsout import db


class RateLimitCounter(db.Model):
    """Fixed-window attempt counter for one (operation, origin) pair"""

    __tablename__ = "rate_limit_counters"

    # "{operation}_{sanitized origin}"
    key = db.Column(db.String(200), primary_key=True)
    operation = db.Column(db.String(50), nullable=False)
    count = db.Column(db.Integer, nullable=False, default=0)
    reset_at = db.Column(db.DateTime(timezone=True), nullable=False)

    __table_args__ = (db.Index("idx_rate_limit_operation", "operation"),)

    def __repr__(self):
        return f"<RateLimitCounter {self.key} count={self.count}>"

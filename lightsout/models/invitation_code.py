import logging
import secrets
import string
from datetime import datetime, timezone

from lightsout import db
from lightsout.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_RESERVED = "reserved"
STATUS_USED = "used"


class InvitationCode(db.Model):
    __tablename__ = "invitation_codes"

    code = db.Column(db.String(20), primary_key=True)

    # active -> reserved (validated at signup) -> used (account created)
    status = db.Column(db.String(10), nullable=False, default=STATUS_ACTIVE)

    created_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    used_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    used_by_email = db.Column(db.String(120))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    reserved_at = db.Column(db.DateTime)
    used_at = db.Column(db.DateTime)

    __table_args__ = (db.Index("idx_invitation_status", "status"),)

    def __repr__(self):
        return f"<InvitationCode {self.code} ({self.status})>"

    @staticmethod
    def generate_code():
        """Generate a unique LOL-XXXX-XXXX code"""
        alphabet = string.ascii_uppercase + string.digits
        while True:
            code = "LOL-{}-{}".format(
                "".join(secrets.choice(alphabet) for _ in range(4)),
                "".join(secrets.choice(alphabet) for _ in range(4)),
            )
            if not InvitationCode.query.get(code):
                return code

    @staticmethod
    def create_code(created_by=None):
        invitation = InvitationCode(
            code=InvitationCode.generate_code(), created_by=created_by
        )
        db.session.add(invitation)
        return invitation

    @staticmethod
    def reserve(code):
        """
        Validate a code and reserve it for the caller in one transaction.

        Raises:
            NotFoundError: unknown code
            ValidationError: code already reserved or used
        """
        invitation = (
            InvitationCode.query.filter_by(code=code).with_for_update().first()
        )
        if invitation is None:
            db.session.rollback()
            raise NotFoundError("Invalid code")
        if invitation.status != STATUS_ACTIVE:
            db.session.rollback()
            raise ValidationError("Code used")

        invitation.status = STATUS_RESERVED
        invitation.reserved_at = datetime.now(timezone.utc)
        db.session.commit()
        logger.info(f"Invitation code {code} reserved")
        return invitation

    def mark_used(self, user):
        self.status = STATUS_USED
        self.used_by = user.id
        self.used_by_email = user.email
        self.used_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "code": self.code,
            "status": self.status,
            "used_by_email": self.used_by_email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "reserved_at": self.reserved_at.isoformat() if self.reserved_at else None,
            "used_at": self.used_at.isoformat() if self.used_at else None,
        }

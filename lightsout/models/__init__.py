from lightsout import db  # noqa: F401 - imported for model imports

from .admin_action import AdminAction
from .constructor import Constructor
from .driver import Driver
from .event_result import EventResult
from .invitation_code import InvitationCode
from .leaderboard_entry import LeaderboardEntry
from .rate_limit import RateLimitCounter
from .scoring_profile import ScoringProfile
from .user import User
from .user_picks import UserPicks

__all__ = [
    "User",
    "Driver",
    "Constructor",
    "ScoringProfile",
    "UserPicks",
    "EventResult",
    "LeaderboardEntry",
    "RateLimitCounter",
    "InvitationCode",
    "AdminAction",
]

"""Change notifications emitted by the model layer after committed writes"""

from blinker import Namespace

_signals = Namespace()

# Sent after an EventResult create/update commits.
# kwargs: event_id, created
result_written = _signals.signal("result-written")

# Sent after a league recompute commits a new leaderboard.
# kwargs: users_processed
leaderboard_replaced = _signals.signal("leaderboard-replaced")

from lightsout import create_app, db
from lightsout.models import (
    Driver,
    EventResult,
    LeaderboardEntry,
    ScoringProfile,
    User,
    UserPicks,
)

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Driver": Driver,
        "EventResult": EventResult,
        "LeaderboardEntry": LeaderboardEntry,
        "ScoringProfile": ScoringProfile,
        "UserPicks": UserPicks,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))

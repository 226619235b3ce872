# Eventlet monkey patching MUST be first before any other imports
import eventlet
eventlet.monkey_patch()

import os  # noqa: E402

from pickem import create_app, db, socketio  # noqa: E402
from pickem.models import Game, OddsHistory, Pick, Pool, PoolMember, Team, User  # noqa: E402

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Pool": Pool,
        "PoolMember": PoolMember,
        "Game": Game,
        "Pick": Pick,
        "Team": Team,
        "OddsHistory": OddsHistory,
    }


if __name__ == "__main__":
    socketio.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 5000)),
        debug=app.config.get("DEBUG", False),
    )

"""
Live score feed over Socket.IO

Clients connect to the /scores namespace and join rooms: one per game they
watch, plus a private room for their own picks when logged in.
"""

import logging

from flask import request
from flask_login import current_user
from flask_socketio import disconnect, emit, join_room, leave_room

from pickem import db, socketio
from pickem.models import Game, Pick

logger = logging.getLogger(__name__)

NAMESPACE = "/scores"

# sid -> {"user_id": ..., "rooms": set()}
clients = {}


def game_room(game_id):
    return f"game_{game_id}"


def picks_room(user_id):
    return f"user_picks_{user_id}"


def _send(event, payload, room):
    socketio.emit(event, payload, room=room, namespace=NAMESPACE)


def _join(room):
    """Add the calling client to room; False if unknown or already joined"""
    client = clients.get(request.sid)
    if client is None or room in client["rooms"]:
        return False
    client["rooms"].add(room)
    join_room(room)
    return True


@socketio.on("connect", namespace=NAMESPACE)
def on_connect():
    user_id = current_user.id if current_user.is_authenticated else None
    clients[request.sid] = {"user_id": user_id, "rooms": set()}
    logger.info(f"Socket {request.sid} connected (user: {user_id})")

    pending = Game.query.filter(Game.is_final.is_(False)).all()
    emit(
        "live_games_data",
        {"games": [g.to_dict() for g in pending if g.status() == "in_progress"]},
    )


@socketio.on("disconnect", namespace=NAMESPACE)
def on_disconnect():
    if clients.pop(request.sid, None) is not None:
        logger.info(f"Socket {request.sid} disconnected")


@socketio.on("subscribe_game", namespace=NAMESPACE)
def on_subscribe_game(data):
    game_id = (data or {}).get("game_id")
    if not game_id or not _join(game_room(game_id)):
        return

    game = db.session.get(Game, game_id)
    if game:
        emit("game_update", game.to_dict())


@socketio.on("unsubscribe_game", namespace=NAMESPACE)
def on_unsubscribe_game(data):
    game_id = (data or {}).get("game_id")
    client = clients.get(request.sid)
    if client is None or not game_id:
        return

    room = game_room(game_id)
    client["rooms"].discard(room)
    leave_room(room)


@socketio.on("subscribe_user_picks", namespace=NAMESPACE)
def on_subscribe_user_picks(data=None):
    # Pick rooms are private; anonymous sockets are dropped
    if not current_user.is_authenticated:
        disconnect()
        return
    _join(picks_room(current_user.id))


def broadcast_score_update(game):
    _send("score_update", game.to_dict(), game_room(game.id))


def broadcast_game_final(game):
    """Send the final to game watchers and each settled pick to its owner"""
    _send("game_final", game.to_dict(), game_room(game.id))

    picks = Pick.query.filter_by(game_id=game.id).all()
    for pick in picks:
        _send(
            "pick_result",
            {
                "pick_id": pick.id,
                "game_id": pick.game_id,
                "is_correct": pick.is_correct,
                "points": pick.points,
            },
            picks_room(pick.user_id),
        )
    logger.info(f"Game {game.id} final sent, {len(picks)} picks settled")


def broadcast_pick_update(pick, action="saved", user_id=None, game_id=None):
    """Tell the owner a pick was saved or removed"""
    if pick is None:
        payload = {"user_id": user_id, "game_id": game_id}
    else:
        payload = pick.to_dict()
        user_id = pick.user_id
    payload["action"] = action
    _send("pick_update", payload, picks_room(user_id))


def get_connection_stats():
    return {
        "total_connections": len(clients),
        "authenticated_users": sum(1 for c in clients.values() if c["user_id"]),
        "total_subscriptions": sum(len(c["rooms"]) for c in clients.values()),
    }

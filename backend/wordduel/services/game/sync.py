"""Server side of the per-lobby event stream.

Two event kinds go to the lobby room: ``move_inserted`` (one move, carrying
its per-session ``seq``) and ``state_changed`` (full session snapshot). A
mutation that inserts a move always emits ``move_inserted`` first.
"""

from wordduel import socketio
from wordduel.protocol import (
    NAMESPACE, EVENT_STATE_CHANGED, EVENT_MOVE_INSERTED, EVENT_SNAPSHOT,
    EVENT_PRESENCE, room_for,
)

__all__ = [
    'NAMESPACE', 'EVENT_STATE_CHANGED', 'EVENT_MOVE_INSERTED', 'EVENT_SNAPSHOT',
    'EVENT_PRESENCE', 'room_for', 'catchup_payload', 'publish_state',
    'publish_move', 'publish_presence',
]


def catchup_payload(session) -> dict:
    """Snapshot plus the full ordered move log, for joining/reconnecting observers."""
    return {
        'lobby_id': session.lobby_id,
        'session': session.to_dict(),
        'moves': [m.to_dict() for m in session.moves],
    }


def publish_state(session) -> None:
    socketio.emit(
        EVENT_STATE_CHANGED,
        {'lobby_id': session.lobby_id, 'session': session.to_dict()},
        to=room_for(session.lobby_id),
        namespace=NAMESPACE,
    )


def publish_move(session, move) -> None:
    socketio.emit(
        EVENT_MOVE_INSERTED,
        {'lobby_id': session.lobby_id, 'move': move.to_dict()},
        to=room_for(session.lobby_id),
        namespace=NAMESPACE,
    )


def publish_presence(lobby_id: str, online_player_ids) -> None:
    socketio.emit(
        EVENT_PRESENCE,
        {'lobby_id': lobby_id, 'online': sorted(online_player_ids, key=str)},
        to=room_for(lobby_id),
        namespace=NAMESPACE,
    )

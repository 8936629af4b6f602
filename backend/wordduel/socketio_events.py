from flask import current_app, request
from flask_socketio import join_room, leave_room, emit
from typing import Dict, Any

from wordduel.services.game.engine import get_engine
from wordduel.services.game.errors import SessionNotFound
from wordduel.services.game.scheduler import schedule_clock
from wordduel import protocol
from wordduel.models import SESSION_ACTIVE
from wordduel.services.game import sync


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # A dropped connection only affects presence; the session and its
    # clocks keep running server-side
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    lobby_id = ctx.get('lobby_id')
    player_id = ctx.get('player_id')
    if lobby_id and player_id is not None:
        _mark_offline(lobby_id, player_id)
        current_app.logger.info(f"[presence] lobby={lobby_id} player={player_id} disconnected")
        sync.publish_presence(lobby_id, _online_players(lobby_id))


def handle_join_session(data):
    lobby_id = (data or {}).get('lobby_id')
    player_id = (data or {}).get('player_id')
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    lobby_id = str(lobby_id)
    room = sync.room_for(lobby_id)
    join_room(room)
    previous = _sid_to_ctx.get(_get_sid())
    if previous and previous.get('player_id') is not None:
        _mark_offline(previous['lobby_id'], previous['player_id'])
    _sid_to_ctx[_get_sid()] = {'lobby_id': lobby_id, 'player_id': player_id}
    if player_id is not None:
        _online.setdefault(lobby_id, {})
        _online[lobby_id][player_id] = _online[lobby_id].get(player_id, 0) + 1
    emit('joined', {'room': room})
    _emit_catchup(lobby_id)
    sync.publish_presence(lobby_id, _online_players(lobby_id))


def handle_leave_session(data):
    lobby_id = (data or {}).get('lobby_id')
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    lobby_id = str(lobby_id)
    room = sync.room_for(lobby_id)
    leave_room(room)
    emit('left', {'room': room})
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx and ctx.get('lobby_id') == lobby_id and ctx.get('player_id') is not None:
        _mark_offline(lobby_id, ctx['player_id'])
        sync.publish_presence(lobby_id, _online_players(lobby_id))


def handle_request_sync(data):
    lobby_id = (data or {}).get('lobby_id')
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    _emit_catchup(str(lobby_id))


def handle_ping(data):
    emit('pong', data or {})

# ---- Presence and catch-up helpers ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_online: Dict[str, Dict[Any, int]] = {}


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _mark_offline(lobby_id: str, player_id) -> None:
    counts = _online.get(lobby_id, {})
    remaining = counts.get(player_id, 0) - 1
    if remaining > 0:
        counts[player_id] = remaining
    else:
        counts.pop(player_id, None)
    if not counts:
        _online.pop(lobby_id, None)


def _online_players(lobby_id: str):
    return list(_online.get(lobby_id, {}).keys())


def _emit_catchup(lobby_id: str) -> None:
    """Send the requesting socket the authoritative snapshot and move log."""
    try:
        payload = get_engine().snapshot(lobby_id)
    except SessionNotFound:
        payload = {'lobby_id': lobby_id, 'session': None, 'moves': []}
    emit(sync.EVENT_SNAPSHOT, payload)
    session = payload['session']
    if session and session['status'] == SESSION_ACTIVE and session['last_tick_at'] is not None:
        # Restart the clock worker if it is not running, e.g. after a server restart
        schedule_clock(current_app._get_current_object(), lobby_id)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from wordduel import socketio

    namespaces = [sync.NAMESPACE, '/'] if testing else [sync.NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event(protocol.EVENT_JOIN_SESSION, handle_join_session, namespace=namespace)
        socketio.on_event(protocol.EVENT_LEAVE_SESSION, handle_leave_session, namespace=namespace)
        socketio.on_event(protocol.EVENT_REQUEST_SYNC, handle_request_sync, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)

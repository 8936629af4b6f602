"""Names shared by the server event stream and client observers."""

NAMESPACE = '/ws'

EVENT_STATE_CHANGED = 'state_changed'
EVENT_MOVE_INSERTED = 'move_inserted'
EVENT_SNAPSHOT = 'session_snapshot'
EVENT_PRESENCE = 'presence'

EVENT_JOIN_SESSION = 'join_session'
EVENT_LEAVE_SESSION = 'leave_session'
EVENT_REQUEST_SYNC = 'request_sync'


def room_for(lobby_id) -> str:
    return f"lobby:{lobby_id}"

# Clock fields of the session snapshot, indexed by seat
PLAYER_TIME_FIELDS = ('player1_time', 'player2_time')

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests
import socketio

from wordduel.protocol import (
    NAMESPACE, EVENT_STATE_CHANGED, EVENT_MOVE_INSERTED, EVENT_SNAPSHOT,
    EVENT_PRESENCE, EVENT_JOIN_SESSION, EVENT_LEAVE_SESSION, EVENT_REQUEST_SYNC,
    PLAYER_TIME_FIELDS,
)
from .display_clock import ClockThrottle, DisplayClock
from .read_model import SessionReadModel

logger = logging.getLogger(__name__)

TRANSIENT_STATUS = 503


def _now_ms() -> int:
    return int(time.time() * 1000)


class SessionClientError(Exception):
    def __init__(self, status: int, payload: Optional[Dict[str, Any]] = None):
        payload = payload or {}
        self.status = status
        self.code = payload.get('code')
        self.payload = payload
        super().__init__(payload.get('error') or f'HTTP {status}')


class SessionObserver:
    """Keeps a SessionReadModel in step with one lobby.

    Socket events feed the read model; catch-up and writes go over HTTP. The
    observer sends the session-end notification at most once, the first time
    it sees a finished snapshot.
    """

    def __init__(self, base_url: str, lobby_id: str, player_id: Optional[int] = None,
                 sio: Optional[socketio.Client] = None, http: Optional[requests.Session] = None,
                 timeout: float = 5, submit_retries: int = 2, persist_interval_ms: int = 1000,
                 clock: Callable[[], int] = _now_ms):
        self.base_url = base_url.rstrip('/')
        self.lobby_id = str(lobby_id)
        self.player_id = player_id
        self.sio = sio or socketio.Client(reconnection=True)
        self.http = http or requests.Session()
        self.timeout = timeout
        self.submit_retries = max(0, submit_retries)
        self.clock = clock
        self.model = SessionReadModel(player_id)
        self.display = DisplayClock()
        self.throttle = ClockThrottle(persist_interval_ms)
        self.online: List[Any] = []
        self._end_notified = False
        self._register_handlers()

    # ---- socket wiring ----

    def _register_handlers(self) -> None:
        self.sio.on('connect', self.on_connect, namespace=NAMESPACE)
        self.sio.on('disconnect', self.on_disconnect, namespace=NAMESPACE)
        self.sio.on(EVENT_SNAPSHOT, self.on_snapshot, namespace=NAMESPACE)
        self.sio.on(EVENT_STATE_CHANGED, self.on_state_changed, namespace=NAMESPACE)
        self.sio.on(EVENT_MOVE_INSERTED, self.on_move_inserted, namespace=NAMESPACE)
        self.sio.on(EVENT_PRESENCE, self.on_presence, namespace=NAMESPACE)

    def connect(self) -> None:
        self.sio.connect(self.base_url, namespaces=[NAMESPACE])

    def disconnect(self) -> None:
        if self.sio.connected:
            self.sio.emit(EVENT_LEAVE_SESSION, {'lobby_id': self.lobby_id}, namespace=NAMESPACE)
            self.sio.disconnect()

    def on_connect(self) -> None:
        # Every (re)connect starts from the authoritative catch-up
        logger.info(f"[observer-connect] lobby={self.lobby_id} player={self.player_id}")
        self.sio.emit(EVENT_JOIN_SESSION, {'lobby_id': self.lobby_id, 'player_id': self.player_id},
                      namespace=NAMESPACE)

    def on_disconnect(self, *args) -> None:
        logger.info(f"[observer-disconnect] lobby={self.lobby_id}")

    def on_snapshot(self, payload: Dict[str, Any]) -> None:
        if not self._for_this_lobby(payload):
            return
        self.model.rebuild(payload)
        self._after_session_update()

    def on_state_changed(self, payload: Dict[str, Any]) -> None:
        if not self._for_this_lobby(payload):
            return
        if self.model.apply_state_changed(payload.get('session')):
            self._after_session_update()

    def on_move_inserted(self, payload: Dict[str, Any]) -> None:
        if not self._for_this_lobby(payload):
            return
        applied = self.model.apply_move_inserted(payload.get('move') or {})
        for move in applied:
            logger.debug(f"[observer-move] lobby={self.lobby_id} seq={move['seq']} word={move['word']}")
        if self.model.needs_resync:
            logger.info(f"[observer-gap] lobby={self.lobby_id} last_seq={self.model.last_seq}")
            self.request_sync()

    def on_presence(self, payload: Dict[str, Any]) -> None:
        if self._for_this_lobby(payload):
            self.online = list(payload.get('online') or [])

    def _for_this_lobby(self, payload) -> bool:
        return bool(payload) and str(payload.get('lobby_id')) == self.lobby_id

    def _after_session_update(self) -> None:
        if self.model.session is not None:
            self.display.reconcile(self.model.session, self.clock())
        if self.model.is_finished:
            self._notify_end()

    def request_sync(self) -> None:
        if self.sio.connected:
            self.sio.emit(EVENT_REQUEST_SYNC, {'lobby_id': self.lobby_id}, namespace=NAMESPACE)
        else:
            self.resync()

    # ---- HTTP ----

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/sessions/{self.lobby_id}{path}"

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self.http.request(method, self._url(path), json=body, timeout=self.timeout)
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code >= 400:
            raise SessionClientError(response.status_code, payload)
        return payload

    def join(self) -> Dict[str, Any]:
        session = self._request('POST', '/init', {'user_id': self.player_id})
        self.model.apply_state_changed(session)
        self._after_session_update()
        return session

    def resync(self) -> None:
        """Rebuild the read model from the authoritative HTTP catch-up."""
        self.model.rebuild(self._request('GET', '/state'))
        self._after_session_update()

    def submit_word(self, word: str) -> Dict[str, Any]:
        attempts = self.submit_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                result = self._request('POST', '/moves', {'player_id': self.player_id, 'word': word})
                break
            except SessionClientError as exc:
                if exc.status != TRANSIENT_STATUS or attempt == attempts:
                    raise
                logger.warning(f"[observer-retry] lobby={self.lobby_id} word={word} attempt={attempt}/{attempts}")
        self.model.apply_move_inserted(result['move'])
        if self.model.apply_state_changed(result['session']):
            self._after_session_update()
        return result

    def persist_clock(self, now_ms: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Write the local player's clock back while it is their turn, throttled."""
        if not self.model.is_my_turn():
            return None
        now_ms = now_ms if now_ms is not None else self.clock()
        if not self.throttle.should_persist(now_ms):
            return None
        seat = self.model.seat_of(self.player_id)
        session = self._request('POST', '/clock', {
            'player_time_field': PLAYER_TIME_FIELDS[seat],
            'new_value': self.display.remaining(seat, now_ms),
        })
        if self.model.apply_state_changed(session):
            self._after_session_update()
        return session

    def forfeit(self) -> Dict[str, Any]:
        session = self._request('POST', '/forfeit', {'player_id': self.player_id})
        if self.model.apply_state_changed(session):
            self._after_session_update()
        return session

    def _notify_end(self) -> None:
        if self._end_notified:
            return
        self._end_notified = True
        reason = self.model.session.get('finish_reason') or 'time'
        try:
            outcome = self._request('POST', '/end', {'final_status': 'finished', 'reason': reason})
        except (SessionClientError, requests.RequestException) as exc:
            # The server settles ratings on its own; this notification is best effort
            logger.warning(f"[observer-end] lobby={self.lobby_id} failed: {exc}")
            return
        logger.info(f"[observer-end] lobby={self.lobby_id} delta={outcome.get('delta')} applied={outcome.get('applied')}")

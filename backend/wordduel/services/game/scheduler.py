import time
from typing import Set

from wordduel import db, socketio
from wordduel.models import GameSession, SESSION_ACTIVE
from .engine import get_engine
from .errors import GameError, SessionNotFound


_scheduled_sessions: Set[str] = set()


def schedule_clock(app, lobby_id: str) -> None:
    """Start the authoritative clock worker for a session.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single worker per lobby
    - Ticks every TICK_INTERVAL_SEC and stops once the session is paused or finished
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    with app.app_context():
        session = GameSession.query.filter_by(lobby_id=lobby_id).first()
        if not session or session.status != SESSION_ACTIVE or session.last_tick_at is None:
            return

    if lobby_id in _scheduled_sessions:
        app.logger.info(f"[timer-skip] lobby={lobby_id} already scheduled")
        return
    _scheduled_sessions.add(lobby_id)

    interval = float(app.config.get('TICK_INTERVAL_SEC', 1))
    app.logger.info(f"[timer-set] lobby={lobby_id} interval={interval}s")

    def _worker(lid: str, delay: float):
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        last_beat = time.time()
        try:
            while True:
                socketio.sleep(delay)
                with app.app_context():
                    try:
                        session = get_engine(app).tick(lid)
                    except SessionNotFound:
                        app.logger.info(f"[timer-abort] lobby={lid} session gone")
                        return
                    except GameError as exc:
                        app.logger.warning(f"[timer-fire] lobby={lid} tick rejected: {exc.message}")
                        continue
                    except Exception as exc:
                        # Keep the clock alive through transient database failures
                        db.session.rollback()
                        app.logger.exception(f"[timer-fire] lobby={lid} tick failed: {exc!r}")
                        continue
                    if hb > 0 and time.time() - last_beat >= hb:
                        last_beat = time.time()
                        app.logger.info(
                            f"[timer-heartbeat] lobby={lid} turn={session.current_turn} "
                            f"p1={session.player1_time}ms p2={session.player2_time}ms"
                        )
                    if session.status != SESSION_ACTIVE:
                        app.logger.info(f"[timer-stop] lobby={lid} status={session.status}")
                        return
        finally:
            _scheduled_sessions.discard(lid)

    if app.config.get('TESTING'):
        _worker(lobby_id, interval)
    else:
        socketio.start_background_task(_worker, lobby_id, interval)

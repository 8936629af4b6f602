from typing import Any, Dict, Optional

MIN_PERSIST_INTERVAL_MS = 1000


def format_clock(ms: int) -> str:
    """Render milliseconds as MM:SS, rounding down."""
    ms = max(0, int(ms))
    return f"{ms // 60000:02d}:{(ms % 60000) // 1000:02d}"


class DisplayClock:
    """Locally interpolated clocks between authoritative snapshots.

    Only the seat holding the turn counts down, and only while the session is
    active with its clocks started. Every snapshot received replaces the local
    values outright.
    """

    def __init__(self):
        self.clocks = [0, 0]
        self.active_seat: Optional[int] = None
        self.running = False
        self.received_at: Optional[int] = None

    def reconcile(self, snapshot: Dict[str, Any], received_at_ms: int) -> None:
        self.clocks = [int(snapshot.get('player1_time') or 0), int(snapshot.get('player2_time') or 0)]
        self.active_seat = snapshot.get('current_turn')
        self.running = snapshot.get('status') == 'active' and snapshot.get('last_tick_at') is not None
        self.received_at = received_at_ms

    def remaining(self, seat: int, now_ms: int) -> int:
        value = self.clocks[seat]
        if self.running and seat == self.active_seat and self.received_at is not None:
            value -= max(0, now_ms - self.received_at)
        return max(0, value)

    def display(self, seat: int, now_ms: int) -> str:
        return format_clock(self.remaining(seat, now_ms))


class ClockThrottle:
    """Limits how often the active client writes its clock back to the server."""

    def __init__(self, interval_ms: int = MIN_PERSIST_INTERVAL_MS):
        if interval_ms < MIN_PERSIST_INTERVAL_MS:
            raise ValueError(f'interval_ms must be at least {MIN_PERSIST_INTERVAL_MS}')
        self.interval_ms = interval_ms
        self.last_persisted_at: Optional[int] = None

    def should_persist(self, now_ms: int) -> bool:
        if self.last_persisted_at is not None and now_ms - self.last_persisted_at < self.interval_ms:
            return False
        self.last_persisted_at = now_ms
        return True

    def reset(self) -> None:
        self.last_persisted_at = None

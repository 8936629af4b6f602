"""Observer side of a session: local read model, display clock and socket wiring."""

from .display_clock import ClockThrottle, DisplayClock, format_clock
from .read_model import SessionReadModel
from .observer import SessionClientError, SessionObserver

__all__ = [
    'ClockThrottle', 'DisplayClock', 'format_clock',
    'SessionReadModel', 'SessionClientError', 'SessionObserver',
]

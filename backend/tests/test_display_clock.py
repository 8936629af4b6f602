import pytest

from wordduel.client import ClockThrottle, DisplayClock, format_clock


def _snapshot(**overrides):
    snapshot = {'status': 'active', 'current_turn': 0, 'player1_time': 60000,
                'player2_time': 45000, 'last_tick_at': 1000}
    snapshot.update(overrides)
    return snapshot


def test_only_active_seat_counts_down():
    clock = DisplayClock()
    clock.reconcile(_snapshot(), received_at_ms=10000)
    assert clock.remaining(0, 12500) == 57500
    assert clock.remaining(1, 12500) == 45000
    assert clock.remaining(0, 90000) == 0


def test_authoritative_value_wins():
    clock = DisplayClock()
    clock.reconcile(_snapshot(), received_at_ms=10000)
    assert clock.remaining(0, 15000) == 55000
    clock.reconcile(_snapshot(player1_time=58000), received_at_ms=15000)
    assert clock.remaining(0, 15000) == 58000


@pytest.mark.parametrize('overrides', [{'status': 'paused'}, {'status': 'finished'}, {'last_tick_at': None}])
def test_stopped_clocks_do_not_move(overrides):
    clock = DisplayClock()
    clock.reconcile(_snapshot(**overrides), received_at_ms=10000)
    assert clock.remaining(0, 20000) == 60000


def test_format_clock():
    assert format_clock(180000) == '03:00'
    assert format_clock(61999) == '01:01'
    assert format_clock(999) == '00:00'
    assert format_clock(-5) == '00:00'
    clock = DisplayClock()
    clock.reconcile(_snapshot(), received_at_ms=0)
    assert clock.display(1, 0) == '00:45'


def test_throttle():
    throttle = ClockThrottle(1000)
    assert throttle.should_persist(0)
    assert not throttle.should_persist(999)
    assert throttle.should_persist(1000)
    throttle.reset()
    assert throttle.should_persist(1001)
    with pytest.raises(ValueError):
        ClockThrottle(500)

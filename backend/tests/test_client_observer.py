from unittest.mock import Mock

import pytest
import requests

from wordduel.client import SessionClientError, SessionObserver


def _response(status_code, payload):
    response = Mock(status_code=status_code)
    response.json.return_value = payload
    return response


def _session(**overrides):
    session = {
        'lobby_id': 'L1', 'status': 'active', 'current_turn': 0,
        'player1_time': 60000, 'player2_time': 60000,
        'last_move_at': None, 'last_tick_at': 1000, 'version': 2,
        'winner_id': None, 'finish_reason': None,
        'players': [{'id': 1, 'seat': 0}, {'id': 2, 'seat': 1}],
    }
    session.update(overrides)
    return session


@pytest.fixture()
def http():
    return Mock(spec=requests.Session)


@pytest.fixture()
def observer(http):
    sio = Mock()
    sio.connected = True
    return SessionObserver('http://game.test/', 'L1', player_id=1, sio=sio, http=http,
                           clock=lambda: 10000)


def test_connect_joins_the_lobby(observer):
    observer.on_connect()
    observer.sio.emit.assert_called_once_with('join_session', {'lobby_id': 'L1', 'player_id': 1},
                                              namespace='/ws')


def test_events_feed_the_read_model(observer):
    observer.on_snapshot({'lobby_id': 'L1', 'session': _session(), 'moves': []})
    observer.on_move_inserted({'lobby_id': 'L1', 'move': {'seq': 1, 'word': 'glass', 'player_id': 1,
                                                          'score': 376, 'is_valid': True}})
    observer.on_state_changed({'lobby_id': 'L1', 'session': _session(current_turn=1, last_move_at=3000,
                                                                      version=3)})
    assert observer.model.scores() == {1: 376, 2: 0}
    assert observer.model.current_turn == 1
    assert not observer.model.is_my_turn()

    # Events for another lobby are dropped
    observer.on_state_changed({'lobby_id': 'L2', 'session': _session(version=99)})
    assert observer.model.session['version'] == 3


def test_gap_requests_a_resync(observer):
    observer.on_snapshot({'lobby_id': 'L1', 'session': _session(), 'moves': []})
    observer.on_move_inserted({'lobby_id': 'L1', 'move': {'seq': 2, 'word': 'grass', 'player_id': 2,
                                                          'score': 1, 'is_valid': True}})
    observer.sio.emit.assert_called_with('request_sync', {'lobby_id': 'L1'}, namespace='/ws')


def test_resync_over_http(observer, http):
    http.request.return_value = _response(200, {'lobby_id': 'L1', 'session': _session(), 'moves': []})
    observer.resync()
    http.request.assert_called_once_with('GET', 'http://game.test/api/sessions/L1/state', json=None, timeout=5)
    assert observer.model.status == 'active'


def test_submit_word_retries_transient_outage(observer, http):
    move = {'seq': 1, 'word': 'glass', 'player_id': 1, 'score': 376, 'is_valid': True}
    http.request.side_effect = [
        _response(503, {'error': 'Dictionary lookup failed, try again', 'code': 'lexicon_unavailable'}),
        _response(201, {'move': move, 'session': _session(current_turn=1, last_move_at=3000, version=3)}),
    ]
    result = observer.submit_word('glass')
    assert result['move']['word'] == 'glass'
    assert http.request.call_count == 2
    assert observer.model.last_seq == 1


def test_submit_word_surfaces_rejections(observer, http):
    http.request.return_value = _response(403, {'error': "It's not your turn", 'code': 'not_players_turn'})
    with pytest.raises(SessionClientError) as exc_info:
        observer.submit_word('glass')
    assert exc_info.value.status == 403
    assert exc_info.value.code == 'not_players_turn'
    assert http.request.call_count == 1


def test_persist_clock_is_throttled(observer, http):
    observer.on_snapshot({'lobby_id': 'L1', 'session': _session(), 'moves': []})
    http.request.return_value = _response(200, _session(player1_time=59500, version=3))

    observer.persist_clock(now_ms=10500)
    observer.persist_clock(now_ms=11000)
    http.request.assert_called_once_with(
        'POST', 'http://game.test/api/sessions/L1/clock',
        json={'player_time_field': 'player1_time', 'new_value': 59500}, timeout=5,
    )
    observer.persist_clock(now_ms=11500)
    assert http.request.call_count == 2


def test_persist_clock_only_on_own_turn(observer, http):
    observer.on_snapshot({'lobby_id': 'L1', 'session': _session(current_turn=1), 'moves': []})
    assert observer.persist_clock(now_ms=20000) is None
    http.request.assert_not_called()


def test_session_end_is_notified_once(observer, http):
    http.request.return_value = _response(200, {'lobby_id': 'L1', 'delta': 32, 'applied': False})
    finished = _session(status='finished', winner_id=2, finish_reason='time', version=5)
    observer.on_snapshot({'lobby_id': 'L1', 'session': finished, 'moves': []})
    observer.on_state_changed({'lobby_id': 'L1', 'session': dict(finished, version=6)})
    observer.on_snapshot({'lobby_id': 'L1', 'session': finished, 'moves': []})
    http.request.assert_called_once_with(
        'POST', 'http://game.test/api/sessions/L1/end',
        json={'final_status': 'finished', 'reason': 'time'}, timeout=5,
    )


def test_failed_end_notification_is_not_fatal(observer, http):
    http.request.side_effect = requests.ConnectionError('down')
    observer.on_snapshot({'lobby_id': 'L1', 'session': _session(status='finished', finish_reason='forfeit'),
                          'moves': []})
    assert http.request.call_count == 1

from flask import Blueprint, jsonify, request, current_app
from wordduel.models import SESSION_ACTIVE
from wordduel.services.game.engine import get_engine, FINISH_REASONS
from wordduel.services.game.errors import GameError
from wordduel.services.game.scheduler import schedule_clock

sessions = Blueprint('sessions', __name__)


@sessions.errorhandler(GameError)
def handle_game_error(exc):
    current_app.logger.info(f"[rejected] {request.method} {request.path} code={exc.code} message={exc.message}")
    return jsonify(exc.to_dict()), exc.status


def _int_field(data, key):
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _schedule_clock_if_running(session) -> None:
    if session.status == SESSION_ACTIVE and session.last_tick_at is not None:
        schedule_clock(current_app._get_current_object(), session.lobby_id)


@sessions.route('/<string:lobby_id>/init', methods=['POST'])
def init_session(lobby_id):
    data = request.get_json(silent=True) or {}
    user_id = _int_field(data, 'user_id')
    if user_id is None:
        return jsonify({'error': 'user_id is required'}), 400
    session = get_engine().initialize_session(lobby_id, user_id)
    _schedule_clock_if_running(session)
    return jsonify(session.to_dict())


@sessions.route('/<string:lobby_id>/state', methods=['GET'])
def get_session_state(lobby_id):
    return jsonify(get_engine().snapshot(lobby_id))


@sessions.route('/<string:lobby_id>/moves', methods=['POST'])
def submit_move(lobby_id):
    data = request.get_json(silent=True) or {}
    player_id = _int_field(data, 'player_id')
    word = data.get('word')
    if player_id is None or not isinstance(word, str):
        return jsonify({'error': 'player_id and word are required'}), 400
    result = get_engine().submit_move(lobby_id, player_id, word)
    # Invalid words are still recorded; they just don't pass the turn
    return jsonify(result.to_dict()), 201


@sessions.route('/<string:lobby_id>/clock', methods=['POST'])
def update_clock(lobby_id):
    data = request.get_json(silent=True) or {}
    field = data.get('player_time_field')
    new_value = _int_field(data, 'new_value')
    if not field or new_value is None:
        return jsonify({'error': 'player_time_field and new_value are required'}), 400
    session = get_engine().update_clock(lobby_id, field, new_value)
    return jsonify(session.to_dict())


@sessions.route('/<string:lobby_id>/tick', methods=['POST'])
def tick(lobby_id):
    session = get_engine().tick(lobby_id)
    return jsonify(session.to_dict())


@sessions.route('/<string:lobby_id>/pause', methods=['POST'])
def pause_session(lobby_id):
    session = get_engine().pause(lobby_id)
    return jsonify(session.to_dict())


@sessions.route('/<string:lobby_id>/resume', methods=['POST'])
def resume_session(lobby_id):
    session = get_engine().resume(lobby_id)
    _schedule_clock_if_running(session)
    return jsonify(session.to_dict())


@sessions.route('/<string:lobby_id>/forfeit', methods=['POST'])
def forfeit_session(lobby_id):
    data = request.get_json(silent=True) or {}
    player_id = _int_field(data, 'player_id')
    if player_id is None:
        return jsonify({'error': 'player_id is required'}), 400
    session = get_engine().forfeit(lobby_id, player_id)
    return jsonify(session.to_dict())


@sessions.route('/<string:lobby_id>/end', methods=['POST'])
def end_session(lobby_id):
    data = request.get_json(silent=True) or {}
    final_status = data.get('final_status')
    reason = data.get('reason')
    if not final_status or reason not in FINISH_REASONS:
        return jsonify({'error': "final_status and reason ('time' or 'forfeit') are required"}), 400
    outcome = get_engine().end_session(lobby_id, final_status, reason)
    # Repeated notifications are a successful no-op
    return jsonify(outcome.to_dict())


@sessions.route('/<string:lobby_id>/moves/<int:move_id>/report', methods=['POST'])
def report_move(lobby_id, move_id):
    data = request.get_json(silent=True) or {}
    player_id = _int_field(data, 'player_id')
    reason = data.get('reason')
    if player_id is None or not reason:
        return jsonify({'error': 'player_id and reason are required'}), 400
    report = get_engine().report_word(lobby_id, move_id, player_id, reason, data.get('details'))
    return jsonify(report.to_dict()), 201

from flask import Blueprint, jsonify, request, current_app
from wordduel import db
from wordduel.models import Player

players = Blueprint('players', __name__)


@players.route('', methods=['POST'])
def create_player():
    data = request.get_json(silent=True) or {}
    name = (data.get('display_name') or '').strip()
    if not name:
        return jsonify({'error': 'display_name is required'}), 400
    if len(name) > 64:
        return jsonify({'error': 'display_name is too long'}), 400
    player = Player(display_name=name, elo_rating=int(current_app.config.get('DEFAULT_ELO', 1200)))
    db.session.add(player)
    db.session.commit()
    return jsonify(player.to_dict()), 201


@players.route('/<int:player_id>', methods=['GET'])
def get_player(player_id):
    player = db.get_or_404(Player, player_id)
    return jsonify(player.to_dict())

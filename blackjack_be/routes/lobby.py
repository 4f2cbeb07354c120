from flask import Blueprint, request, jsonify, current_app
from http import HTTPStatus

from ..schemas import JoinLobbySchema, LobbyPlayerSchema, SeatSchema # Relative import
from ..utils.decorators import player_session_required # Relative import

lobby_bp = Blueprint('lobby', __name__, url_prefix='/api/lobby')

def _lobby_payload(coordinator):
    """Sweeps timed-out players, then lists who is seated."""
    current_app.lobby_presence.sweep(coordinator)
    return {
        'status': True,
        'lobby': coordinator.lobby_name,
        'players': LobbyPlayerSchema(many=True).dump(coordinator.lobby_players()),
    }

@lobby_bp.route('', methods=['GET'])
def get_lobby():
    return jsonify(_lobby_payload(current_app.table_coordinator)), HTTPStatus.OK

@lobby_bp.route('/join', methods=['POST'])
def join_lobby():
    data = JoinLobbySchema().load(request.get_json(silent=True) or {})
    coordinator = current_app.table_coordinator

    player = coordinator.join(data['name'], data['device_id'])
    current_app.lobby_presence.ping(player['id'])
    current_app.logger.info(f"Player {player['id']} joined lobby {coordinator.lobby_name}")

    payload = _lobby_payload(coordinator)
    payload['player'] = SeatSchema().dump(player)
    payload['token'] = player['token']
    return jsonify(payload), HTTPStatus.OK

@lobby_bp.route('/leave', methods=['POST'])
@player_session_required()
def leave_lobby(payload):
    coordinator = current_app.table_coordinator
    coordinator.leave(payload['player_id'])
    current_app.lobby_presence.forget(payload['player_id'])
    current_app.logger.info(f"Player {payload['player_id']} left lobby {coordinator.lobby_name}")
    return jsonify(_lobby_payload(coordinator)), HTTPStatus.OK

@lobby_bp.route('/ping', methods=['POST'])
@player_session_required()
def ping_lobby(payload):
    # The session decorator already refreshed this player's presence.
    return jsonify(_lobby_payload(current_app.table_coordinator)), HTTPStatus.OK

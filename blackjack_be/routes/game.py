from flask import Blueprint, jsonify, current_app
from http import HTTPStatus

from ..schemas import BetChipSchema, GameActionSchema, TableStateSchema # Relative import
from ..utils.decorators import player_session_required # Relative import

game_bp = Blueprint('game', __name__, url_prefix='/api/game')

def _state_response(snapshot):
    return jsonify({'status': True, 'state': TableStateSchema().dump(snapshot)}), HTTPStatus.OK

@game_bp.route('/state', methods=['GET'])
@player_session_required()
def get_game_state(payload):
    coordinator = current_app.table_coordinator
    current_app.lobby_presence.sweep(coordinator)
    return _state_response(coordinator.snapshot(payload['player_id']))

@game_bp.route('/bet/chip', methods=['POST'])
@player_session_required(BetChipSchema)
def add_bet_chip(payload):
    snapshot = current_app.table_coordinator.place_chip(payload['player_id'], payload['chip'])
    return _state_response(snapshot)

@game_bp.route('/bet/undo', methods=['POST'])
@player_session_required()
def undo_bet_chip(payload):
    return _state_response(current_app.table_coordinator.undo_chip(payload['player_id']))

@game_bp.route('/bet/allin', methods=['POST'])
@player_session_required()
def all_in_bet(payload):
    return _state_response(current_app.table_coordinator.all_in(payload['player_id']))

@game_bp.route('/ready', methods=['POST'])
@player_session_required()
def toggle_ready(payload):
    return _state_response(current_app.table_coordinator.toggle_ready(payload['player_id']))

@game_bp.route('/action', methods=['POST'])
@player_session_required(GameActionSchema)
def perform_action(payload):
    snapshot = current_app.table_coordinator.apply_action(
        payload['player_id'], payload['action'], payload.get('hand_index')
    )
    current_app.logger.info(f"Player {payload['player_id']} action {payload['action']}")
    return _state_response(snapshot)

@game_bp.route('/next-round', methods=['POST'])
@player_session_required()
def next_round(payload):
    return _state_response(current_app.table_coordinator.next_round(payload['player_id']))

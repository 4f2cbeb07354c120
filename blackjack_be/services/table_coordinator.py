"""
Shared Multiplayer Table Coordinator
Owns the single authoritative table of a lobby: roster, shared shoe, dealer
hand, phase and turn ownership. Every request is applied as one atomic step.
"""

import html
import logging
import math
import secrets
import threading
import time
from typing import Dict, List, Optional

from ..exceptions import (
    AuthenticationException, EmptyShoeException, InvalidActionException, InsufficientFundsException,
    NotFoundException
)
from ..utils.bet_staging import all_in_stack, place_chip, remove_last_chip, restage_bet, stack_total
from ..utils.blackjack_helper import (
    DEFAULT_TABLE_RULES, PHASE_BETTING, PHASE_DEALING, PHASE_PLAYER_TURN, PHASE_DEALER_TURN,
    PHASE_ROUND_OVER, _create_player_hand_obj, apply_hand_action, next_open_hand_index,
    table_rules_from_config
)
from ..utils.dealer_policy import play_dealer_hand
from ..utils.hand_evaluator import hand_totals, is_blackjack
from ..utils.settlement import apply_settlement, new_stats, round_summary, settle_round
from ..utils.shoe import CARDS_PER_DECK, build_shoe, draw_card, ensure_capacity

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 24
SUMMARY_RESULTS = {'Win': 'win', 'Lose': 'lose', 'Tie': 'push'}


def visible_card(card):
    return {'state': 'visible', 'card': card}

def concealed_card():
    return {'state': 'concealed'}

def clean_player_name(name):
    """
    Trims a display name and caps it at MAX_NAME_LENGTH visible characters.
    Names arrive HTML-escaped, so the cut is made on the unescaped text and
    the result escaped again; an entity is never split.
    """
    return html.escape(html.unescape(name or '').strip()[:MAX_NAME_LENGTH])


class TableCoordinator:
    """Server-authoritative blackjack table shared by every player in the lobby."""

    def __init__(self, app=None, rules=None, lobby_name='main'):
        self.lobby_name = lobby_name
        self.rules = dict(DEFAULT_TABLE_RULES)
        if rules:
            self.rules.update(rules)

        self._lock = threading.RLock()
        self.players: Dict[str, dict] = {}  # insertion order is join order
        self.version = 0
        self._seats_taken = 0
        self._reset_table()

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """Load table rules from the app config and attach the coordinator to the app."""
        with self._lock:
            self.rules = table_rules_from_config(app.config)
            self.shoe = build_shoe(self.rules['shoe_decks'])
        app.table_coordinator = self
        logger.info(f"Table coordinator ready for lobby '{self.lobby_name}' with rules {self.rules}")

    def _reset_table(self):
        self.shoe = build_shoe(self.rules['shoe_decks'])
        self.dealer_cards: List[dict] = []
        self.dealer_revealed = False
        self.phase = PHASE_BETTING
        self.current_turn_player_id: Optional[str] = None
        self.message = "Place your bets."

    def _commit(self, message=None):
        if message:
            self.message = message
        self.version += 1

    # --- Roster ---

    def join(self, name, device_id):
        """Seats a new player, or re-attaches the player already seated for this device."""
        with self._lock:
            clean_name = clean_player_name(name)
            for player in self.players.values():
                if device_id and player['device_id'] == device_id:
                    if clean_name and clean_name != player['name']:
                        player['name'] = clean_name
                        self._commit()
                    logger.info(f"Device {device_id} re-attached to player {player['id']}")
                    return player

            self._seats_taken += 1
            player = {
                'id': f"p_{secrets.token_hex(6)}",
                'name': clean_name or f"Player {self._seats_taken}",
                'device_id': device_id,
                'token': secrets.token_urlsafe(24),
                'bank': self.rules['starting_bank'],
                'bet_stack': [],
                'last_bet': 0,
                'hands': [],
                'current_hand_index': 0,
                'in_round': False,
                'ready': False,
                'result': None,
                'result_reason': '',
                'stats': new_stats(),
                'joined_at': int(time.time() * 1000),
            }
            self.players[player['id']] = player
            self._commit(f"{player['name']} joined the table.")
            logger.info(f"Player {player['id']} ({player['name']}) joined lobby '{self.lobby_name}'")
            return player

    def leave(self, player_id):
        """Removes a player from the roster and from the round in progress."""
        with self._lock:
            player = self._get_player(player_id)
            seat_order = list(self.players)
            position = seat_order.index(player_id)
            del self.players[player_id]
            logger.info(f"Player {player_id} ({player['name']}) left lobby '{self.lobby_name}'")

            if not self.players:
                self._reset_table()
                self._commit()
                return

            message = f"{player['name']} left the table."
            if self.phase == PHASE_BETTING:
                self._maybe_deal()
            elif self.phase == PHASE_PLAYER_TURN and self.current_turn_player_id == player_id:
                # The next seat slid into `position` when this one was removed.
                self._assign_turn_from(position)
            if self.phase != PHASE_BETTING:
                message = self.message
            self._commit(message)

    def authenticate(self, player_id, token):
        with self._lock:
            player = self._get_player(player_id)
            if not token or not secrets.compare_digest(player['token'], token):
                raise AuthenticationException("Invalid session token for this player.")
            return player

    def _get_player(self, player_id):
        player = self.players.get(player_id)
        if player is None:
            raise NotFoundException(f"Player {player_id} is not in the lobby.")
        return player

    def lobby_players(self):
        with self._lock:
            return [
                {
                    'id': player['id'],
                    'name': player['name'],
                    'bank': player['bank'],
                    'joined_at': player['joined_at'],
                    'ready': player['ready'],
                }
                for player in self.players.values()
            ]

    # --- Betting ---

    def _require_staging(self, player):
        if self.phase != PHASE_BETTING:
            raise InvalidActionException(
                "Bets can only change during the betting phase.", details={'phase': self.phase}
            )
        if player['ready']:
            raise InvalidActionException("Unready before changing your bet.")

    def place_chip(self, player_id, chip):
        with self._lock:
            player = self._get_player(player_id)
            self._require_staging(player)
            player['bet_stack'] = place_chip(
                player['bet_stack'], chip, player['bank'], self.rules['chip_values']
            )
            self._commit()
            return self.snapshot(player_id)

    def undo_chip(self, player_id):
        with self._lock:
            player = self._get_player(player_id)
            self._require_staging(player)
            player['bet_stack'] = remove_last_chip(player['bet_stack'])
            self._commit()
            return self.snapshot(player_id)

    def all_in(self, player_id):
        with self._lock:
            player = self._get_player(player_id)
            self._require_staging(player)
            player['bet_stack'] = all_in_stack(
                player['bank'], self.rules['min_bet'], self.rules['chip_values']
            )
            self._commit()
            return self.snapshot(player_id)

    def toggle_ready(self, player_id):
        """Flips readiness. The deal starts once every player with a staged bet is ready."""
        with self._lock:
            player = self._get_player(player_id)
            if self.phase != PHASE_BETTING:
                raise InvalidActionException(
                    "Readiness can only change during the betting phase.", details={'phase': self.phase}
                )

            if player['ready']:
                player['ready'] = False
                self._commit(f"{player['name']} is no longer ready.")
                return self.snapshot(player_id)

            bet = stack_total(player['bet_stack'])
            if bet < self.rules['min_bet']:
                raise InvalidActionException(f"Place at least {self.rules['min_bet']} before getting ready.")
            if bet > player['bank']:
                raise InsufficientFundsException(f"Bet of {bet} exceeds your bank of {player['bank']}.")

            player['ready'] = True
            try:
                self._maybe_deal()
            except EmptyShoeException:
                player['ready'] = False
                raise
            self.message = f"{player['name']} is ready." if self.phase == PHASE_BETTING else self.message
            self._commit()
            return self.snapshot(player_id)

    def _maybe_deal(self):
        bettors = [p for p in self.players.values() if stack_total(p['bet_stack']) > 0]
        if not bettors or not all(p['ready'] for p in bettors):
            return False
        self._deal_round(bettors)
        return True

    # --- Round ---

    def _deal_round(self, participants):
        threshold = self.rules['reshuffle_threshold'] * len(participants)
        # A rebuilt shoe must hold the threshold itself, so a crowded table gets extra decks.
        deck_count = max(self.rules['shoe_decks'], math.ceil(threshold / CARDS_PER_DECK))
        shoe = list(ensure_capacity(self.shoe, deck_count, threshold))

        # Draw the whole initial deal before any bank, hand or phase changes.
        first_cards = {p['id']: draw_card(shoe) for p in participants}
        up_card = draw_card(shoe)
        second_cards = {p['id']: draw_card(shoe) for p in participants}
        hole_card = draw_card(shoe)

        self.shoe = shoe
        self.phase = PHASE_DEALING
        self.dealer_revealed = False
        self.current_turn_player_id = None

        for player in self.players.values():
            player['hands'] = []
            player['current_hand_index'] = 0
            player['in_round'] = False
            player['result'] = None
            player['result_reason'] = ''

        for player in participants:
            bet = stack_total(player['bet_stack'])
            player['bank'] -= bet
            player['last_bet'] = bet
            player['in_round'] = True

        for player in participants:
            player['hands'] = [
                _create_player_hand_obj(
                    [first_cards[player['id']], second_cards[player['id']]], stack_total(player['bet_stack'])
                )
            ]
        self.dealer_cards = [up_card, hole_card]
        logger.info(f"Dealt round to {[p['id'] for p in participants]} in lobby '{self.lobby_name}'")

        if is_blackjack(self.dealer_cards):
            self.dealer_revealed = True
            self._settle_all("Dealer blackjack.")
            return

        for player in participants:
            hand = player['hands'][0]
            if hand['is_blackjack']:
                hand['is_done'] = True
                hand['is_standing'] = True

        self.phase = PHASE_PLAYER_TURN
        self._assign_turn_from(0)

    def _assign_turn_from(self, position):
        """Gives the turn to the first seat from `position` on with an open hand, else plays the dealer."""
        seat_order = list(self.players)
        for player_id in seat_order[position:]:
            player = self.players[player_id]
            if not player['in_round']:
                continue
            open_index = next_open_hand_index(player['hands'], -1)
            if open_index is not None:
                self.current_turn_player_id = player_id
                player['current_hand_index'] = open_index
                self.message = f"{player['name']}'s turn."
                return
        self.current_turn_player_id = None
        self._play_dealer_and_settle()

    def apply_action(self, player_id, action, hand_index=None):
        """Applies hit/stand/double/split for the player holding the turn."""
        with self._lock:
            player = self._get_player(player_id)
            if self.phase != PHASE_PLAYER_TURN:
                raise InvalidActionException(
                    "Hand actions are only allowed during player turns.", details={'phase': self.phase}
                )
            if self.current_turn_player_id != player_id:
                raise InvalidActionException(
                    "It is not your turn.", details={'current_turn_player_id': self.current_turn_player_id}
                )
            active_index = player['current_hand_index']
            if hand_index is not None and hand_index != active_index:
                raise InvalidActionException(
                    f"Action requested for hand {hand_index}, but current active hand is {active_index}."
                )

            debit = apply_hand_action(player['hands'], active_index, action, self.shoe, player['bank'])
            player['bank'] -= debit
            logger.debug(f"Player {player_id} {action} on hand {active_index}")

            if player['hands'][active_index]['is_done']:
                next_index = next_open_hand_index(player['hands'], active_index)
                if next_index is not None:
                    player['current_hand_index'] = next_index
                else:
                    self._assign_turn_from(list(self.players).index(player_id) + 1)

            self._commit()
            return self.snapshot(player_id)

    def _play_dealer_and_settle(self):
        self.phase = PHASE_DEALER_TURN
        self.dealer_revealed = True
        live_hands = [
            hand
            for player in self.players.values() if player['in_round']
            for hand in player['hands']
            if not hand['is_busted'] and not hand['is_blackjack']
        ]
        if live_hands:
            play_dealer_hand(self.dealer_cards, self.shoe, self.rules['dealer_hits_soft_17'])
        self._settle_all("Round over.")

    def _settle_all(self, message):
        for player in self.players.values():
            if not player['in_round']:
                continue
            result = settle_round(player['hands'], self.dealer_cards, self.rules['blackjack_payout'])
            player['bank'] += result['payout']
            apply_settlement(player['stats'], result['tallies'])
            summary, details = round_summary(result['tallies'], result['reasons'])
            player['result'] = SUMMARY_RESULTS[summary]
            player['result_reason'] = details
            logger.info(f"Player {player['id']} settled: {summary} ({details}), payout {result['payout']}")

        self.phase = PHASE_ROUND_OVER
        self.current_turn_player_id = None
        self.message = message

    def next_round(self, player_id):
        """Returns a settled table to betting and re-stages each participant's last bet."""
        with self._lock:
            player = self._get_player(player_id)
            if self.phase != PHASE_ROUND_OVER:
                raise InvalidActionException(
                    "The round is not over yet.", details={'phase': self.phase}
                )

            for seated in self.players.values():
                if seated['in_round']:
                    seated['bet_stack'] = restage_bet(
                        seated['last_bet'], seated['bank'], self.rules['min_bet'], self.rules['chip_values']
                    )
                seated['hands'] = []
                seated['current_hand_index'] = 0
                seated['in_round'] = False
                seated['ready'] = False
                seated['result'] = None
                seated['result_reason'] = ''

            self.dealer_cards = []
            self.dealer_revealed = False
            self.phase = PHASE_BETTING
            self.current_turn_player_id = None
            self._commit(f"{player['name']} started the next round. Place your bets.")
            return self.snapshot(player_id)

    # --- Views ---

    def _dealer_view(self):
        reveal = self.dealer_revealed or self.phase == PHASE_ROUND_OVER
        cards = []
        for index, card in enumerate(self.dealer_cards):
            if index == 1 and not reveal:
                cards.append(concealed_card())
            else:
                cards.append(visible_card(card))
        shown = self.dealer_cards if reveal else self.dealer_cards[:1]
        return cards, reveal, hand_totals(shown)['best'] if shown else 0

    def _player_view(self, player):
        if self.phase == PHASE_BETTING or not player['in_round']:
            bet = stack_total(player['bet_stack']) if self.phase == PHASE_BETTING else 0
        else:
            bet = sum(hand['bet'] for hand in player['hands'])

        hands = []
        for hand in player['hands']:
            totals = hand_totals(hand['cards'])
            hands.append(dict(hand, total=totals['best'], is_soft=totals['is_soft']))

        return {
            'id': player['id'],
            'name': player['name'],
            'bank': player['bank'],
            'bet_stack': list(player['bet_stack']),
            'bet': bet,
            'hands': hands,
            'current_hand_index': player['current_hand_index'],
            'in_round': player['in_round'],
            'ready': player['ready'],
            'result': player['result'],
            'result_reason': player['result_reason'],
            'stats': dict(player['stats']),
        }

    def snapshot(self, viewer_id=None):
        """Full table state as seen by `viewer_id`; the hole card stays concealed until revealed."""
        with self._lock:
            dealer_cards, revealed, dealer_total = self._dealer_view()
            return {
                'lobby': self.lobby_name,
                'version': self.version,
                'phase': self.phase,
                'message': self.message,
                'dealer_cards': dealer_cards,
                'dealer_revealed': revealed,
                'dealer_total': dealer_total,
                'current_turn_player_id': self.current_turn_player_id,
                'you': viewer_id if viewer_id in self.players else None,
                'players': [self._player_view(player) for player in self.players.values()],
            }

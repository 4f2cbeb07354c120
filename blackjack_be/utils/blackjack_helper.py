import logging

from blackjack_be.exceptions import InvalidActionException, InsufficientFundsException
from blackjack_be.utils.bet_staging import (
    DEFAULT_CHIP_VALUES, DEFAULT_MIN_BET, place_chip, remove_last_chip, all_in_stack,
    restage_bet, stack_total
)
from blackjack_be.utils.dealer_policy import dealer_draw_steps
from blackjack_be.utils.hand_evaluator import hand_totals, is_blackjack, can_split
from blackjack_be.utils.settlement import (
    DEFAULT_BLACKJACK_PAYOUT, REASON_DOUBLE_NATURAL, new_stats, settle_round,
    apply_settlement, round_summary
)
from blackjack_be.utils.shoe import DEFAULT_RESHUFFLE_THRESHOLD, build_shoe, draw_card, ensure_capacity

logger = logging.getLogger(__name__)

# --- Round Phases ---
PHASE_BETTING = 'betting'
PHASE_DEALING = 'dealing'
PHASE_PLAYER_TURN = 'playerTurn'
PHASE_DEALER_TURN = 'dealerTurn'
PHASE_ROUND_OVER = 'roundOver'

HAND_ACTIONS = ('hit', 'stand', 'double', 'split')

DEFAULT_TABLE_RULES = {
    'min_bet': DEFAULT_MIN_BET,
    'chip_values': DEFAULT_CHIP_VALUES,
    'shoe_decks': 1,
    'reshuffle_threshold': DEFAULT_RESHUFFLE_THRESHOLD,
    'dealer_hits_soft_17': False,
    'blackjack_payout': DEFAULT_BLACKJACK_PAYOUT,
    'starting_bank': 1000,
    'default_bet': 100,
}

# Flask config key for each table rule.
RULE_CONFIG_KEYS = {
    'min_bet': 'BLACKJACK_MIN_BET',
    'chip_values': 'BLACKJACK_CHIP_VALUES',
    'shoe_decks': 'BLACKJACK_SHOE_DECKS',
    'reshuffle_threshold': 'BLACKJACK_RESHUFFLE_THRESHOLD',
    'dealer_hits_soft_17': 'BLACKJACK_DEALER_HITS_SOFT_17',
    'blackjack_payout': 'BLACKJACK_PAYOUT',
    'starting_bank': 'BLACKJACK_STARTING_BANK',
    'default_bet': 'BLACKJACK_DEFAULT_BET',
}


def table_rules_from_config(config):
    """Builds the table rules dict from a Flask config mapping, falling back to defaults."""
    rules = dict(DEFAULT_TABLE_RULES)
    for rule_name, config_key in RULE_CONFIG_KEYS.items():
        if config.get(config_key) is not None:
            rules[rule_name] = config[config_key]
    rules['chip_values'] = tuple(rules['chip_values'])
    return rules

# --- Per-Hand Logic (shared with the multiplayer table) ---

def _create_player_hand_obj(cards_list=None, bet=0, from_split=False, split_aces=False):
    """
    Creates a new player hand object dictionary.
    Hands produced by a split never count as a natural blackjack.
    """
    if cards_list is None:
        cards_list = []

    total = hand_totals(cards_list)["best"]
    return {
        "cards": list(cards_list),
        "bet": bet,
        "is_done": False,
        "is_standing": False,
        "is_busted": total > 21,
        "is_blackjack": not from_split and is_blackjack(cards_list),
        "is_doubled": False,
        "is_split_aces": split_aces,
        "result": None,
        "result_reason": '',
    }

def _require_open_hand(hands, hand_index):
    if hand_index < 0 or hand_index >= len(hands):
        raise InvalidActionException(f"There is no hand {hand_index} to act on.")
    hand = hands[hand_index]
    if hand["is_done"]:
        raise InvalidActionException(f"Hand {hand_index} is already finished.")
    return hand

def _refresh_bust(hand):
    hand["is_busted"] = hand_totals(hand["cards"])["best"] > 21
    if hand["is_busted"]:
        hand["is_done"] = True
        hand["is_standing"] = False

def _hit(hand, shoe):
    hand["cards"].append(draw_card(shoe))
    _refresh_bust(hand)
    if hand["is_split_aces"]:
        # Split aces take exactly one extra card.
        hand["is_done"] = True
        hand["is_standing"] = not hand["is_busted"]

def _stand(hand):
    hand["is_done"] = True
    hand["is_standing"] = True

def _double(hand, shoe, bankroll):
    if len(hand["cards"]) != 2:
        raise InvalidActionException("Double down is only allowed on the first two cards of a hand.")
    if bankroll < hand["bet"]:
        raise InsufficientFundsException(f"Insufficient bank to double. Need {hand['bet']} more.")

    card = draw_card(shoe)
    debit = hand["bet"]
    hand["bet"] *= 2
    hand["is_doubled"] = True
    hand["cards"].append(card)
    hand["is_done"] = True
    hand["is_standing"] = True
    _refresh_bust(hand)
    return debit

def _split(hands, hand_index, shoe, bankroll):
    hand = hands[hand_index]
    if not can_split(hand):
        raise InvalidActionException("Split is only allowed with two cards of the same rank.")
    if bankroll < hand["bet"]:
        raise InsufficientFundsException(f"Insufficient bank to split. Need {hand['bet']} for the new hand.")

    splitting_aces = hand["cards"][0]["rank"] == 'A'
    first_draw = draw_card(shoe)
    second_draw = draw_card(shoe)

    first_hand = _create_player_hand_obj(
        [hand["cards"][0], first_draw], hand["bet"], from_split=True, split_aces=splitting_aces
    )
    second_hand = _create_player_hand_obj(
        [hand["cards"][1], second_draw], hand["bet"], from_split=True, split_aces=splitting_aces
    )
    if splitting_aces:
        for split_hand in (first_hand, second_hand):
            split_hand["is_done"] = True
            split_hand["is_standing"] = True

    hands[hand_index:hand_index + 1] = [first_hand, second_hand]
    return hand["bet"]

def apply_hand_action(hands, hand_index, action, shoe, bankroll):
    """
    Applies hit/stand/double/split to `hands[hand_index]`, drawing from `shoe`.
    Modifies `hands` in place (a split replaces one hand with two).
    Returns the amount the action costs the player's bankroll.
    """
    if action not in HAND_ACTIONS:
        raise InvalidActionException(f"Invalid action type: {action}")
    hand = _require_open_hand(hands, hand_index)

    if action == 'hit':
        _hit(hand, shoe)
        return 0
    elif action == 'stand':
        _stand(hand)
        return 0
    elif action == 'double':
        return _double(hand, shoe, bankroll)
    else:
        return _split(hands, hand_index, shoe, bankroll)

def next_open_hand_index(hands, after_index):
    """Index of the first hand after `after_index` that is not done, or None."""
    for index in range(after_index + 1, len(hands)):
        if not hands[index]["is_done"]:
            return index
    return None

def hand_options(hand, bankroll):
    """Which actions are currently legal for a hand, given the owner's bankroll."""
    if hand is None or hand["is_done"]:
        return {"can_hit": False, "can_stand": False, "can_double": False, "can_split": False}
    return {
        "can_hit": True,
        "can_stand": True,
        "can_double": len(hand["cards"]) == 2 and bankroll >= hand["bet"],
        "can_split": can_split(hand) and bankroll >= hand["bet"],
    }

# --- Single-Player Table ---

def create_table(rules=None):
    """
    Creates the aggregate holding a single player's table: bankroll, staged
    chips, shoe and every per-round field. All transitions below take this
    dict and mutate it.
    """
    table_rules = dict(DEFAULT_TABLE_RULES)
    if rules:
        table_rules.update(rules)

    return {
        "rules": table_rules,
        "shoe": build_shoe(table_rules['shoe_decks']),
        "bankroll": table_rules['starting_bank'],
        "chip_stack": restage_bet(
            table_rules['default_bet'], table_rules['starting_bank'],
            table_rules['min_bet'], table_rules['chip_values']
        ),
        "bet_pot_chips": [],
        "last_round_bet": table_rules['default_bet'],
        "phase": PHASE_BETTING,
        "hands": [],
        "dealer_cards": [],
        "current_hand_index": 0,
        "dealer_revealed": False,
        "round_delta": 0,
        "stats": new_stats(),
        "message": "Place your bet to begin.",
        "round_summary": None,
        "round_details": '',
        "round_is_gold": False,
    }

def _require_phase(table, phase, action_label):
    if table["phase"] != phase:
        raise InvalidActionException(
            f"Cannot {action_label} during the {table['phase']} phase.",
            details={'phase': table["phase"]}
        )

def place_bet_chip(table, chip):
    _require_phase(table, PHASE_BETTING, 'place a chip')
    rules = table["rules"]
    table["chip_stack"] = place_chip(table["chip_stack"], chip, table["bankroll"], rules['chip_values'])
    return table

def remove_bet_chip(table):
    _require_phase(table, PHASE_BETTING, 'remove a chip')
    table["chip_stack"] = remove_last_chip(table["chip_stack"])
    return table

def all_in(table):
    _require_phase(table, PHASE_BETTING, 'go all in')
    rules = table["rules"]
    table["chip_stack"] = all_in_stack(table["bankroll"], rules['min_bet'], rules['chip_values'])
    return table

def start_round_steps(table):
    """
    Validates the staged bet and performs the betting -> dealing transition
    (reshuffle check, bankroll debit). Returns an iterator over the deal: each
    step deals one card and yields (step_name, payload).
    """
    _require_phase(table, PHASE_BETTING, 'deal')
    rules = table["rules"]
    bet = stack_total(table["chip_stack"])
    if bet < rules['min_bet']:
        raise InvalidActionException(f"Minimum bet is {rules['min_bet']}.")
    if bet > table["bankroll"]:
        raise InsufficientFundsException("Insufficient bankroll for that wager.")

    table["shoe"] = ensure_capacity(table["shoe"], rules['shoe_decks'], rules['reshuffle_threshold'])
    table["phase"] = PHASE_DEALING
    table["message"] = "Dealing..."
    table["bet_pot_chips"] = table["chip_stack"]
    table["chip_stack"] = []
    table["last_round_bet"] = bet
    table["bankroll"] -= bet
    table["round_delta"] = -bet
    table["hands"] = []
    table["dealer_cards"] = []
    table["current_hand_index"] = 0
    table["dealer_revealed"] = False
    table["round_summary"] = None
    table["round_details"] = ''
    table["round_is_gold"] = False
    logger.debug(f"Round started with bet {bet}; bankroll now {table['bankroll']}.")
    return _initial_deal_steps(table, bet)

def _initial_deal_steps(table, bet):
    shoe = table["shoe"]

    first_card = draw_card(shoe)
    table["hands"] = [_create_player_hand_obj([first_card], bet)]
    yield 'player_card', first_card

    up_card = draw_card(shoe)
    table["dealer_cards"] = [up_card]
    yield 'dealer_up_card', up_card

    second_card = draw_card(shoe)
    table["hands"] = [_create_player_hand_obj([first_card, second_card], bet)]
    yield 'player_card', second_card

    hole_card = draw_card(shoe)
    table["dealer_cards"] = [up_card, hole_card]
    yield 'dealer_hole_card', None

    player_hand = table["hands"][0]
    if player_hand["is_blackjack"] or is_blackjack(table["dealer_cards"]):
        # Naturals end the round before any player decision.
        _settle_table(table)
        yield 'settle', table["round_summary"]
        return

    table["phase"] = PHASE_PLAYER_TURN
    table["message"] = "Your turn."
    yield 'player_turn', None

def start_round(table):
    """Runs the whole initial deal without pauses."""
    for _ in start_round_steps(table):
        pass
    return table

def apply_player_action(table, action):
    """
    Applies one player action to the active hand and advances to the next
    open hand. When no open hand remains the table moves to the dealer turn,
    or straight to settlement when every hand busted.
    Returns the phase after the action.
    """
    _require_phase(table, PHASE_PLAYER_TURN, action)
    hands = table["hands"]
    index = table["current_hand_index"]

    debit = apply_hand_action(hands, index, action, table["shoe"], table["bankroll"])
    table["bankroll"] -= debit
    table["round_delta"] -= debit

    if not hands[index]["is_done"]:
        return table["phase"]

    next_index = next_open_hand_index(hands, index)
    if next_index is not None:
        table["current_hand_index"] = next_index
        return table["phase"]

    if all(hand["is_busted"] for hand in hands):
        _settle_table(table)
    else:
        table["phase"] = PHASE_DEALER_TURN
        table["message"] = "Dealer checks the hole card..."
    return table["phase"]

def dealer_turn_steps(table):
    """
    Reveals the hole card, then draws under the dealer policy, then settles.
    Yields ('reveal', None), ('draw', card) per card and ('settle', summary).
    """
    _require_phase(table, PHASE_DEALER_TURN, 'play the dealer')
    return _dealer_steps(table)

def _dealer_steps(table):
    table["dealer_revealed"] = True
    yield 'reveal', None

    rules = table["rules"]
    for card in dealer_draw_steps(table["dealer_cards"], table["shoe"], rules['dealer_hits_soft_17']):
        table["message"] = "Dealer draws..."
        yield 'draw', card

    table["message"] = "Dealer stands. Settling bets..."
    _settle_table(table)
    yield 'settle', table["round_summary"]

def player_action(table, action):
    """Applies an action and, if it ends the player's turn, plays the dealer out immediately."""
    phase = apply_player_action(table, action)
    if phase == PHASE_DEALER_TURN:
        for _ in dealer_turn_steps(table):
            pass
    return table

def _settle_table(table):
    rules = table["rules"]
    result = settle_round(table["hands"], table["dealer_cards"], rules['blackjack_payout'])

    table["bankroll"] += result["payout"]
    table["round_delta"] += result["payout"]
    apply_settlement(table["stats"], result["tallies"])

    summary, details = round_summary(result["tallies"], result["reasons"])
    table["round_summary"] = summary
    table["round_details"] = details
    table["round_is_gold"] = REASON_DOUBLE_NATURAL in result["reasons"]
    table["phase"] = PHASE_ROUND_OVER
    table["dealer_revealed"] = True

    if summary == 'Win':
        table["message"] = "Round complete: you came out ahead."
    elif summary == 'Lose':
        table["message"] = "Round complete: dealer had the edge."
    else:
        table["message"] = "Round complete: mostly even."
    logger.info(
        f"Round settled: {summary} ({details}); payout {result['payout']}, bankroll {table['bankroll']}."
    )
    return result

def next_round(table):
    """roundOver -> betting: clears the round and re-stages the previous bet where affordable."""
    _require_phase(table, PHASE_ROUND_OVER, 'start the next round')
    rules = table["rules"]
    table["chip_stack"] = restage_bet(
        table["last_round_bet"], table["bankroll"], rules['min_bet'], rules['chip_values']
    )
    table["hands"] = []
    table["dealer_cards"] = []
    table["bet_pot_chips"] = []
    table["current_hand_index"] = 0
    table["phase"] = PHASE_BETTING
    table["dealer_revealed"] = False
    table["round_delta"] = 0
    table["round_summary"] = None
    table["round_details"] = ''
    table["round_is_gold"] = False
    table["message"] = "Place your bet to begin."
    return table

def reset_bankroll(table):
    """Restores the starting bank and default bet. Stats restart from zero."""
    _require_phase(table, PHASE_BETTING, 'reset the bankroll')
    rules = table["rules"]
    table["bankroll"] = rules['starting_bank']
    table["last_round_bet"] = rules['default_bet']
    table["stats"] = new_stats()
    table["chip_stack"] = restage_bet(
        rules['default_bet'], rules['starting_bank'], rules['min_bet'], rules['chip_values']
    )
    table["bet_pot_chips"] = []
    table["message"] = f"Bankroll reset to {rules['starting_bank']}."
    return table

# --- Read Helpers ---

def available_actions(table):
    if table["phase"] != PHASE_PLAYER_TURN:
        return hand_options(None, table["bankroll"])
    hands = table["hands"]
    index = table["current_hand_index"]
    active = hands[index] if index < len(hands) else None
    return hand_options(active, table["bankroll"])

def dealer_visible(table):
    return table["dealer_revealed"] or table["phase"] == PHASE_ROUND_OVER

def dealer_total_text(table):
    """Up-card total while the hole card is hidden, full total (marked soft) afterwards."""
    dealer_cards = table["dealer_cards"]
    if not dealer_cards:
        return '--'
    if not dealer_visible(table):
        return str(hand_totals(dealer_cards[:1])["best"])
    totals = hand_totals(dealer_cards)
    return f"{totals['best']} (soft)" if totals["is_soft"] else str(totals["best"])

def available_chips(table):
    """Denominations that still fit in the bankroll on top of the staged bet."""
    remaining = table["bankroll"] - stack_total(table["chip_stack"])
    return [value for value in table["rules"]['chip_values'] if value <= remaining]

def table_bet(table):
    if table["phase"] == PHASE_BETTING:
        return stack_total(table["chip_stack"])
    return sum(hand["bet"] for hand in table["hands"])

"""
Payouts, win/lose/push classification and aggregate statistics.

Payout amounts are what the player gets back for a hand, stake included:
win -> 2x bet, push -> 1x bet, lose -> 0, natural blackjack -> bet plus the
blackjack ratio (3:2 by default) of the bet, rounded down to whole units.
"""
from blackjack_be.utils.hand_evaluator import hand_totals, is_blackjack

DEFAULT_BLACKJACK_PAYOUT = 1.5

REASON_PLAYER_BUST = 'Player Bust'
REASON_DEALER_BUST = 'Dealer Bust'
REASON_HIGHER_TOTAL = 'Higher Total'
REASON_LOWER_TOTAL = 'Lower Total'
REASON_PUSH = 'Push'
REASON_NATURAL = 'Natural Blackjack'
REASON_DEALER_NATURAL = 'Dealer Blackjack'
REASON_DOUBLE_NATURAL = 'Double Natural Blackjack'


def new_stats():
    return {"rounds": 0, "wins": 0, "losses": 0, "pushes": 0}

def settle_hand(hand, dealer_cards, blackjack_payout=DEFAULT_BLACKJACK_PAYOUT):
    """
    Determines the outcome of one player hand against the dealer's final cards.
    Returns (amount_returned_to_player, result, reason).
    """
    bet = hand["bet"]

    # A busted hand loses even when the dealer busts as well.
    if hand["is_busted"]:
        return 0, 'lose', REASON_PLAYER_BUST

    dealer_natural = is_blackjack(dealer_cards)
    if hand["is_blackjack"]:
        if dealer_natural:
            return bet, 'push', REASON_DOUBLE_NATURAL
        return bet + int(bet * blackjack_payout), 'win', REASON_NATURAL
    if dealer_natural:
        return 0, 'lose', REASON_DEALER_NATURAL

    player_total = hand_totals(hand["cards"])["best"]
    dealer_total = hand_totals(dealer_cards)["best"]

    if dealer_total > 21:
        return bet * 2, 'win', REASON_DEALER_BUST
    if player_total > dealer_total:
        return bet * 2, 'win', REASON_HIGHER_TOTAL
    if player_total < dealer_total:
        return 0, 'lose', REASON_LOWER_TOTAL
    return bet, 'push', REASON_PUSH

def settle_round(hands, dealer_cards, blackjack_payout=DEFAULT_BLACKJACK_PAYOUT):
    """
    Settles every hand in place (sets result, result_reason and marks it done)
    and returns the round summary:
    {"payout": int, "tallies": {"wins", "losses", "pushes"}, "reasons": [...]}.
    """
    payout = 0
    tallies = {"wins": 0, "losses": 0, "pushes": 0}
    reasons = []

    for hand in hands:
        amount, result, reason = settle_hand(hand, dealer_cards, blackjack_payout)
        hand["result"] = result
        hand["result_reason"] = reason
        hand["is_done"] = True
        payout += amount
        reasons.append(reason)
        if result == 'win':
            tallies["wins"] += 1
        elif result == 'lose':
            tallies["losses"] += 1
        else:
            tallies["pushes"] += 1

    return {"payout": payout, "tallies": tallies, "reasons": reasons}

def apply_settlement(stats, tallies):
    """One round counted; hand outcomes summed into the cumulative counters."""
    stats["rounds"] += 1
    stats["wins"] += tallies["wins"]
    stats["losses"] += tallies["losses"]
    stats["pushes"] += tallies["pushes"]
    return stats

def round_summary(tallies, reasons):
    """Returns (summary, details), e.g. ("Win", "Hand 1: Dealer Bust; Hand 2: Push")."""
    if tallies["wins"] > tallies["losses"]:
        summary = 'Win'
    elif tallies["wins"] < tallies["losses"]:
        summary = 'Lose'
    else:
        summary = 'Tie'

    if len(reasons) == 1:
        details = reasons[0]
    else:
        details = "; ".join(f"Hand {index + 1}: {reason}" for index, reason in enumerate(reasons))
    return summary, details

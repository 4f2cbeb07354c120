from blackjack_be.utils.hand_evaluator import hand_totals
from blackjack_be.utils.shoe import draw_card


def dealer_should_hit(totals, hits_soft_17=False):
    """
    Dealer draws below 17. On 17 the dealer only draws when the total is
    soft and the table plays the hit-soft-17 rule.
    """
    if totals["best"] < 17:
        return True
    if totals["best"] == 17 and totals["is_soft"]:
        return hits_soft_17
    return False

def dealer_draw_steps(dealer_cards, shoe, hits_soft_17=False):
    """
    Draws for the dealer one card per step until the policy says stand or the
    dealer busts. Appends to `dealer_cards` and yields each drawn card.
    """
    while True:
        totals = hand_totals(dealer_cards)
        if totals["best"] > 21 or not dealer_should_hit(totals, hits_soft_17):
            break
        card = draw_card(shoe)
        dealer_cards.append(card)
        yield card

def play_dealer_hand(dealer_cards, shoe, hits_soft_17=False):
    """Runs the dealer policy to completion and returns the dealer's final totals."""
    for _ in dealer_draw_steps(dealer_cards, shoe, hits_soft_17):
        pass
    return hand_totals(dealer_cards)

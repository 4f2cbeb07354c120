FACE_RANKS = ['K', 'Q', 'J']


def card_value(rank):
    """
    Determines the Blackjack value of a rank.
    Returns 11 for Ace, 10 for face cards and the face value otherwise.
    Example: "A" -> 11, "K" -> 10, "7" -> 7.
    """
    if rank == 'A':
        return 11
    elif rank in FACE_RANKS:
        return 10
    else:
        return int(rank)

def hand_totals(cards):
    """
    Calculates the value of a list of cards, counting Aces as 1 or 11.
    Returns a dict: {"best": total, "is_soft": bool}, where is_soft is True
    while at least one Ace is still counted as 11.
    """
    total = 0
    soft_aces = 0
    for card in cards:
        value = card_value(card["rank"])
        if value == 11:
            soft_aces += 1
        total += value

    while total > 21 and soft_aces > 0:
        total -= 10  # Change an Ace from 11 to 1
        soft_aces -= 1

    is_soft = soft_aces > 0 and total <= 21
    return {"best": total, "is_soft": is_soft}

def is_blackjack(cards):
    return len(cards) == 2 and hand_totals(cards)["best"] == 21

def can_split(hand):
    """A hand can be split when it holds exactly two cards of the same rank."""
    cards = hand["cards"]
    if len(cards) != 2:
        return False
    return cards[0]["rank"] == cards[1]["rank"]

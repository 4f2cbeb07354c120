import logging
import secrets

from blackjack_be.exceptions import EmptyShoeException

logger = logging.getLogger(__name__)

# --- Card Constants ---
SUITS = ['spades', 'hearts', 'diamonds', 'clubs']
RANKS = ['A', 'K', 'Q', 'J', '10', '9', '8', '7', '6', '5', '4', '3', '2']

CARDS_PER_DECK = len(SUITS) * len(RANKS)
DEFAULT_RESHUFFLE_THRESHOLD = 15


def _create_card(deck_number, rank, suit):
    """Creates a card dict with an id that stays unique across every deck in the shoe."""
    return {
        "id": f"{deck_number}-{rank}-{suit}-{secrets.token_hex(4)}",
        "rank": rank,
        "suit": suit,
    }

def _shuffle_deck(deck):
    """Shuffles the deck in place using a cryptographically secure RNG."""
    secure_random = secrets.SystemRandom()
    secure_random.shuffle(deck)

def build_shoe(deck_count=1):
    """Builds `deck_count` full decks and returns them as one shuffled list of cards."""
    if deck_count < 1:
        raise ValueError("At least one deck is required to build a shoe.")
    shoe = [
        _create_card(deck_number, rank, suit)
        for deck_number in range(deck_count)
        for suit in SUITS
        for rank in RANKS
    ]
    _shuffle_deck(shoe)
    return shoe

def draw_card(shoe):
    """Removes and returns the first card of the shoe. Modifies the shoe list."""
    if not shoe:
        logger.critical("Attempted to draw from an empty shoe.")
        raise EmptyShoeException()
    return shoe.pop(0)

def ensure_capacity(shoe, deck_count=1, threshold=DEFAULT_RESHUFFLE_THRESHOLD):
    """
    Returns `shoe` unchanged while it still holds at least `threshold` cards,
    otherwise a freshly built and shuffled shoe. Only call this between rounds.
    """
    if len(shoe) >= threshold:
        return shoe
    logger.info(f"Shoe down to {len(shoe)} cards (threshold {threshold}), reshuffling {deck_count} deck(s).")
    return build_shoe(deck_count)

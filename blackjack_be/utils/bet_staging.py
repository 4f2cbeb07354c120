"""
Chip accounting for the bet staged before a round.

Staging is pure bookkeeping: nothing here touches a bankroll. The bankroll is
only debited when the round starts.
"""
from blackjack_be.exceptions import InvalidActionException, InsufficientFundsException

DEFAULT_CHIP_VALUES = (5, 50, 100, 500, 1000, 5000, 10000)
DEFAULT_MIN_BET = 5


def stack_total(stack):
    return sum(stack)

def max_affordable_bet(bankroll, min_bet=DEFAULT_MIN_BET):
    """Largest multiple of `min_bet` not exceeding `bankroll` (0 below the minimum)."""
    if bankroll < min_bet:
        return 0
    return (bankroll // min_bet) * min_bet

def stack_for_amount(amount, chip_values=DEFAULT_CHIP_VALUES):
    """
    Greedy decomposition of `amount` into chips, largest denomination first.
    `amount` must be a non-negative multiple of the smallest denomination.
    """
    smallest = min(chip_values)
    if amount < 0 or amount % smallest != 0:
        raise ValueError(f"Bet amount {amount} is not a multiple of the smallest chip ({smallest}).")

    remaining = amount
    stack = []
    for value in sorted(chip_values, reverse=True):
        while remaining >= value:
            stack.append(value)
            remaining -= value
    return stack

def place_chip(stack, chip, bankroll, chip_values=DEFAULT_CHIP_VALUES):
    """Returns a new stack with `chip` added on top."""
    if chip not in chip_values:
        raise InvalidActionException(
            f"Chip {chip} is not a table denomination.",
            details={'chip_values': list(chip_values)}
        )
    if stack_total(stack) + chip > bankroll:
        raise InsufficientFundsException(
            f"Adding a {chip} chip would exceed your bank of {bankroll}."
        )
    return list(stack) + [chip]

def remove_last_chip(stack):
    if not stack:
        raise InvalidActionException("There are no chips to remove.")
    return list(stack[:-1])

def all_in_stack(bankroll, min_bet=DEFAULT_MIN_BET, chip_values=DEFAULT_CHIP_VALUES):
    affordable = max_affordable_bet(bankroll, min_bet)
    if affordable <= 0:
        raise InsufficientFundsException(
            f"Bank of {bankroll} is below the minimum bet of {min_bet}."
        )
    return stack_for_amount(affordable, chip_values)

def restage_bet(last_bet, bankroll, min_bet=DEFAULT_MIN_BET, chip_values=DEFAULT_CHIP_VALUES):
    """Chips for the next round: the previous bet, capped by what the bankroll still affords."""
    target = min(last_bet, max_affordable_bet(bankroll, min_bet))
    if target <= 0:
        return []
    return stack_for_amount(target, chip_values)

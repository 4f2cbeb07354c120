import pytest

from blackjack_be.utils.hand_evaluator import card_value, hand_totals, is_blackjack, can_split


def cards(*ranks):
    return [{"id": f"t-{i}", "rank": rank, "suit": "hearts"} for i, rank in enumerate(ranks)]


@pytest.mark.parametrize("rank, expected", [
    ('A', 11), ('K', 10), ('Q', 10), ('J', 10), ('10', 10), ('7', 7), ('2', 2),
])
def test_card_value(rank, expected):
    assert card_value(rank) == expected

def test_two_aces_and_nine_is_soft_21():
    assert hand_totals(cards('A', 'A', '9')) == {"best": 21, "is_soft": True}

def test_two_tens_is_hard_20():
    assert hand_totals(cards('10', '10')) == {"best": 20, "is_soft": False}

def test_ace_king_is_soft_21_and_blackjack():
    assert hand_totals(cards('A', 'K')) == {"best": 21, "is_soft": True}
    assert is_blackjack(cards('A', 'K'))

def test_hard_bust():
    totals = hand_totals(cards('10', '10', '5'))
    assert totals["best"] == 25
    assert totals["is_soft"] is False

def test_aces_reduce_one_at_a_time():
    assert hand_totals(cards('A', 'A')) == {"best": 12, "is_soft": True}
    assert hand_totals(cards('A', '6', 'K')) == {"best": 17, "is_soft": False}
    assert hand_totals(cards('A', 'A', 'A', 'A')) == {"best": 14, "is_soft": True}

def test_empty_hand():
    assert hand_totals([]) == {"best": 0, "is_soft": False}

def test_three_card_21_is_not_blackjack():
    assert not is_blackjack(cards('7', '7', '7'))
    assert not is_blackjack(cards('10', '9'))

def test_can_split_requires_matching_ranks():
    assert can_split({"cards": cards('8', '8')})
    assert can_split({"cards": cards('A', 'A')})
    assert not can_split({"cards": cards('K', 'Q')}) # Equal value, different rank
    assert not can_split({"cards": cards('8', '8', '8')})

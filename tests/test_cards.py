import random
from collections import Counter

import pytest

from tressette.cards import CARD_ORDER, CARD_VALUES, RANKS, Card, DealError, Deck, Suit


def test_suit_values_match_wire_names():
    wire_names = [Card.from_rank(suit, "3").to_json()["Suit"] for suit in Suit]
    assert wire_names == ["Denari", "Spade", "Bastoni", "Kope"]
    assert str(Card.from_rank("Kope", "3").suit) == "Kope"


def test_from_rank_uses_tables():
    card = Card.from_rank(Suit.DENARI, "1")
    assert card.value == CARD_VALUES["1"]
    assert card.order == CARD_ORDER["1"]
    assert card.suit is Suit.DENARI


def test_from_rank_accepts_suit_string():
    assert Card.from_rank("Spade", "3") == Card.from_rank(Suit.SPADE, "3")


def test_from_rank_unknown_rank():
    with pytest.raises(ValueError):
        Card.from_rank(Suit.DENARI, "8")


def test_from_rank_unknown_suit():
    with pytest.raises(ValueError):
        Card.from_rank("Coppe", "3")


def test_card_to_json():
    assert Card.from_rank(Suit.DENARI, "1").to_json() == {
        "Suit": "Denari",
        "Rank": "1",
        "Value": 3,
        "Order": 8,
    }


def test_new_deck_is_full_and_unique():
    deck = Deck()
    assert len(deck) == len(Suit) * len(RANKS)
    assert len(set(deck.cards)) == len(deck.cards)


def test_new_deck_order():
    deck = Deck()
    assert [c.rank for c in deck.cards[: len(RANKS)]] == list(RANKS)
    assert all(c.suit is Suit.DENARI for c in deck.cards[: len(RANKS)])
    assert deck.cards[-1].suit is Suit.KOPE


def test_each_suit_has_every_rank():
    counts = Counter(c.suit for c in Deck().cards)
    assert set(counts.values()) == {len(RANKS)}


def test_strength_order_within_suit():
    cards = [c for c in Deck().cards if c.suit is Suit.BASTONI]
    strongest_first = [c.rank for c in sorted(cards, key=lambda c: c.order, reverse=True)]
    assert strongest_first == ["3", "2", "1", "13", "12", "11", "7", "6", "5", "4"]


def test_total_scaled_value_of_deck():
    assert sum(c.value for c in Deck().cards) == 32


def test_deal_four_hands_of_ten():
    deck = Deck()
    original = list(deck.cards)
    hands = deck.deal(4, 10)
    assert [len(h) for h in hands] == [10, 10, 10, 10]
    assert [c for hand in hands for c in hand] == original
    assert deck.cards == []


def test_deal_partial_empties_deck():
    deck = Deck()
    hands = deck.deal(2, 3)
    assert len(hands) == 2
    assert all(len(h) == 3 for h in hands)
    assert len(deck) == 0


def test_deal_too_many_raises_and_keeps_cards():
    deck = Deck()
    with pytest.raises(DealError):
        deck.deal(5, 10)
    assert len(deck) == len(Suit) * len(RANKS)


def test_deal_from_empty_deck_raises():
    deck = Deck()
    deck.deal(4, 10)
    with pytest.raises(DealError):
        deck.deal(1, 1)


def test_shuffle_is_permutation():
    deck = Deck()
    original = list(deck.cards)
    deck.shuffle(random.Random(7))
    assert Counter(deck.cards) == Counter(original)


def test_shuffle_with_same_seed_is_reproducible():
    first, second = Deck(), Deck()
    first.shuffle(random.Random(42))
    second.shuffle(random.Random(42))
    assert first.cards == second.cards


def test_shuffle_without_rng_keeps_cards():
    deck = Deck()
    deck.shuffle()
    assert set(deck.cards) == set(Deck().cards)
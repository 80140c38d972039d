"""Cards, suits and the 40-card Tressette deck."""

import logging
import random
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)


class Suit(str, Enum):
    """The four suits of an Italian deck."""

    DENARI = "Denari"
    SPADE = "Spade"
    BASTONI = "Bastoni"
    KOPE = "Kope"

    def __str__(self) -> str:
        return self.value


# Ranks in display order; strength is given by CARD_ORDER.
RANKS = ("13", "12", "11", "1", "7", "6", "5", "4", "3", "2")

# Strength within a suit: higher beats lower.
CARD_ORDER = {
    "3": 10,
    "2": 9,
    "1": 8,
    "4": 1,
    "5": 2,
    "6": 3,
    "7": 4,
    "11": 5,  # Fante
    "12": 6,  # Cavallo
    "13": 7,  # Re
}

# Scoring values, scaled by three so that a third of a point is 1.
CARD_VALUES = {
    "1": 3,
    "2": 1,
    "3": 1,
    "4": 0,
    "5": 0,
    "6": 0,
    "7": 0,
    "11": 1,
    "12": 1,
    "13": 1,
}


@dataclass(frozen=True)
class Card:
    """A single card with its scaled scoring value and strength."""

    suit: Suit
    rank: str
    value: int
    order: int

    def to_json(self) -> dict:
        """Return the wire representation of the card."""
        return {
            "Suit": str(self.suit),
            "Rank": self.rank,
            "Value": self.value,
            "Order": self.order,
        }

    @staticmethod
    def from_rank(suit, rank: str) -> "Card":
        """Build the card of the given suit and rank with its standard value and order."""
        try:
            order = CARD_ORDER[rank]
            value = CARD_VALUES[rank]
        except KeyError:
            raise ValueError(f"unknown rank {rank!r}") from None
        return Card(suit=Suit(suit), rank=rank, value=value, order=order)


class DealError(ValueError):
    """Raised when the deck holds too few cards for a deal."""


class Deck:
    """A standard 40-card Tressette deck."""

    def __init__(self) -> None:
        self.cards: list[Card] = [Card.from_rank(suit, rank) for suit in Suit for rank in RANKS]

    def __len__(self) -> int:
        return len(self.cards)

    def shuffle(self, rng: random.Random | None = None) -> None:
        """Shuffle the cards in place."""
        (rng if rng is not None else random.Random()).shuffle(self.cards)
        log.debug("Deck shuffled.")

    def deal(self, num_players: int, cards_per_player: int) -> list[list[Card]]:
        """Split the top of the deck into hands and empty the deck."""
        needed = num_players * cards_per_player
        if len(self.cards) < needed:
            raise DealError(
                f"not enough cards in deck ({len(self.cards)}) to deal "
                f"{cards_per_player} cards to {num_players} players"
            )
        hands = [
            self.cards[start:start + cards_per_player]
            for start in range(0, needed, cards_per_player)
        ] if cards_per_player > 0 else [[] for _ in range(num_players)]
        self.cards = []
        log.debug("Dealt %d cards to %d players.", cards_per_player, num_players)
        return hands
"""Players and their hands."""

from dataclasses import dataclass, field
from enum import IntEnum

from .cards import Card


class TeamEnum(IntEnum):
    """The team a player asks to join."""

    RED = 1
    BLUE = 2


@dataclass
class Player:
    """A player seated at a game."""

    id: str
    name: str
    desired_team: int
    hand: list[Card] = field(default_factory=list)

    def add_card(self, card: Card) -> None:
        """Put a card in the hand."""
        self.hand.append(card)

    def remove_card(self, card: Card) -> None:
        """Take one copy of the card out of the hand; ValueError if absent."""
        try:
            self.hand.remove(card)
        except ValueError:
            raise ValueError(f"card {card.rank} {card.suit} not in hand") from None

    def find_card(self, suit, rank: str) -> Card | None:
        """Return the card of this suit and rank in the hand, or None."""
        return next((c for c in self.hand if c.suit == suit and c.rank == rank), None)

    def has_suit(self, suit) -> bool:
        """Tell whether any card in the hand is of the suit."""
        return any(c.suit == suit for c in self.hand)
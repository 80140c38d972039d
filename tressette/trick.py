"""Tricks and how they are won."""

from dataclasses import dataclass, field

from .cards import Card


@dataclass(frozen=True)
class PlayedCard:
    """A card together with the seat of the player who played it."""

    card: Card
    player_index: int

    def to_json(self) -> dict:
        """Return the wire representation."""
        return {"card": self.card.to_json(), "player_index": self.player_index}


class TrickError(Exception):
    """Raised when a trick's winner cannot be determined."""


@dataclass
class Trick:
    """The cards played in the current trick."""

    cards: list[PlayedCard] = field(default_factory=list)
    winner_index: int = -1

    def add_card(self, card: Card, player_index: int) -> None:
        """Record a card played by the player at the given seat."""
        self.cards.append(PlayedCard(card, player_index))

    def determine_winner(self, led_suit) -> PlayedCard:
        """Return the strongest card of the led suit and record its player as winner."""
        if not self.cards:
            raise TrickError("cannot determine winner of an empty trick")
        following = [pc for pc in self.cards if pc.card.suit == led_suit]
        if not following:
            raise TrickError(f"no card of led suit {led_suit} found in trick")
        # max keeps the first of equal orders, as a strict comparison would.
        winner = max(following, key=lambda pc: pc.card.order)
        self.winner_index = winner.player_index
        return winner
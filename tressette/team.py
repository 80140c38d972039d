"""Teams of two players."""

import uuid
from dataclasses import dataclass, field

from .player import Player


@dataclass
class Team:
    """A team with a logical number, two players and a running score."""

    team_number: int
    players: tuple[Player, Player]
    score: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def add_score(self, points: int) -> None:
        """Add points to the score."""
        self.score += points

    def reset_score(self) -> None:
        """Set the score back to zero."""
        self.score = 0
"""Four-player Tressette: card rules, game state, messages and a lobby hub."""

__version__ = "0.1.0"
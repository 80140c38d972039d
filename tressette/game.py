"""The Tressette game state machine for one table of four players."""

import logging
import random
import threading
import uuid
from collections.abc import Callable
from enum import Enum

from .cards import Card, DealError, Deck
from .player import Player
from .protocol import (
    DeclarePayload,
    DealHandPayload,
    ErrorPayload,
    GameOverPayload,
    GameStartPayload,
    GameStatePayload,
    Message,
    PlayCardPayload,
    PlayerInfo,
    PlayerLeftPayload,
    PlayerPlayedCardPayload,
    RoundEndPayload,
    TeamInfo,
    TrickEndPayload,
    YourTurnPayload,
    new_message,
)
from .seating import arrange_seats
from .team import Team
from .trick import Trick

log = logging.getLogger(__name__)

MessageSender = Callable[[str, bytes], None]

HAND_SIZE = 10
LAST_TRICK_BONUS = 3  # one point, scaled by three
POINT_SCALE = 3


class GameState(str, Enum):
    """The phases a game moves through."""

    WAITING = "Waiting"
    DEALING = "Dealing"
    PLAYING = "Playing"
    DECLARING = "Declaring"
    ROUND_OVER = "RoundOver"
    GAME_OVER = "GameOver"


class Game:
    """One game of Tressette: four seated players in two alternating teams."""

    def __init__(self, players, target_score: int) -> None:
        seats = arrange_seats(players)
        self.id: str = str(uuid.uuid4())
        self.players: tuple[Player, Player, Player, Player] = seats
        self.teams: tuple[Team, Team] = (
            Team(1, (seats[0], seats[2])),
            Team(2, (seats[1], seats[3])),
        )
        self.deck = Deck()
        self.current_trick = Trick()
        self.player_turn_index = 0
        self.game_state = GameState.DEALING
        self.target_score = target_score
        self.cards_on_table: list[Card] = []
        self.led_suit = None
        self.last_trick_winner_index = -1
        self.rng = random.Random()
        self._sender: MessageSender | None = None
        self._lock = threading.Lock()

    # --- public entry points ---

    def start(self, sender: MessageSender) -> None:
        """Announce the game to its players and deal the first round."""
        with self._lock:
            self._sender = sender
            log.info("Game %s: starting.", self.id)
            player_infos = [
                PlayerInfo(id=p.id, name=p.name, position=i) for i, p in enumerate(self.players)
            ]
            team_infos = [
                TeamInfo(
                    id=team.id,
                    players=[
                        PlayerInfo(id=team.players[0].id, name=team.players[0].name, position=i * 2),
                        PlayerInfo(id=team.players[1].id, name=team.players[1].name, position=i * 2 + 1),
                    ],
                    score=team.score,
                    team_number=team.team_number,
                )
                for i, team in enumerate(self.teams)
            ]
            self._broadcast(
                new_message(
                    "game_start",
                    GameStartPayload(game_id=self.id, players=player_infos, teams=team_infos),
                )
            )
            self._start_round()

    def handle_player_action(self, client_id: str, msg: Message) -> None:
        """Process a game action sent by a player."""
        with self._lock:
            if self.game_state is GameState.GAME_OVER:
                log.info("Game %s: action from %s after game over.", self.id, client_id)
                self._send_error(client_id, "Game is already over.")
                return

            player_index = self.get_player_index(client_id)
            if player_index == -1:
                log.warning("Game %s: action from unknown client %s", self.id, client_id)
                return

            if msg.type == "play_card":
                self._handle_play_card(client_id, player_index, msg)
            elif msg.type == "declare":
                self._handle_declare(client_id, msg)
            else:
                log.warning("Game %s: unhandled action %r from %s", self.id, msg.type, client_id)

    def handle_player_disconnect(self, client_id: str) -> None:
        """End the game by forfeit when a player leaves."""
        with self._lock:
            if self.game_state is GameState.GAME_OVER:
                log.info("Game %s: %s disconnected after game over.", self.id, client_id)
                return
            player_index = self.get_player_index(client_id)
            if player_index == -1:
                log.info("Game %s: disconnect from unknown client %s", self.id, client_id)
                return

            log.info(
                "Game %s: player %s (%s) disconnected.",
                self.id, client_id, self.players[player_index].name,
            )
            self.game_state = GameState.GAME_OVER
            self._broadcast(new_message("player_left", PlayerLeftPayload(player_id=client_id)))

            winning_team = self.teams[1] if player_index in (0, 2) else self.teams[0]
            self._broadcast(
                new_message(
                    "game_over",
                    GameOverPayload(
                        winning_team_id=winning_team.id,
                        final_score_t1=self.teams[0].score,
                        final_score_t2=self.teams[1].score,
                    ),
                )
            )
            log.info(
                "Game %s: team %d wins by forfeit.", self.id, winning_team.team_number
            )

    def get_player_by_id(self, player_id: str) -> Player | None:
        """Return the seated player with this id, or None."""
        return next((p for p in self.players if p.id == player_id), None)

    def get_player_index(self, player_id: str) -> int:
        """Return the seat (0-3) of the player with this id, or -1."""
        return next((i for i, p in enumerate(self.players) if p.id == player_id), -1)

    # --- actions ---

    def _handle_play_card(self, client_id: str, player_index: int, msg: Message) -> None:
        if self.game_state is not GameState.PLAYING:
            self._send_error(client_id, "Cannot play card now.")
            return
        if player_index != self.player_turn_index:
            self._send_error(client_id, "Not your turn.")
            return
        try:
            payload = msg.decode(PlayCardPayload)
        except ValueError as exc:
            log.warning("Game %s: bad play_card payload from %s: %s", self.id, client_id, exc)
            self._send_error(client_id, "Invalid play_card message.")
            return

        card = self.players[player_index].find_card(payload.suit, payload.rank)
        if card is None:
            self._send_error(client_id, "Card not in your hand.")
            return
        if not self._play_card(player_index, card):
            self._send_error(client_id, "Invalid move.")

    def _handle_declare(self, client_id: str, msg: Message) -> None:
        if self.game_state is not GameState.PLAYING:
            self._send_error(client_id, "Cannot declare now.")
            return
        try:
            payload = msg.decode(DeclarePayload)
        except ValueError as exc:
            log.warning("Game %s: bad declare payload from %s: %s", self.id, client_id, exc)
            self._send_error(client_id, "Invalid declare message.")
            return
        log.info("Game %s: declaration %r from %s refused.", self.id, payload.declaration_type, client_id)
        self._send_error(client_id, "Declarations are not supported.")

    # --- round and trick flow ---

    def _start_round(self) -> None:
        if self.game_state is GameState.GAME_OVER:
            log.info("Game %s: cannot start round, game is over.", self.id)
            return
        self.game_state = GameState.DEALING
        for team in self.teams:
            team.reset_score()
        self.deck = Deck()
        self.deck.shuffle(self.rng)
        self.cards_on_table = []
        self.current_trick = Trick()
        self.led_suit = None
        self.player_turn_index = max(self.last_trick_winner_index, 0)

        try:
            hands = self.deck.deal(len(self.players), HAND_SIZE)
        except DealError as exc:
            log.error("Game %s: %s", self.id, exc)
            self.game_state = GameState.GAME_OVER
            self._broadcast_error("Internal server error during dealing.")
            return

        for player, hand in zip(self.players, hands):
            player.hand = hand
            self._send_to_player(player.id, new_message("deal_hand", DealHandPayload(hand=list(hand))))

        self.game_state = GameState.PLAYING
        log.info("Game %s: round started, seat %d leads.", self.id, self.player_turn_index)
        self._broadcast_game_state()
        self._notify_current_player_turn()

    def _is_valid_play(self, player: Player, card: Card) -> bool:
        if not self.current_trick.cards:
            return True
        if player.has_suit(self.led_suit):
            return card.suit == self.led_suit
        return True

    def _play_card(self, player_index: int, card: Card) -> bool:
        player = self.players[player_index]
        if not self._is_valid_play(player, card):
            log.info("Game %s: seat %d tried invalid card %s %s", self.id, player_index, card.rank, card.suit)
            return False

        try:
            player.remove_card(card)
        except ValueError:
            self._broadcast_error("Internal server error: Hand inconsistency.")
            self.game_state = GameState.GAME_OVER
            raise RuntimeError(f"game {self.id}: hand inconsistency") from None

        if not self.current_trick.cards:
            self.led_suit = card.suit
        self.current_trick.add_card(card, player_index)
        self.cards_on_table.append(card)
        log.debug("Game %s: seat %d played %s %s", self.id, player_index, card.rank, card.suit)

        self._send_to_player(
            player.id,
            new_message("you_played", PlayerPlayedCardPayload(player_id=player.id, card=card)),
        )

        if len(self.current_trick.cards) == len(self.players):
            self._broadcast_game_state()
            self._end_trick()
        else:
            self.player_turn_index = (self.player_turn_index + 1) % len(self.players)
            self._broadcast_game_state()
            self._notify_current_player_turn()
        return True

    def _end_trick(self) -> None:
        winner = self.current_trick.determine_winner(self.led_suit)
        self.last_trick_winner_index = winner.player_index
        winning_player = self.players[winner.player_index]
        winning_team = self.teams[winner.player_index % 2]

        trick_cards = [pc.card for pc in self.current_trick.cards]
        points = sum(card.value for card in trick_cards)
        is_last_trick = not self.players[0].hand
        if is_last_trick:
            points += LAST_TRICK_BONUS

        winning_team.add_score(points)
        log.info(
            "Game %s: trick won by seat %d (%s), %d scaled points to team %d.",
            self.id, winner.player_index, winning_player.name, points, winning_team.team_number,
        )
        self._broadcast(
            new_message(
                "trick_end",
                TrickEndPayload(winner=winner, winner_id=winning_player.id, cards=trick_cards, points=points),
            )
        )

        self.cards_on_table = []
        self.current_trick = Trick()
        self.led_suit = None
        self.player_turn_index = winner.player_index

        if is_last_trick:
            self._end_round()
        else:
            self._broadcast_game_state()
            self._notify_current_player_turn()

    def _end_round(self) -> None:
        log.info("Game %s: round ended.", self.id)
        self.game_state = GameState.ROUND_OVER
        for team in self.teams:
            team.add_score(team.score)

        t1, t2 = self.teams
        self._broadcast(
            new_message(
                "round_end",
                RoundEndPayload(
                    team1_round_score=t1.score,
                    team2_round_score=t2.score,
                    team1_total_score=t1.score,
                    team2_total_score=t2.score,
                ),
            )
        )

        scaled_target = self.target_score * POINT_SCALE
        winning_team = next((team for team in self.teams if team.score >= scaled_target), None)
        if winning_team is None:
            self._start_round()
            return

        self.game_state = GameState.GAME_OVER
        log.info("Game %s: game over, team %d wins.", self.id, winning_team.team_number)
        self._broadcast(
            new_message(
                "game_over",
                GameOverPayload(
                    winning_team_id=winning_team.id,
                    final_score_t1=t1.score,
                    final_score_t2=t2.score,
                ),
            )
        )

    # --- messaging ---

    def _broadcast(self, message: bytes) -> None:
        if self._sender is None:
            log.error("Game %s: no sender set for broadcast.", self.id)
            return
        for player in self.players:
            self._sender(player.id, message)

    def _send_to_player(self, player_id: str, message: bytes) -> None:
        if self._sender is None:
            log.error("Game %s: no sender set when sending to %s.", self.id, player_id)
            return
        self._sender(player_id, message)

    def _send_error(self, player_id: str, text: str) -> None:
        self._send_to_player(player_id, new_message("error", ErrorPayload(message=text)))

    def _broadcast_error(self, text: str) -> None:
        self._broadcast(new_message("error", ErrorPayload(message=text)))

    def _broadcast_game_state(self) -> None:
        if 0 <= self.player_turn_index < len(self.players):
            current_player_id = self.players[self.player_turn_index].id
        else:
            log.warning("Game %s: invalid turn index %d", self.id, self.player_turn_index)
            current_player_id = ""
        payload = GameStatePayload(
            current_player_id=current_player_id,
            cards_on_table=list(self.cards_on_table),
            team1_score=self.teams[0].score,
            team2_score=self.teams[1].score,
            game_state=self.game_state.value,
        )
        self._broadcast(new_message("game_state_update", payload))

    def _notify_current_player_turn(self) -> None:
        current = self.players[self.player_turn_index]
        self._send_to_player(current.id, new_message("your_turn", YourTurnPayload(player_id=current.id)))
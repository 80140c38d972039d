"""Connection registry, lobbies and running games of the server."""

import asyncio
import logging
import random
import uuid
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager

from .game import Game
from .player import Player, TeamEnum
from .protocol import (
    CreateGamePayload,
    ErrorPayload,
    GameCreatedPayload,
    JoinErrorPayload,
    JoinGamePayload,
    LobbyUpdatePayload,
    Message,
    PlayerInfo,
    ProtocolError,
    new_message,
)

log = logging.getLogger(__name__)

GAME_CODE_LENGTH = 5
GAME_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
LOBBY_SIZE = 4
TARGET_SCORE = 31
SEND_QUEUE_SIZE = 256


class Client:
    """One connection: its identity and a bounded queue of outgoing messages.

    A writer drains ``outbox`` and waits on ``wakeup`` when it is empty;
    ``closed`` turns true once the hub has dropped the connection.
    """

    def __init__(self, queue_size: int = SEND_QUEUE_SIZE) -> None:
        self.id = ""
        self.name = ""
        self.desired_team = 0
        self.remote = ""
        self.queue_size = queue_size
        self.outbox: deque[bytes] = deque()
        self.wakeup = asyncio.Event()
        self.closed = False

    def deliver(self, message: bytes) -> bool:
        """Queue a message without blocking; False if closed or the queue is full."""
        if self.closed or len(self.outbox) >= self.queue_size:
            return False
        self.outbox.append(message)
        self.wakeup.set()
        return True

    def __repr__(self) -> str:
        return f"Client(id={self.id!r}, name={self.name!r})"


def _close_client(client: Client) -> None:
    client.closed = True
    client.wakeup.set()


class Hub:
    """Keeps track of connected clients, the lobbies they wait in and their games.

    The hub is meant to be driven from one thread or event loop.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.clients: dict[str, Client] = {}
        self.lobbies: dict[str, list[Client]] = {}
        self.games: dict[str, Game] = {}
        self.client_to_game: dict[str, str] = {}
        self.rng = rng if rng is not None else random.Random()
        self._depth = 0
        self._pending: deque[Client] = deque()

    # --- bookkeeping of nested operations ---

    @contextmanager
    def _operation(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
        if self._depth == 0:
            self._flush_pending()

    def _flush_pending(self) -> None:
        self._depth += 1
        try:
            while self._pending:
                client = self._pending.popleft()
                if self.clients.get(client.id) is client:
                    self._unregister(client)
        finally:
            self._depth -= 1

    def _schedule_unregister(self, client: Client) -> None:
        if client not in self._pending:
            self._pending.append(client)

    # --- public interface ---

    def generate_game_code(self) -> str:
        """Return a fresh code used by no lobby and no game."""
        while True:
            code = "".join(self.rng.choice(GAME_CODE_ALPHABET) for _ in range(GAME_CODE_LENGTH))
            if code not in self.lobbies and code not in self.games:
                return code
            log.info("Generated game code %s collided, retrying.", code)

    def register(self, client: Client) -> str:
        """Give the client an id and start tracking it."""
        with self._operation():
            client.id = str(uuid.uuid4())
            self.clients[client.id] = client
            log.info("Client %s (%s) connected", client.id, client.remote)
            return client.id

    def unregister(self, client: Client) -> None:
        """Drop a client and remove it from its lobby or forfeit its game."""
        with self._operation():
            self._unregister(client)

    def handle_message(self, client: Client, msg: Message) -> None:
        """Act on a message received from a client."""
        with self._operation():
            if msg.type != "ping":
                log.info("Received %r from client %s (%s)", msg.type, client.id, client.name)
            if msg.type == "create_game":
                self._handle_create_game(client, msg)
            elif msg.type == "join_game":
                self._handle_join_game(client, msg)
            elif msg.type in ("play_card", "declare"):
                self._handle_game_action(client, msg)
            elif msg.type == "ping":
                client.deliver(new_message("pong"))
            else:
                log.warning("Unknown message type %r from client %s", msg.type, client.id)
                self._send_error(client, "Unknown message type.")

    def send_message_to_client(self, client_id: str, message: bytes) -> bool:
        """Queue a message for a client by id; a client that cannot take it is dropped."""
        client = self.clients.get(client_id)
        if client is None:
            log.info("Could not find client %s to send message.", client_id)
            return False
        if client.deliver(message):
            return True
        log.warning("Failed to send message to client %s, dropping it.", client_id)
        self._schedule_unregister(client)
        if self._depth == 0:
            self._flush_pending()
        return False

    def game_for_code(self, game_code: str) -> Game | None:
        """Return the game running under this code, or None."""
        return self.games.get(game_code)

    def lobby_for_code(self, game_code: str) -> list[Client] | None:
        """Return the clients waiting in this lobby, or None if there is none."""
        lobby = self.lobbies.get(game_code)
        return list(lobby) if lobby is not None else None

    # --- connection handling ---

    def _unregister(self, client: Client) -> None:
        game_code = self.client_to_game.get(client.id)
        exists = self.clients.get(client.id) is client
        if exists:
            del self.clients[client.id]
            self.client_to_game.pop(client.id, None)
            _close_client(client)
            log.info("Client %s (%s) disconnected", client.id, client.name)

        if game_code is not None:
            lobby = self.lobbies.get(game_code)
            if lobby is not None:
                remaining = [c for c in lobby if c is not client]
                if remaining:
                    self.lobbies[game_code] = remaining
                    log.info("Client %s removed from lobby %s.", client.id, game_code)
                    self._broadcast_lobby_update(game_code, remaining)
                else:
                    del self.lobbies[game_code]
                    log.info("Client %s left lobby %s. Lobby deleted.", client.id, game_code)
                return
            game = self.games.get(game_code)
            if game is not None:
                log.info("Client %s was in game %s. Notifying game.", client.id, game_code)
                game.handle_player_disconnect(client.id)
            else:
                log.warning("Client %s was mapped to unknown code %s", client.id, game_code)
        elif exists:
            log.info("Client %s disconnected before joining or creating a game.", client.id)

    # --- message handlers ---

    def _handle_create_game(self, client: Client, msg: Message) -> None:
        if client.id in self.client_to_game:
            self._send_error(client, "Already in a game or lobby.")
            return
        try:
            payload = msg.decode(CreateGamePayload)
        except (ProtocolError, ValueError) as exc:
            log.warning("Bad create_game payload from %s: %s", client.id, exc)
            self._send_error(client, "Invalid create_game message format.")
            return
        if not payload.name:
            self._send_error(client, "Name cannot be empty.")
            return

        game_code = self.generate_game_code()
        client.name = payload.name
        client.desired_team = payload.desired_team
        self.client_to_game[client.id] = game_code
        self.lobbies[game_code] = [client]
        log.info("Client %s (%s) created lobby %s", client.id, client.name, game_code)

        self.send_message_to_client(
            client.id, new_message("game_created", GameCreatedPayload(game_code=game_code))
        )
        self._broadcast_lobby_update(game_code, [client])

    def _handle_join_game(self, client: Client, msg: Message) -> None:
        if client.id in self.client_to_game:
            self._send_join_error(client, "Already in a game or lobby.")
            return
        try:
            payload = msg.decode(JoinGamePayload)
        except (ProtocolError, ValueError) as exc:
            log.warning("Bad join_game payload from %s: %s", client.id, exc)
            self._send_join_error(client, "Invalid join_game message format.")
            return
        if not payload.name:
            self._send_join_error(client, "Name cannot be empty.")
            return
        if not payload.game_code:
            self._send_join_error(client, "Game code cannot be empty.")
            return
        if payload.desired_team not in (TeamEnum.RED, TeamEnum.BLUE):
            self._send_join_error(client, "Invalid desired team.")
            return

        game_code = payload.game_code.upper()
        lobby = self.lobbies.get(game_code)
        if lobby is None:
            self._send_join_error(client, "Game code not found.")
            return
        if len(lobby) >= LOBBY_SIZE:
            self._send_join_error(client, "Game lobby is full.")
            return
        if any(existing.name == payload.name for existing in lobby):
            self._send_join_error(client, "Name already taken in this lobby.")
            return

        client.name = payload.name
        client.desired_team = payload.desired_team
        lobby = [*lobby, client]
        self.lobbies[game_code] = lobby
        self.client_to_game[client.id] = game_code
        log.info("Client %s (%s) joined lobby %s. Size: %d", client.id, client.name, game_code, len(lobby))

        self._broadcast_lobby_update(game_code, lobby)

        if len(lobby) == LOBBY_SIZE and self.lobbies.get(game_code) == lobby:
            self._start_game(game_code, lobby)

    def _start_game(self, game_code: str, lobby: list[Client]) -> None:
        players = [Player(id=c.id, name=c.name, desired_team=c.desired_team) for c in lobby]
        game = Game(players, TARGET_SCORE)
        self.games[game_code] = game
        del self.lobbies[game_code]
        log.info(
            "Game %s created for code %s. Players: %s",
            game.id, game_code, [c.name for c in lobby],
        )
        game.start(self.send_message_to_client)

    def _handle_game_action(self, client: Client, msg: Message) -> None:
        game_code = self.client_to_game.get(client.id)
        if game_code is None:
            self._send_error(client, "You are not in an active game or lobby.")
            return
        game = self.games.get(game_code)
        if game is None:
            log.info("%r from %s for code %s, but no game is running.", msg.type, client.id, game_code)
            self._send_error(client, "Game not found or not active.")
            return
        log.debug("Forwarding %r from %s to game %s", msg.type, client.id, game.id)
        game.handle_player_action(client.id, msg)

    # --- outgoing helpers ---

    def _broadcast_to_lobby(self, game_code: str, message: bytes) -> None:
        lobby = self.lobbies.get(game_code)
        if lobby is None:
            log.warning("Tried to broadcast to non-existent lobby %s", game_code)
            return
        for client in list(lobby):
            if not client.deliver(message):
                log.warning("Failed to send lobby message to client %s", client.id)
                if self.clients.get(client.id) is client:
                    self._schedule_unregister(client)

    def _broadcast_lobby_update(self, game_code: str, lobby: list[Client]) -> None:
        infos = [PlayerInfo(id=c.id, name=c.name, position=i) for i, c in enumerate(lobby)]
        self._broadcast_to_lobby(
            game_code, new_message("lobby_update", LobbyUpdatePayload(players=infos))
        )

    def _send_error(self, client: Client, text: str) -> None:
        self.send_message_to_client(client.id, new_message("error", ErrorPayload(message=text)))

    def _send_join_error(self, client: Client, text: str) -> None:
        self.send_message_to_client(
            client.id, new_message("join_error", JoinErrorPayload(message=text))
        )
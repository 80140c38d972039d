"""JSON messages exchanged between clients and the server."""

import json
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from enum import Enum

from .cards import Card
from .trick import PlayedCard


class ProtocolError(ValueError):
    """Raised for malformed messages or payloads."""


def _omitempty(default=None):
    return field(default=default, metadata={"omitempty": True})


def _encode(value):
    if hasattr(value, "to_json"):
        return value.to_json()
    if is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: _encode(getattr(value, f.name))
            for f in fields(value)
            if not (f.metadata.get("omitempty") and not getattr(value, f.name))
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _encode(v) for k, v in value.items()}
    return value


_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _dumps(obj) -> str:
    text = json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def _decode_payload(payload_type, data):
    if data is None:
        return payload_type()
    if not isinstance(data, dict):
        raise ProtocolError(f"payload for {payload_type.__name__} must be an object")
    kwargs = {}
    for f in fields(payload_type):
        raw = data.get(f.name)
        if raw is None:
            if f.default is MISSING and f.default_factory is MISSING:
                raise ProtocolError(f"missing field {f.name!r}")
            continue
        if f.type is int:
            if isinstance(raw, bool) or not isinstance(raw, int):
                raise ProtocolError(f"field {f.name!r} must be an integer")
        elif f.type is str:
            if not isinstance(raw, str):
                raise ProtocolError(f"field {f.name!r} must be a string")
        kwargs[f.name] = raw
    return payload_type(**kwargs)


@dataclass(frozen=True)
class Message:
    """A message: its type and the raw JSON text of its payload, if any."""

    type: str
    payload: str | None = None

    def decode(self, payload_type):
        """Decode the payload into an instance of the given payload class."""
        if self.payload is None:
            raise ProtocolError(f"message {self.type!r} has no payload")
        return _decode_payload(payload_type, json.loads(self.payload))


def parse_message(raw) -> Message:
    """Parse a message received from a client."""
    try:
        data = json.loads(raw)
    except (ValueError, TypeError) as exc:
        raise ProtocolError(f"invalid message: {exc}") from exc
    if data is None:
        return Message("")
    if not isinstance(data, dict):
        raise ProtocolError("message must be a JSON object")
    msg_type = data.get("type")
    if msg_type is None:
        msg_type = ""
    elif not isinstance(msg_type, str):
        raise ProtocolError("message type must be a string")
    payload = _dumps(data["payload"]) if "payload" in data else None
    return Message(msg_type, payload)


def new_message(msg_type: str, payload=None) -> bytes:
    """Serialise a message with the given type and payload to JSON bytes."""
    body = {"type": msg_type}
    if payload is not None:
        body["payload"] = _encode(payload)
    return _dumps(body).encode("utf-8")


# --- client to server ---


@dataclass
class CreateGamePayload:
    name: str = ""
    desired_team: int = 0


@dataclass
class JoinGamePayload:
    name: str = ""
    game_code: str = ""
    desired_team: int = 0


@dataclass
class PlayCardPayload:
    suit: str = ""
    rank: str = ""


@dataclass
class DeclarePayload:
    declaration_type: str = ""


# --- server to client ---


@dataclass
class GameCreatedPayload:
    game_code: str


@dataclass
class PlayerInfo:
    id: str
    name: str
    position: int


@dataclass
class LobbyUpdatePayload:
    players: list[PlayerInfo]


@dataclass
class JoinErrorPayload:
    message: str


@dataclass
class GameWaitPayload:
    message: str


@dataclass
class TeamInfo:
    id: str
    players: list[PlayerInfo]
    score: int
    team_number: int


@dataclass
class GameStartPayload:
    game_id: str
    players: list[PlayerInfo]
    teams: list[TeamInfo]


@dataclass
class DealHandPayload:
    hand: list[Card]


@dataclass
class YourTurnPayload:
    player_id: str
    valid_moves: list[Card] | None = _omitempty()


@dataclass(kw_only=True)
class GameStatePayload:
    current_player_id: str
    cards_on_table: list[Card]
    team1_score: int
    team2_score: int
    last_trick: list[Card] | None = _omitempty()
    last_winner_id: str = _omitempty("")
    game_state: str


@dataclass
class TrickEndPayload:
    winner: PlayedCard
    winner_id: str
    cards: list[Card]
    points: int


@dataclass
class RoundEndPayload:
    team1_round_score: int
    team2_round_score: int
    team1_total_score: int
    team2_total_score: int


@dataclass
class DeclarationInfoPayload:
    player_id: str
    declaration_type: str
    points: int


@dataclass
class GameOverPayload:
    winning_team_id: str
    final_score_t1: int
    final_score_t2: int


@dataclass
class ErrorPayload:
    message: str


@dataclass
class PlayerLeftPayload:
    player_id: str


@dataclass
class PlayerPlayedCardPayload:
    player_id: str
    card: Card
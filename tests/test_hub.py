import asyncio
import json
import random

import pytest

from tressette.game import GameState
from tressette.hub import GAME_CODE_ALPHABET, Client, Hub
from tressette.protocol import parse_message


def msg(msg_type, payload=None):
    body = {"type": msg_type}
    if payload is not None:
        body["payload"] = payload
    return parse_message(json.dumps(body))


def received(client):
    return [json.loads(m) for m in client.outbox]


def types(client):
    return [m["type"] for m in received(client)]


def last(client):
    return received(client)[-1]


@pytest.fixture
def hub():
    return Hub(random.Random(7))


def connect(hub, queue_size=256):
    client = Client(queue_size)
    hub.register(client)
    return client


def create(hub, name="Ann", team=1):
    client = connect(hub)
    hub.handle_message(client, msg("create_game", {"name": name, "desired_team": team}))
    return client, received(client)[0]["payload"]["game_code"]


def join(hub, code, name, team):
    client = connect(hub)
    hub.handle_message(
        client, msg("join_game", {"name": name, "game_code": code, "desired_team": team})
    )
    return client


def full_game(hub):
    first, code = create(hub, "Ann", 1)
    others = [join(hub, code, name, team) for name, team in (("Bob", 2), ("Cid", 1), ("Dan", 2))]
    return code, [first, *others]


def test_register_assigns_unique_ids(hub):
    a, b = connect(hub), connect(hub)
    assert len(a.id) == 36
    assert a.id != b.id
    assert hub.clients[a.id] is a


def test_game_code_shape(hub):
    code = hub.generate_game_code()
    assert len(code) == 5
    assert set(code) <= set(GAME_CODE_ALPHABET)


def test_game_code_avoids_existing_lobby():
    first = Hub(random.Random(3)).generate_game_code()
    other = Hub(random.Random(3))
    other.lobbies[first] = []
    second = other.generate_game_code()
    assert second != first
    assert len(second) == 5


def test_create_game_sends_code_and_lobby(hub):
    client, code = create(hub)
    assert types(client) == ["game_created", "lobby_update"]
    players = received(client)[1]["payload"]["players"]
    assert players == [{"id": client.id, "name": "Ann", "position": 0}]
    assert hub.lobby_for_code(code) == [client]
    assert client.name == "Ann"


def test_create_game_empty_name(hub):
    client = connect(hub)
    hub.handle_message(client, msg("create_game", {"name": "", "desired_team": 1}))
    assert last(client) == {"type": "error", "payload": {"message": "Name cannot be empty."}}


def test_create_game_without_payload(hub):
    client = connect(hub)
    hub.handle_message(client, msg("create_game"))
    assert last(client)["payload"]["message"] == "Invalid create_game message format."


def test_create_game_twice(hub):
    client, _ = create(hub)
    hub.handle_message(client, msg("create_game", {"name": "Ann", "desired_team": 1}))
    assert last(client)["payload"]["message"] == "Already in a game or lobby."
    assert len(hub.lobbies) == 1


def test_join_normalises_code_and_updates_lobby(hub):
    first, code = create(hub)
    second = join(hub, code.lower(), "Bob", 2)
    assert hub.lobby_for_code(code) == [first, second]
    update = last(first)
    assert update["type"] == "lobby_update"
    assert [p["name"] for p in update["payload"]["players"]] == ["Ann", "Bob"]
    assert [p["position"] for p in update["payload"]["players"]] == [0, 1]


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"name": "", "game_code": "ABCDE", "desired_team": 1}, "Name cannot be empty."),
        ({"name": "Bob", "game_code": "", "desired_team": 1}, "Game code cannot be empty."),
        ({"name": "Bob", "game_code": "ABCDE", "desired_team": 3}, "Invalid desired team."),
        ({"name": "Bob", "game_code": "ZZZZZ", "desired_team": 1}, "Game code not found."),
    ],
)
def test_join_errors(hub, payload, expected):
    client = connect(hub)
    hub.handle_message(client, msg("join_game", payload))
    assert last(client) == {"type": "join_error", "payload": {"message": expected}}
    assert client.id not in hub.client_to_game


def test_join_duplicate_name(hub):
    _, code = create(hub, "Ann")
    client = join(hub, code, "Ann", 2)
    assert last(client)["payload"]["message"] == "Name already taken in this lobby."
    assert len(hub.lobby_for_code(code)) == 1


def test_full_lobby_starts_game(hub):
    code, clients = full_game(hub)
    assert hub.lobby_for_code(code) is None
    game = hub.game_for_code(code)
    assert game.game_state is GameState.PLAYING
    assert {p.id for p in game.players} == {c.id for c in clients}
    for client in clients:
        kinds = types(client)
        assert "game_start" in kinds
        hand = next(m for m in received(client) if m["type"] == "deal_hand")
        assert len(hand["payload"]["hand"]) == 10


def test_join_after_game_started(hub):
    code, _ = full_game(hub)
    late = join(hub, code, "Eve", 1)
    assert last(late)["payload"]["message"] == "Game code not found."


def test_play_card_forwarded_to_game(hub):
    code, clients = full_game(hub)
    game = hub.game_for_code(code)
    seat = game.players[game.player_turn_index]
    client = next(c for c in clients if c.id == seat.id)
    card = seat.hand[0]
    client.outbox.clear()
    hub.handle_message(client, msg("play_card", {"suit": str(card.suit), "rank": card.rank}))
    assert types(client)[0] == "you_played"
    assert len(seat.hand) == 9


def test_play_card_outside_game(hub):
    client = connect(hub)
    hub.handle_message(client, msg("play_card", {"suit": "Spade", "rank": "3"}))
    assert last(client)["payload"]["message"] == "You are not in an active game or lobby."


def test_play_card_while_in_lobby(hub):
    client, _ = create(hub)
    hub.handle_message(client, msg("play_card", {"suit": "Spade", "rank": "3"}))
    assert last(client)["payload"]["message"] == "Game not found or not active."


def test_ping_pong(hub):
    client = connect(hub)
    hub.handle_message(client, msg("ping"))
    assert client.outbox[-1] == b'{"type":"pong"}'


def test_unknown_type(hub):
    client = connect(hub)
    hub.handle_message(client, msg("dance"))
    assert last(client)["payload"]["message"] == "Unknown message type."


def test_unregister_from_lobby(hub):
    first, code = create(hub)
    second = join(hub, code, "Bob", 2)
    hub.unregister(second)
    assert second.closed
    assert second.id not in hub.clients
    assert hub.lobby_for_code(code) == [first]
    assert [p["name"] for p in last(first)["payload"]["players"]] == ["Ann"]
    hub.unregister(first)
    assert hub.lobby_for_code(code) is None


def test_unregister_from_game_forfeits(hub):
    code, clients = full_game(hub)
    for c in clients:
        c.outbox.clear()
    hub.unregister(clients[0])
    game = hub.game_for_code(code)
    assert game.game_state is GameState.GAME_OVER
    for other in clients[1:]:
        assert types(other) == ["player_left", "game_over"]
        assert received(other)[0]["payload"]["player_id"] == clients[0].id


def test_client_queue_limit():
    client = Client(1)
    assert client.deliver(b"a") is True
    assert client.deliver(b"b") is False
    assert list(client.outbox) == [b"a"]


def test_closed_client_refuses(hub):
    client = connect(hub)
    hub.unregister(client)
    assert client.deliver(b"x") is False
    assert hub.send_message_to_client(client.id, b"x") is False


def test_slow_client_is_dropped(hub):
    client = connect(hub, queue_size=1)
    hub.handle_message(client, msg("create_game", {"name": "Ann", "desired_team": 1}))
    code = received(client)[0]["payload"]["game_code"]
    assert client.closed
    assert client.id not in hub.clients
    assert hub.lobby_for_code(code) is None


@pytest.mark.asyncio
async def test_wakeup_on_delivery():
    client = Client(4)
    assert client.deliver(b"x")
    await asyncio.wait_for(client.wakeup.wait(), 1)
    assert list(client.outbox) == [b"x"]
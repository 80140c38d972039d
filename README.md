# tressette

Rules and game state for four-player Tressette, the Italian trick-taking
card game, played in two teams of two. The package also holds a hub that
keeps track of connected clients, the lobbies they gather in under a short
game code, and the games that start when a lobby has four players.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `tressette.cards`: `Suit`, `Card`, `Deck` (40 cards; `shuffle`, `deal`)
  and `DealError`.
- `tressette.player`: `Player` with its hand, and `TeamEnum` (`RED` = 1,
  `BLUE` = 2).
- `tressette.team`: `Team`, with a number, two players and a score.
- `tressette.trick`: `Trick`, `PlayedCard` and `TrickError`.
- `tressette.seating`: `arrange_seats`, which orders four players so that
  seats 0 and 2 form team 1 and seats 1 and 3 form team 2, following the
  players' desired teams where it can.
- `tressette.protocol`: `Message`, `parse_message`, `new_message`,
  `ProtocolError` and the payload classes.
- `tressette.game`: `Game` and `GameState`.
- `tressette.hub`: `Hub` and `Client`.

## Playing a game

```python
from tressette.player import Player, TeamEnum
from tressette.game import Game
from tressette.protocol import Message

players = [
    Player("a", "Anna", desired_team=TeamEnum.RED),
    Player("b", "Bruno", desired_team=TeamEnum.BLUE),
    Player("c", "Carla", desired_team=TeamEnum.RED),
    Player("d", "Dario", desired_team=TeamEnum.BLUE),
]
game = Game(players, target_score=31)
game.start(lambda client_id, message: print(client_id, message))

leader = game.players[game.player_turn_index]
card = leader.hand[0]
game.handle_player_action(
    leader.id,
    Message("play_card", f'{{"suit": "{card.suit}", "rank": "{card.rank}"}}'),
)
```

Everything the game sends goes to the sender callback as encoded JSON
bytes. Players must follow the led suit when they hold it. A player who
disconnects (`Game.handle_player_disconnect`) forfeits the game to the
other team.

## Using the hub

```python
from tressette.hub import Client, Hub
from tressette.protocol import parse_message

hub = Hub()
client = Client()
hub.register(client)
hub.handle_message(client, parse_message('{"type": "create_game", '
                                         '"payload": {"name": "Anna", "desired_team": 1}}'))
print(list(client.outbox))
```

Each `Client` has a bounded queue of outgoing messages (`outbox`), an
`asyncio.Event` named `wakeup` that is set when a message is queued, and a
`closed` flag set when the hub drops it. A client whose queue is full is
dropped. `Hub.game_for_code` and `Hub.lobby_for_code` look up a running
game or a waiting lobby.

## Protocol

Every message is a JSON object with a `type` and an optional `payload`.

Handled by the hub:

| type          | payload                                                   |
|---------------|-----------------------------------------------------------|
| `create_game` | `{"name": ..., "desired_team": 1 or 2}`                   |
| `join_game`   | `{"name": ..., "game_code": ..., "desired_team": 1 or 2}` |
| `play_card`   | `{"suit": ..., "rank": ...}`                              |
| `declare`     | `{"declaration_type": ...}` (always refused)              |
| `ping`        | none                                                      |

Sent out: `game_created`, `lobby_update`, `join_error`, `game_start`,
`deal_hand`, `your_turn`, `you_played`, `game_state_update`, `trick_end`,
`round_end`, `game_over`, `player_left`, `error` and `pong`.

Suits are `Denari`, `Spade`, `Bastoni` and `Kope`. Ranks are `1` to `7`
and `11` to `13`. The strongest card in a suit is the 3, then the 2, then
the ace, and after those 13, 12, 11, 7, 6, 5 and 4.

## Scoring

Scores are kept in thirds of a point, so that they stay whole numbers. An
ace counts 3, each 2, 3 and face card counts 1, and the rest count 0. The
team that wins the last trick of a round also gets 3. The target score
given to `Game` is in whole points and is compared with scores scaled by 3.

## What is not included

The package has no network server and no command to run one: there is no
WebSocket endpoint and no serving of a web client. To put players online,
read messages from your own connections, pass them to `Hub.handle_message`
after `parse_message`, and write out what collects in each `Client.outbox`.
Game results are not stored anywhere.
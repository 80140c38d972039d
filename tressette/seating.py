"""Seating of four players into two alternating teams."""

from .player import Player, TeamEnum

# For each pattern of "wants red" among the first three players, the seat
# assigned to each of the four players. Seats 0 and 2 form the red team,
# seats 1 and 3 the blue team.
_SEAT_PLAN = {
    (True, True, True): (0, 2, 1, 3),
    (True, True, False): (0, 2, 1, 3),
    (True, False, True): (0, 1, 2, 3),
    (True, False, False): (0, 1, 3, 2),
    (False, True, True): (1, 0, 2, 3),
    (False, True, False): (1, 0, 3, 2),
    (False, False, True): (1, 3, 0, 2),
    (False, False, False): (1, 3, 0, 2),
}


def arrange_seats(players) -> tuple[Player, Player, Player, Player]:
    """Return the four players in seat order, honouring desired teams where possible."""
    players = list(players)
    if len(players) != 4:
        raise ValueError(f"expected 4 players, got {len(players)}")
    if any(p is None for p in players):
        raise ValueError("every seat needs a player")
    wants_red = tuple(p.desired_team == TeamEnum.RED for p in players[:3])
    seats: list[Player | None] = [None] * 4
    for player, seat in zip(players, _SEAT_PLAN[wants_red]):
        seats[seat] = player
    return tuple(seats)
"""Seat to team mapping and clockwise acting-seat rotation.

Seats are 1..4 clockwise around the table. Odd seats play Team A, even seats
Team B. The rotation only decides which seated person acts for the team whose
turn it is; the rule engine itself only knows teams.
"""
from __future__ import annotations

from typing import Iterable, Optional, Tuple

from .board import Team

SEATS: Tuple[int, ...] = (1, 2, 3, 4)
HOST_SEAT = 1
PLAYER_MODES = (2, 4)


def is_valid_seat(seat: Optional[int]) -> bool:
    return seat in SEATS


def team_of(seat: int) -> Team:
    if seat in (1, 3):
        return Team.A
    if seat in (2, 4):
        return Team.B
    raise ValueError(f"Unknown seat {seat!r}")


def next_seat_clockwise(seat: int, active_seat_count: int) -> int:
    if active_seat_count >= 4:
        return seat % 4 + 1
    return 2 if seat == 1 else 1


def allowed_peer_seats(max_players: int) -> Tuple[int, ...]:
    """Seats a remote peer may take; the host always keeps seat 1."""
    if max_players >= 4:
        return (2, 3, 4)
    return (2,)


def seats_of_team(team: Team, max_players: int = 4) -> Tuple[int, ...]:
    count = 4 if max_players >= 4 else 2
    return tuple(s for s in SEATS[:count] if team_of(s) is team)


def resolve_acting_seat(team: Team, previous: Optional[int], occupied: Iterable[int], active_seat_count: int = 4) -> int:
    """Pick the seat that acts for ``team``, walking clockwise from ``previous``.

    Without a valid previous seat the walk starts on seat 1 itself. Falls back to
    any occupied seat of ``team``, then to seat 1.
    """
    occupied_set = set(occupied)
    if is_valid_seat(previous):
        seat = next_seat_clockwise(previous, active_seat_count)
    else:
        seat = 1
    for _ in range(4):
        if team_of(seat) is team and seat in occupied_set:
            return seat
        seat = next_seat_clockwise(seat, active_seat_count)
    for seat in sorted(occupied_set):
        if is_valid_seat(seat) and team_of(seat) is team:
            return seat
    return HOST_SEAT

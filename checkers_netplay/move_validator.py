"""
Move-intent authorization for the host.
Decides whether a peer's move request may reach the orchestrator at all.
"""
from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional, Tuple

from .board import Team
from .seats import is_valid_seat, team_of


class Verdict(Enum):
    ACCEPT = "accept"
    NOT_STARTED = "not_started"
    GAME_OVER = "game_over"
    UNSEATED = "unseated"
    WRONG_TEAM = "wrong_team"

    @property
    def is_desync(self) -> bool:
        # Seated sender whose idea of the turn disagrees with the host's
        return self is Verdict.WRONG_TEAM


class MoveValidator:
    """Validates move intents against the seat table and the team to move"""

    def __init__(self, seats: Mapping[str, int]):
        """
        Args:
            seats: live connection-id -> seat table owned by the session
        """
        self.seats = seats

    def seat_for(self, conn_id: str) -> Optional[int]:
        seat = self.seats.get(conn_id)
        return seat if is_valid_seat(seat) else None

    def validate_move(
        self,
        conn_id: str,
        current_team: Team,
        *,
        started: bool,
        over: bool,
    ) -> Tuple[Verdict, str]:
        """
        Validate the sender of a move intent

        Args:
            conn_id: Connection the intent arrived on
            current_team: Team whose turn it is on the orchestrator
            started: Whether the match is running
            over: Whether the match has finished

        Returns:
            (verdict, reason)
        """
        if not started:
            return Verdict.NOT_STARTED, "Match not started"
        if over:
            return Verdict.GAME_OVER, "Game is over"

        seat = self.seat_for(conn_id)
        if seat is None:
            return Verdict.UNSEATED, f"{conn_id} holds no seat"

        seat_team = team_of(seat)
        if seat_team is not current_team:
            return Verdict.WRONG_TEAM, f"seat {seat} is team {seat_team.value}, current team is {current_team.value}"

        return Verdict.ACCEPT, ""

"""Peer-side copy of the match.

The mirror's board is for display only: it is replaced wholesale by every
snapshot and never edited from local input. Local legal-move highlights are
computed with the rule engine for feedback and thrown away on the next
snapshot.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from . import messages as msgs
from .board import BoardState, Move, Position, Team
from .messages import MatchOver, MoveIntent, ScoreUpdate, SeatAssignment, Snapshot
from .progress import CoinReward
from .rules import legal_moves
from .seats import is_valid_seat, team_of
from .sync import StateApplier

logger = logging.getLogger(__name__)


class RemoteMirror:
    def __init__(self, applier: StateApplier, reward: Optional[CoinReward] = None,
                 rows: int = 6, cols: int = 6) -> None:
        self.applier = applier
        self.reward = reward
        self.board = BoardState(rows, cols)
        self.seat: Optional[int] = None
        self.is_spectator = False
        self.score_a = 0
        self.score_b = 0
        self.acting_seat = 1
        self.is_started = False
        self.is_over = False
        self.winner: Optional[Team] = None
        self.in_menu = False
        self.selected: Optional[Position] = None
        self.highlights: List[Move] = []

    @property
    def local_team(self) -> Optional[Team]:
        if self.is_spectator or not is_valid_seat(self.seat):
            return None
        return team_of(self.seat)

    @property
    def acting_team(self) -> Team:
        return team_of(self.acting_seat)

    def can_act(self) -> bool:
        team = self.local_team
        return (
            team is not None
            and self.is_started
            and not self.is_over
            and team is self.acting_team
        )

    def status_text(self) -> str:
        if self.in_menu:
            return "Back to menu"
        if self.is_spectator:
            return "Spectating"
        if self.is_over and self.winner is not None:
            return "You win!" if self.winner is self.local_team else f"Team {self.winner.value} wins"
        if not self.is_started:
            return "Waiting for opponent"
        if self.can_act():
            return "Your turn"
        return f"Seat {self.acting_seat} to move"

    # ---- inbound frames ----

    def handle_frame(self, raw: Union[str, bytes, Dict[str, Any]]) -> None:
        try:
            msg_type, payload = msgs.decode(raw)
        except (ValueError, ValidationError) as exc:
            logger.warning("ignoring malformed frame from host: %s", exc)
            return

        if msg_type == msgs.SNAPSHOT and isinstance(payload, Snapshot):
            self.apply_snapshot(payload)
        elif msg_type == msgs.SEAT_ASSIGNMENT and isinstance(payload, SeatAssignment):
            self.seat = payload.seat or None
            self.is_spectator = payload.is_spectator
            if self.reward is not None:
                self.reward.local_team = self.local_team
            logger.info("seated at %s", "spectator" if self.is_spectator else f"seat {self.seat}")
        elif msg_type == msgs.MATCH_STARTED:
            self.is_started = True
            self.in_menu = False
        elif msg_type == msgs.WAITING_FOR_OPPONENT:
            self.is_started = False
            self._clear_selection()
        elif msg_type == msgs.MATCH_OVER and isinstance(payload, MatchOver):
            self.is_over = True
            self.winner = Team(payload.winning_team)
            self._clear_selection()
            if self.reward is not None:
                self.reward.award_if_local(self.winner)
        elif msg_type == msgs.BOARD_RESET:
            self.is_over = False
            self.winner = None
            self._clear_selection()
        elif msg_type == msgs.SCORE_CHANGED and isinstance(payload, ScoreUpdate):
            self.score_a = payload.score_a
            self.score_b = payload.score_b
        elif msg_type == msgs.RETURN_TO_MENU:
            self.in_menu = True
            self.is_started = False
            self._clear_selection()
        elif msg_type == msgs.ERROR:
            logger.warning("host reported error: %s", payload)

    def apply_snapshot(self, snapshot: Snapshot) -> None:
        self.board = snapshot.to_board()
        self.score_a = snapshot.score_a
        self.score_b = snapshot.score_b
        self.acting_seat = snapshot.current_acting_seat
        self.is_started = snapshot.is_started
        self.is_over = snapshot.is_over
        if not self.is_over:
            self.winner = None
        self._clear_selection()

    # ---- local input ----

    def _clear_selection(self) -> None:
        self.selected = None
        self.highlights = []

    def _select(self, pos: Position, team: Team) -> None:
        self.selected = pos
        self.highlights = sorted(legal_moves(self.board, pos, team), key=lambda m: (m.to_pos.row, m.to_pos.col))

    def click(self, pos: Position) -> Optional[MoveIntent]:
        """Select one of our pieces, then a target; the second click sends an intent."""
        if not self.can_act() or not self.board.is_inside(pos):
            self._clear_selection()
            return None
        team = self.local_team
        piece_team = self.board.get(pos).team
        if self.selected is None:
            if piece_team is team:
                self._select(pos, team)
            return None
        if pos == self.selected:
            self._clear_selection()
            return None
        if piece_team is team:
            self._select(pos, team)
            return None
        intent = MoveIntent.of(self.selected, pos)
        self._clear_selection()
        self.applier.submit(intent)
        return intent

    def request_snapshot(self) -> Dict[str, Any]:
        return msgs.envelope(msgs.REQUEST_SNAPSHOT)

    def request_return_to_menu(self) -> Dict[str, Any]:
        """Leave locally; the host sends everyone else back too."""
        self.in_menu = True
        self.is_started = False
        self._clear_selection()
        return msgs.envelope(msgs.RETURN_TO_MENU)

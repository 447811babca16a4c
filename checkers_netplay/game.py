from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from .board import BoardState, Move, PieceKind, Position, Team
from .events import BoardReset, EventChannel, GameOver, MoveApplied, ScoreChanged, TurnChanged
from .rules import StandardLayout, is_terminal, legal_moves, promotion_row

logger = logging.getLogger(__name__)


class GamePhase(Enum):
    AWAITING_RESET = "awaiting_reset"
    IN_PROGRESS = "in_progress"
    GAME_OVER = "game_over"


class GameOrchestrator:
    """Authoritative game: one board, team-level turn, scores and notifications.

    Contract:
    - State: a single BoardState, the team to move, capture scores per team
    - Validation: a candidate is accepted only if the rule engine generates a
      move from the same origin to the same target for the team to move
    - Turn: flips after every accepted non-terminal move
    - Notifications: published on ``events`` in a fixed order
    """

    def __init__(self, rows: int, cols: int) -> None:
        self.board = BoardState(rows, cols)
        self.events = EventChannel()
        self.phase = GamePhase.AWAITING_RESET
        self.current_team = Team.A
        self.scores: Dict[Team, int] = {Team.A: 0, Team.B: 0}
        self.winner: Optional[Team] = None
        self.moves_list: List[Dict[str, Any]] = []

    @property
    def score_a(self) -> int:
        return self.scores[Team.A]

    @property
    def score_b(self) -> int:
        return self.scores[Team.B]

    @property
    def is_over(self) -> bool:
        return self.phase is GamePhase.GAME_OVER

    def reset_board(self, layout: StandardLayout) -> None:
        # Fresh grid each match; dimensions carry over
        board = BoardState(self.board.rows, self.board.cols)
        layout.setup(board)
        self.board = board
        self.scores = {Team.A: 0, Team.B: 0}
        self.current_team = Team.A
        self.winner = None
        self.moves_list = []
        self.phase = GamePhase.IN_PROGRESS
        self.events.publish(BoardReset())
        self.events.publish(TurnChanged(self.current_team))
        self.events.publish(ScoreChanged(self.score_a, self.score_b))

    def legal_moves_from(self, pos: Position) -> List[Move]:
        return sorted(legal_moves(self.board, pos, self.current_team), key=lambda m: (m.to_pos.row, m.to_pos.col))

    def try_apply_move(self, candidate: Move) -> bool:
        """Apply ``candidate`` if it matches a generated legal move; otherwise change nothing."""
        if self.phase is not GamePhase.IN_PROGRESS:
            return False
        mover = self.current_team
        chosen = None
        for mv in legal_moves(self.board, candidate.from_pos, mover):
            if mv.to_pos == candidate.to_pos:
                chosen = mv
                break
        if chosen is None:
            return False

        piece = self.board.get(chosen.from_pos)
        self.board.set(chosen.from_pos, PieceKind.EMPTY)
        self.board.set(chosen.to_pos, piece)
        if chosen.is_capture and chosen.captured is not None:
            self.board.set(chosen.captured, PieceKind.EMPTY)
            self.scores[mover] += 1
            self.events.publish(ScoreChanged(self.score_a, self.score_b))

        promoted = False
        if not piece.is_king and chosen.to_pos.row == promotion_row(self.board, mover):
            self.board.set(chosen.to_pos, piece.promoted())
            promoted = True

        self.moves_list.append({
            "by": mover.value,
            "sr": chosen.from_pos.row, "sc": chosen.from_pos.col,
            "er": chosen.to_pos.row, "ec": chosen.to_pos.col,
            "cap": [chosen.captured.row, chosen.captured.col] if chosen.captured is not None else None,
            "promoted": promoted,
        })
        self.events.publish(MoveApplied(chosen, promoted))

        over, winner = is_terminal(self.board, mover)
        if over and winner is not None:
            self.phase = GamePhase.GAME_OVER
            self.winner = winner
            logger.info("game over, team %s wins (score %d:%d)", winner.value, self.score_a, self.score_b)
            self.events.publish(GameOver(winner))
        else:
            self.current_team = mover.opponent
            self.events.publish(TurnChanged(self.current_team))
        return True

    def serialize_state(self) -> Dict[str, Any]:
        return {
            "rows": self.board.rows,
            "cols": self.board.cols,
            "pieces": self.board.flatten(),
            "turn": self.current_team.value,
            "phase": self.phase.value,
            "winner": self.winner.value if self.winner is not None else None,
            "score_a": self.score_a,
            "score_b": self.score_b,
            "moves": list(self.moves_list),
        }

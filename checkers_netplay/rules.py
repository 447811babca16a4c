from __future__ import annotations

from typing import List, Optional, Set, Tuple

from .board import BoardState, Move, PieceKind, Position, Team, man_of

COL_DIRS = (-1, 1)


class StandardLayout:
    """Initial placement: ``rows_per_side`` rows of men for each team on the dark squares."""

    def __init__(self, rows_per_side: int = 2) -> None:
        self.rows_per_side = rows_per_side

    def setup(self, board: BoardState) -> None:
        board.clear()
        per_side = max(0, min(self.rows_per_side, board.rows // 2))
        for r in range(per_side):
            self._fill_row(board, r, man_of(Team.A))
        for r in range(board.rows - per_side, board.rows):
            self._fill_row(board, r, man_of(Team.B))

    @staticmethod
    def _fill_row(board: BoardState, row: int, kind: PieceKind) -> None:
        for c in range(board.cols):
            if (row + c) % 2 == 1:
                board.set(Position(row, c), kind)


def _row_dirs(kind: PieceKind, team: Team) -> Tuple[int, ...]:
    if kind.is_king:
        return (1, -1)
    return (team.forward,)


def legal_moves(board: BoardState, from_pos: Position, team: Team) -> Set[Move]:
    """Every step and single jump available to the piece at ``from_pos``.

    Empty when the cell is off-board or does not hold one of ``team``'s pieces.
    Steps and captures are returned together; nothing is forced or ranked.
    """
    moves: Set[Move] = set()
    if not board.is_inside(from_pos):
        return moves
    kind = board.get(from_pos)
    if kind.team is not team:
        return moves
    for dr in _row_dirs(kind, team):
        for dc in COL_DIRS:
            step = from_pos.offset(dr, dc)
            if not board.is_inside(step):
                continue
            target = board.get(step)
            if target is PieceKind.EMPTY:
                moves.add(Move(from_pos, step))
            elif target.team is team.opponent:
                landing = from_pos.offset(2 * dr, 2 * dc)
                if board.is_inside(landing) and board.get(landing) is PieceKind.EMPTY:
                    moves.add(Move(from_pos, landing, True, step))
    return moves


def all_legal_moves(board: BoardState, team: Team) -> List[Move]:
    out: List[Move] = []
    for pos, kind in board.pieces():
        if kind.team is team:
            out.extend(legal_moves(board, pos, team))
    return out


def has_any_move(board: BoardState, team: Team) -> bool:
    for pos, kind in board.pieces():
        if kind.team is team and legal_moves(board, pos, team):
            return True
    return False


def count_pieces(board: BoardState, team: Team) -> int:
    return sum(1 for _, kind in board.pieces() if kind.team is team)


def is_terminal(board: BoardState, current_team: Team) -> Tuple[bool, Optional[Team]]:
    """Return ``(over, winner)``; ``winner`` is only meaningful when ``over`` is true.

    A team without pieces loses outright. Otherwise a team with pieces but no
    legal move loses. When both teams are stuck, ``current_team`` (the side that
    just moved) wins because its opponent is the one unable to act next.
    """
    a_pieces = count_pieces(board, Team.A)
    b_pieces = count_pieces(board, Team.B)
    if a_pieces == 0 and b_pieces == 0:
        return False, None
    if b_pieces == 0:
        return True, Team.A
    if a_pieces == 0:
        return True, Team.B
    a_moves = has_any_move(board, Team.A)
    b_moves = has_any_move(board, Team.B)
    if a_moves and b_moves:
        return False, None
    if a_moves:
        return True, Team.A
    if b_moves:
        return True, Team.B
    return True, current_team


def promotion_row(board: BoardState, team: Team) -> int:
    return board.rows - 1 if team.forward > 0 else 0

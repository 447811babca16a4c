from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, List, Optional, Tuple


class BoardSizeError(ValueError):
    def __init__(self, rows: int, cols: int):
        self.rows = rows
        self.cols = cols
        super().__init__(f"Board size must be positive (got {rows}x{cols})")


class Team(Enum):
    A = "A"
    B = "B"

    @property
    def opponent(self) -> "Team":
        return Team.B if self is Team.A else Team.A

    @property
    def forward(self) -> int:
        # Team A starts on row 0 and advances into increasing rows
        return 1 if self is Team.A else -1


class PieceKind(IntEnum):
    EMPTY = 0
    A_MAN = 1
    A_KING = 2
    B_MAN = 3
    B_KING = 4

    @property
    def team(self) -> Optional[Team]:
        if self in (PieceKind.A_MAN, PieceKind.A_KING):
            return Team.A
        if self in (PieceKind.B_MAN, PieceKind.B_KING):
            return Team.B
        return None

    @property
    def is_king(self) -> bool:
        return self in (PieceKind.A_KING, PieceKind.B_KING)

    def promoted(self) -> "PieceKind":
        if self is PieceKind.A_MAN:
            return PieceKind.A_KING
        if self is PieceKind.B_MAN:
            return PieceKind.B_KING
        return self


def man_of(team: Team) -> PieceKind:
    return PieceKind.A_MAN if team is Team.A else PieceKind.B_MAN


def king_of(team: Team) -> PieceKind:
    return PieceKind.A_KING if team is Team.A else PieceKind.B_KING


@dataclass(frozen=True)
class Position:
    row: int
    col: int

    def offset(self, dr: int, dc: int) -> "Position":
        return Position(self.row + dr, self.col + dc)

    def __str__(self) -> str:
        return f"({self.row},{self.col})"


@dataclass(frozen=True)
class Move:
    """A single step or a single jump.

    A capture always records the jumped cell, which is the midpoint of
    ``from_pos`` and ``to_pos``.
    """

    from_pos: Position
    to_pos: Position
    is_capture: bool = False
    captured: Optional[Position] = None


class BoardState:
    """Fixed-size grid of piece codes. Dimensions never change after construction."""

    def __init__(self, rows: int, cols: int) -> None:
        if rows <= 0 or cols <= 0:
            raise BoardSizeError(rows, cols)
        self._rows = rows
        self._cols = cols
        self._cells: List[List[PieceKind]] = [[PieceKind.EMPTY for _ in range(cols)] for _ in range(rows)]

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    def is_inside(self, pos: Position) -> bool:
        return 0 <= pos.row < self._rows and 0 <= pos.col < self._cols

    def _check(self, pos: Position) -> None:
        if not self.is_inside(pos):
            raise IndexError(f"Position {pos} outside {self._rows}x{self._cols} board")

    def get(self, pos: Position) -> PieceKind:
        self._check(pos)
        return self._cells[pos.row][pos.col]

    def set(self, pos: Position, kind: PieceKind) -> None:
        self._check(pos)
        self._cells[pos.row][pos.col] = PieceKind(kind)

    def clear(self) -> None:
        for row in self._cells:
            for c in range(self._cols):
                row[c] = PieceKind.EMPTY

    def positions(self) -> Iterator[Position]:
        for r in range(self._rows):
            for c in range(self._cols):
                yield Position(r, c)

    def pieces(self) -> Iterator[Tuple[Position, PieceKind]]:
        for pos in self.positions():
            kind = self._cells[pos.row][pos.col]
            if kind is not PieceKind.EMPTY:
                yield pos, kind

    def flatten(self) -> List[int]:
        """Row-major piece codes, the layout used on the wire."""
        return [int(kind) for row in self._cells for kind in row]

    def load_flat(self, codes: List[int]) -> None:
        for idx, pos in enumerate(self.positions()):
            self._cells[pos.row][pos.col] = PieceKind(codes[idx]) if idx < len(codes) else PieceKind.EMPTY

    @classmethod
    def from_flat(cls, rows: int, cols: int, codes: List[int]) -> "BoardState":
        board = cls(rows, cols)
        board.load_flat(codes)
        return board

    def copy(self) -> "BoardState":
        return BoardState.from_flat(self._rows, self._cols, self.flatten())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BoardState):
            return NotImplemented
        return (self._rows, self._cols) == (other._rows, other._cols) and self.flatten() == other.flatten()

    def __repr__(self) -> str:
        return f"BoardState({self._rows}x{self._cols})"

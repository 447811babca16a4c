"""
Wire messages exchanged between the host and its peers.

Every frame is JSON text: ``{"type": <name>, "payload": {...}}``. Payloads carry
only primitive fields so any client (browser or Python) can speak the protocol.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from .board import BoardState, Move, Position

logger = logging.getLogger(__name__)

# host -> peer
SNAPSHOT = "snapshot"
SEAT_ASSIGNMENT = "seat_assignment"
MATCH_STARTED = "match_started"
WAITING_FOR_OPPONENT = "waiting_for_opponent"
MATCH_OVER = "match_over"
BOARD_RESET = "board_reset"
SCORE_CHANGED = "score_changed"
RETURN_TO_MENU = "return_to_menu"
ERROR = "error"

# peer -> host
MOVE = "move"
REQUEST_SNAPSHOT = "request_snapshot"
RESTART = "restart"
HELLO = "hello"

MAX_PIECE_CODE = 4


class MoveIntent(BaseModel):
    from_row: int
    from_col: int
    to_row: int
    to_col: int

    @classmethod
    def of(cls, from_pos: Position, to_pos: Position) -> "MoveIntent":
        return cls(from_row=from_pos.row, from_col=from_pos.col, to_row=to_pos.row, to_col=to_pos.col)

    def to_move(self) -> Move:
        return Move(Position(self.from_row, self.from_col), Position(self.to_row, self.to_col))


class Snapshot(BaseModel):
    rows: int = Field(gt=0)
    cols: int = Field(gt=0)
    piece_count: int = Field(ge=0)
    pieces: List[int]
    score_a: int = 0
    score_b: int = 0
    current_acting_seat: int = Field(default=1, ge=1, le=4)
    is_over: bool = False
    is_started: bool = False

    @model_validator(mode="after")
    def _check_pieces(self) -> "Snapshot":
        if self.piece_count != len(self.pieces):
            raise ValueError(f"piece_count {self.piece_count} does not match {len(self.pieces)} pieces")
        if self.piece_count != self.rows * self.cols:
            raise ValueError(f"{self.piece_count} pieces do not fill a {self.rows}x{self.cols} board")
        for code in self.pieces:
            if code < 0 or code > MAX_PIECE_CODE:
                raise ValueError(f"unknown piece code {code}")
        return self

    @classmethod
    def capture(cls, board: BoardState, *, score_a: int, score_b: int, acting_seat: int,
                is_over: bool, is_started: bool) -> "Snapshot":
        pieces = board.flatten()
        return cls(
            rows=board.rows,
            cols=board.cols,
            piece_count=len(pieces),
            pieces=pieces,
            score_a=score_a,
            score_b=score_b,
            current_acting_seat=acting_seat,
            is_over=is_over,
            is_started=is_started,
        )

    def to_board(self) -> BoardState:
        return BoardState.from_flat(self.rows, self.cols, self.pieces)


class SeatAssignment(BaseModel):
    seat: int = Field(default=0, ge=0, le=4, description="0 for spectators")
    is_spectator: bool = False


class MatchOver(BaseModel):
    winning_team: str = Field(pattern="^[AB]$")


class ScoreUpdate(BaseModel):
    score_a: int
    score_b: int


class ErrorNotice(BaseModel):
    detail: str = Field(default="", max_length=300)


PAYLOAD_MODELS: Dict[str, Type[BaseModel]] = {
    SNAPSHOT: Snapshot,
    SEAT_ASSIGNMENT: SeatAssignment,
    MATCH_OVER: MatchOver,
    SCORE_CHANGED: ScoreUpdate,
    ERROR: ErrorNotice,
    MOVE: MoveIntent,
}

SIGNALS = (MATCH_STARTED, WAITING_FOR_OPPONENT, BOARD_RESET, RETURN_TO_MENU, REQUEST_SNAPSHOT, RESTART, HELLO)
CLIENT_TYPES = (MOVE, REQUEST_SNAPSHOT, RESTART, RETURN_TO_MENU, HELLO)


def envelope(msg_type: str, payload: Optional[BaseModel] = None) -> Dict[str, Any]:
    return {"type": msg_type, "payload": payload.model_dump() if payload is not None else {}}


def encode(msg_type: str, payload: Optional[BaseModel] = None) -> str:
    return json.dumps(envelope(msg_type, payload))


Decoded = Tuple[str, Optional[BaseModel]]


def decode(raw: Union[str, bytes, Dict[str, Any]]) -> Decoded:
    """Parse one frame into ``(type, payload_model)``.

    Raises ``ValueError`` for frames that are not JSON objects, carry an unknown
    type, or fail payload validation (pydantic's ``ValidationError`` is a
    ``ValueError``).
    """
    if isinstance(raw, (str, bytes)):
        msg = json.loads(raw)
    else:
        msg = raw
    if not isinstance(msg, dict):
        raise ValueError("message must be a JSON object")
    msg_type = msg.get("type")
    if msg_type in PAYLOAD_MODELS:
        payload = msg.get("payload") or {}
        return msg_type, PAYLOAD_MODELS[msg_type].model_validate(payload)
    if msg_type in SIGNALS:
        return msg_type, None
    raise ValueError(f"unknown message type {msg_type!r}")


def decode_client(raw: Union[str, bytes, Dict[str, Any]]) -> Optional[Decoded]:
    """Decode a peer->host frame; malformed or foreign frames come back as ``None``."""
    try:
        msg_type, payload = decode(raw)
    except (ValueError, ValidationError) as exc:
        logger.debug("dropping malformed client frame: %s", exc)
        return None
    if msg_type not in CLIENT_TYPES:
        logger.debug("dropping non-client frame type %s", msg_type)
        return None
    return msg_type, payload

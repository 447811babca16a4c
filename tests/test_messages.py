import json
import unittest

from pydantic import ValidationError

from checkers_netplay import messages as msgs
from checkers_netplay.board import BoardState, PieceKind, Position
from checkers_netplay.messages import MoveIntent, SeatAssignment, Snapshot


class TestSnapshot(unittest.TestCase):
    def test_capture_flattens_row_major(self):
        board = BoardState(2, 3)
        board.set(Position(1, 0), PieceKind.B_MAN)
        snap = Snapshot.capture(board, score_a=1, score_b=2, acting_seat=2, is_over=False, is_started=True)
        self.assertEqual(snap.piece_count, 6)
        self.assertEqual(snap.pieces, [0, 0, 0, 3, 0, 0])
        self.assertEqual(snap.to_board(), board)

    def test_inconsistent_counts_rejected(self):
        with self.assertRaises(ValidationError):
            Snapshot(rows=2, cols=2, piece_count=3, pieces=[0, 0, 0])
        with self.assertRaises(ValidationError):
            Snapshot(rows=2, cols=2, piece_count=4, pieces=[0, 0, 0])

    def test_unknown_piece_code_rejected(self):
        with self.assertRaises(ValidationError):
            Snapshot(rows=1, cols=2, piece_count=2, pieces=[0, 9])


class TestEnvelope(unittest.TestCase):
    def test_encode_shape(self):
        raw = msgs.encode(msgs.SEAT_ASSIGNMENT, SeatAssignment(seat=2))
        self.assertEqual(json.loads(raw), {"type": "seat_assignment", "payload": {"seat": 2, "is_spectator": False}})
        self.assertEqual(json.loads(msgs.encode(msgs.MATCH_STARTED)), {"type": "match_started", "payload": {}})

    def test_decode_move(self):
        raw = json.dumps({"type": "move", "payload": {"from_row": 1, "from_col": 0, "to_row": 2, "to_col": 1}})
        msg_type, payload = msgs.decode(raw)
        self.assertEqual(msg_type, msgs.MOVE)
        self.assertEqual(payload.to_move().to_pos, Position(2, 1))

    def test_decode_rejects_garbage(self):
        for raw in ("not json", "[1, 2]", json.dumps({"type": "nope"})):
            with self.assertRaises(ValueError):
                msgs.decode(raw)

    def test_decode_client_drops_bad_frames(self):
        self.assertIsNone(msgs.decode_client("{"))
        self.assertIsNone(msgs.decode_client({"type": "move", "payload": {"from_row": "x"}}))
        # Host-only frame types are not accepted from peers
        self.assertIsNone(msgs.decode_client(msgs.envelope(msgs.MATCH_STARTED)))
        self.assertEqual(msgs.decode_client({"type": "request_snapshot"}), (msgs.REQUEST_SNAPSHOT, None))

    def test_move_intent_of(self):
        intent = MoveIntent.of(Position(1, 2), Position(2, 3))
        self.assertEqual(intent.model_dump(), {"from_row": 1, "from_col": 2, "to_row": 2, "to_col": 3})


if __name__ == "__main__":
    unittest.main()

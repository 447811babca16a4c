import os
import random
import sys
from typing import Dict, List

# Ensure the local package is importable when running directly
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from checkers_netplay.board import BoardState, Move, PieceKind, Position, Team
from checkers_netplay.game import GameOrchestrator
from checkers_netplay.rules import StandardLayout, all_legal_moves, legal_moves


def new_game(rows: int = 6, cols: int = 6, rows_per_side: int = 2) -> GameOrchestrator:
    game = GameOrchestrator(rows, cols)
    game.reset_board(StandardLayout(rows_per_side))
    return game


def check_move_shape(board: BoardState, mv: Move, team: Team) -> None:
    """Targets on-board and empty; captures jump exactly one enemy on the midpoint."""
    if not board.is_inside(mv.to_pos):
        raise AssertionError(f"Off-board target {mv.from_pos}->{mv.to_pos}")
    if board.get(mv.to_pos) is not PieceKind.EMPTY:
        raise AssertionError(f"Occupied target {mv.from_pos}->{mv.to_pos}")
    if mv.is_capture:
        mid = Position((mv.from_pos.row + mv.to_pos.row) // 2, (mv.from_pos.col + mv.to_pos.col) // 2)
        if mv.captured != mid:
            raise AssertionError(f"Capture {mv} does not record the midpoint {mid}")
        if board.get(mid).team is not team.opponent:
            raise AssertionError(f"Capture {mv} jumps {board.get(mid).name}, not an enemy")


def sample_illegal_moves(board: BoardState, pos: Position) -> List[Move]:
    kind = board.get(pos)
    back = -kind.team.forward if kind.team is not None else 0
    candidates = [
        Move(pos, pos),
        Move(pos, Position(-1, pos.col)),
        Move(pos, pos.offset(0, 2)),
        Move(pos, pos.offset(2 * (kind.team.forward if kind.team else 1), 0)),
    ]
    if not kind.is_king:
        candidates.append(Move(pos, pos.offset(back, 1)))
    generated = {m.to_pos for m in legal_moves(board, pos, kind.team)} if kind.team else set()
    return [m for m in candidates if m.to_pos not in generated]


def exercise_piece_legality(game: GameOrchestrator) -> Dict[str, int]:
    """Enumerate legal moves per piece and spot-check that bad targets are rejected without side effects."""
    counts = {"pieces": 0, "legal_moves": 0, "illegal_checked": 0}
    team = game.current_team
    for pos, kind in list(game.board.pieces()):
        counts["pieces"] += 1
        for mv in legal_moves(game.board, pos, kind.team):
            check_move_shape(game.board, mv, kind.team)
            counts["legal_moves"] += 1
        if kind.team is not team:
            continue
        for mv in sample_illegal_moves(game.board, pos):
            before = (game.board.copy(), game.current_team, game.score_a, game.score_b, len(game.moves_list))
            if game.try_apply_move(mv):
                raise AssertionError(f"Illegal move accepted: {mv.from_pos}->{mv.to_pos}")
            after = (game.board, game.current_team, game.score_a, game.score_b, len(game.moves_list))
            if before != after:
                raise AssertionError(f"Rejected move {mv.from_pos}->{mv.to_pos} changed state")
            counts["illegal_checked"] += 1
    return counts


def autoplay_random(game: GameOrchestrator, plies: int = 60, seed: int = 7) -> Dict[str, int]:
    rng = random.Random(seed)
    stats = {"plies": 0, "captures": 0, "promotions": 0, "finished": 0}
    for _ in range(plies):
        if game.is_over:
            stats["finished"] = 1
            break
        team = game.current_team
        legal = sorted(all_legal_moves(game.board, team), key=lambda m: (m.from_pos.row, m.from_pos.col,
                                                                          m.to_pos.row, m.to_pos.col))
        if not legal:
            raise AssertionError(f"Team {team.value} has no move but the game is still running")
        mv = rng.choice(legal)
        check_move_shape(game.board, mv, team)
        if not game.try_apply_move(Move(mv.from_pos, mv.to_pos)):
            raise AssertionError(f"Orchestrator rejected its own legal move {mv.from_pos}->{mv.to_pos}")
        rec = game.moves_list[-1]
        stats["plies"] += 1
        stats["captures"] += 1 if rec["cap"] else 0
        stats["promotions"] += 1 if rec["promoted"] else 0
        if not game.is_over and game.current_team is team:
            raise AssertionError("Turn did not alternate after an accepted move")
    if game.is_over:
        stats["finished"] = 1
    return stats


def check_promotions() -> int:
    """A man stepping onto the far row becomes a king, for both teams."""
    promoted = 0
    game = GameOrchestrator(6, 6)
    game.reset_board(StandardLayout(0))
    game.board.set(Position(4, 1), PieceKind.A_MAN)
    game.board.set(Position(0, 5), PieceKind.B_MAN)
    game.board.set(Position(2, 5), PieceKind.B_MAN)
    if not game.try_apply_move(Move(Position(4, 1), Position(5, 0))):
        raise AssertionError("Team A promotion step rejected")
    if game.board.get(Position(5, 0)) is not PieceKind.A_KING:
        raise AssertionError("Team A man was not promoted")
    promoted += 1
    if not game.try_apply_move(Move(Position(2, 5), Position(1, 4))):
        raise AssertionError("Team B step rejected")
    game.try_apply_move(Move(Position(5, 0), Position(4, 1)))
    if not game.try_apply_move(Move(Position(1, 4), Position(0, 3))):
        raise AssertionError("Team B promotion step rejected")
    if game.board.get(Position(0, 3)) is not PieceKind.B_KING:
        raise AssertionError("Team B man was not promoted")
    promoted += 1
    return promoted


def main(games: int = 20) -> None:
    counts = exercise_piece_legality(new_game())
    print(f"[OK] pieces={counts['pieces']} legal_moves={counts['legal_moves']} illegal_checked={counts['illegal_checked']}")
    finished = 0
    for seed in range(games):
        stats = autoplay_random(new_game(), plies=200, seed=seed)
        finished += stats["finished"]
    print(f"[OK] autoplay games={games} finished={finished}")
    big = autoplay_random(new_game(8, 8, 3), plies=200, seed=99)
    print(f"[OK] autoplay 8x8 plies={big['plies']} captures={big['captures']} promotions={big['promotions']}")
    promos = check_promotions()
    print(f"[OK] promotions verified={promos}")


if __name__ == "__main__":
    try:
        main()
    except AssertionError as e:
        print(f"[FAIL] {e}")
        sys.exit(1)

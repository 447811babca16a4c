from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

from pydantic import BaseModel

from . import messages as msgs
from .board import Team
from .config import Settings
from .events import BoardReset, GameEvent, GameOver, MoveApplied, ScoreChanged, TurnChanged
from .game import GameOrchestrator
from .messages import MatchOver, MoveIntent, ScoreUpdate, SeatAssignment, Snapshot
from .move_validator import MoveValidator, Verdict
from .rules import StandardLayout
from .seats import HOST_SEAT, allowed_peer_seats, resolve_acting_seat, seats_of_team, team_of

logger = logging.getLogger(__name__)


class SessionClosedError(RuntimeError):
    def __init__(self, host_conn_id: str):
        self.host_conn_id = host_conn_id
        super().__init__(f"Session hosted by '{host_conn_id}' has been torn down")


class Transport(Protocol):
    """Ordered, reliable delivery of JSON-ready dicts to one connection."""

    def send(self, conn_id: str, message: Dict[str, Any]) -> None:
        ...


class SessionCoordinator:
    """Authoritative host side of a match.

    Owns the seat table and the orchestrator. Every input (connect, disconnect,
    move intent, restart) is handled to completion, broadcasts included, before
    the next one is looked at; callers must not interleave calls.
    """

    def __init__(self, host_conn_id: str, transport: Transport, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()
        self.host_conn_id = host_conn_id
        self.transport = transport
        self.max_players = self.settings.max_players
        self.layout = StandardLayout(self.settings.rows_per_side)
        # conn_id -> {"seat": int | None, "spectator": bool}, in join order
        self.clients: Dict[str, Dict[str, Any]] = {}
        self.seat_table: Dict[str, int] = {}
        self.validator = MoveValidator(self.seat_table)
        self.is_started = False
        self.acting_seat: Optional[int] = None
        self.closed = False

        self.game = GameOrchestrator(self.settings.rows, self.settings.cols)
        self._unsubscribe = self.game.events.subscribe(self._on_game_event)

        self.clients[host_conn_id] = {"seat": HOST_SEAT, "spectator": False}
        self.seat_table[host_conn_id] = HOST_SEAT
        self._send(host_conn_id, msgs.SEAT_ASSIGNMENT, SeatAssignment(seat=HOST_SEAT, is_spectator=False))
        self.game.reset_board(self.layout)
        logger.info("session opened by %s (%d-seat mode, %dx%d)", host_conn_id, self.max_players,
                    self.settings.rows, self.settings.cols)

    # ---- read side ----

    @property
    def is_over(self) -> bool:
        return self.game.is_over

    @property
    def occupied_seats(self) -> List[int]:
        return sorted(self.seat_table.values())

    @property
    def spectators(self) -> List[str]:
        return [cid for cid, info in self.clients.items() if info.get("spectator")]

    def seat_of(self, conn_id: str) -> Optional[int]:
        return self.seat_table.get(conn_id)

    def snapshot(self) -> Snapshot:
        return Snapshot.capture(
            self.game.board,
            score_a=self.game.score_a,
            score_b=self.game.score_b,
            acting_seat=self.acting_seat or HOST_SEAT,
            is_over=self.game.is_over,
            is_started=self.is_started,
        )

    def summary(self) -> Dict[str, Any]:
        taken = self.occupied_seats
        return {
            "host": self.host_conn_id,
            "max_players": self.max_players,
            "taken": taken,
            "available": [s for s in allowed_peer_seats(self.max_players) if s not in taken],
            "spectators": len(self.spectators),
            "clients": len(self.clients),
            "started": self.is_started,
            "over": self.game.is_over,
            "turn": self.game.current_team.value,
            "acting_seat": self.acting_seat,
            "moves_played": len(self.game.moves_list),
        }

    # ---- outbound ----

    def _send(self, conn_id: str, msg_type: str, payload: Optional[BaseModel] = None) -> bool:
        try:
            self.transport.send(conn_id, msgs.envelope(msg_type, payload))
            return True
        except Exception:
            logger.warning("send of %s to %s failed", msg_type, conn_id, exc_info=True)
            return False

    def _broadcast(self, msg_type: str, payload: Optional[BaseModel] = None) -> None:
        dead: List[str] = []
        for conn_id in list(self.clients):
            if not self._send(conn_id, msg_type, payload):
                dead.append(conn_id)
        for conn_id in dead:
            if conn_id in self.clients:
                self.disconnect(conn_id)

    def _broadcast_snapshot(self) -> None:
        self._broadcast(msgs.SNAPSHOT, self.snapshot())

    def send_snapshot(self, conn_id: str) -> None:
        if conn_id in self.clients:
            self._send(conn_id, msgs.SNAPSHOT, self.snapshot())

    def _on_game_event(self, event: GameEvent) -> None:
        if isinstance(event, BoardReset):
            self.acting_seat = None
            self._broadcast(msgs.BOARD_RESET)
        elif isinstance(event, TurnChanged):
            self._update_acting_seat(event.team)
        elif isinstance(event, ScoreChanged):
            self._broadcast(msgs.SCORE_CHANGED, ScoreUpdate(score_a=event.score_a, score_b=event.score_b))
        elif isinstance(event, GameOver):
            self._broadcast(msgs.MATCH_OVER, MatchOver(winning_team=event.winner.value))
        elif isinstance(event, MoveApplied):
            logger.debug("applied %s -> %s", event.move.from_pos, event.move.to_pos)
        self._broadcast_snapshot()

    def _update_acting_seat(self, team: Team) -> None:
        self.acting_seat = resolve_acting_seat(team, self.acting_seat, self.occupied_seats, self.max_players)

    def _refresh_acting_seat(self) -> bool:
        """Re-resolve after the seat table changed; True if the acting seat moved."""
        current = self.acting_seat
        if current is None:
            # Mid reset, TurnChanged resolves it
            return False
        if team_of(current) is self.game.current_team and current in self.seat_table.values():
            return False
        self._update_acting_seat(self.game.current_team)
        if self.acting_seat == current:
            return False
        logger.info("acting seat for team %s moved %d -> %d", self.game.current_team.value, current, self.acting_seat)
        return True

    # ---- seats ----

    def _assign(self, conn_id: str) -> SeatAssignment:
        taken = set(self.seat_table.values())
        for seat in allowed_peer_seats(self.max_players):
            if seat not in taken:
                self.seat_table[conn_id] = seat
                self.clients[conn_id] = {"seat": seat, "spectator": False}
                logger.info("assigned %s to seat %d (team %s)", conn_id, seat, team_of(seat).value)
                return SeatAssignment(seat=seat, is_spectator=False)
        self.clients[conn_id] = {"seat": None, "spectator": True}
        logger.info("all seats taken, %s joins as spectator", conn_id)
        return SeatAssignment(seat=0, is_spectator=True)

    def _start_condition_met(self) -> bool:
        taken = set(self.seat_table.values())
        if self.max_players >= 4:
            return all(s in taken for s in (1, 2, 3, 4))
        return any(s in taken for s in seats_of_team(Team.B, self.max_players))

    def _maybe_start(self) -> bool:
        if self.is_started or not self._start_condition_met():
            return False
        self.is_started = True
        logger.info("opponent side seated, match starting (%d-seat mode)", self.max_players)
        self._broadcast(msgs.MATCH_STARTED)
        self._broadcast_snapshot()
        return True

    def _require_open(self) -> None:
        if self.closed:
            raise SessionClosedError(self.host_conn_id)

    def connect(self, conn_id: str) -> SeatAssignment:
        self._require_open()
        existing = self.clients.get(conn_id)
        if existing is not None:
            return SeatAssignment(seat=existing.get("seat") or 0, is_spectator=bool(existing.get("spectator")))
        assignment = self._assign(conn_id)
        self._send(conn_id, msgs.SEAT_ASSIGNMENT, assignment)
        moved = not assignment.is_spectator and self._refresh_acting_seat()
        if self._maybe_start():
            return assignment
        if self.is_started:
            logger.info("late joiner %s, re-sending match_started", conn_id)
            self._send(conn_id, msgs.MATCH_STARTED)
        if moved:
            self._broadcast_snapshot()
        else:
            self.send_snapshot(conn_id)
        return assignment

    def disconnect(self, conn_id: str) -> None:
        if self.closed:
            return
        if conn_id == self.host_conn_id:
            self.teardown()
            return
        info = self.clients.pop(conn_id, None)
        if info is None:
            return
        seat = self.seat_table.pop(conn_id, None)
        if seat is None:
            logger.info("spectator %s disconnected", conn_id)
            return
        logger.info("%s left seat %d, freeing it", conn_id, seat)
        moved = self._refresh_acting_seat()
        remaining_b = [s for s in self.seat_table.values() if team_of(s) is Team.B]
        if not remaining_b:
            self.is_started = False
            logger.info("no team B seat left, waiting for opponent")
            self._broadcast(msgs.WAITING_FOR_OPPONENT)
            self._broadcast_snapshot()
        else:
            logger.info("team B still holds seats %s, match continues", remaining_b)
            if moved:
                self._broadcast_snapshot()

    def teardown(self, initiator: Optional[str] = None) -> None:
        """Send everyone but ``initiator`` (default: the host) back to the menu and close."""
        if self.closed:
            return
        skip = initiator or self.host_conn_id
        notified = [cid for cid in self.clients if cid != skip]
        for conn_id in notified:
            self._send(conn_id, msgs.RETURN_TO_MENU)
        self.closed = True
        self.is_started = False
        self.clients.clear()
        self.seat_table.clear()
        self._unsubscribe()
        logger.info("session of %s torn down by %s (%d clients returned to menu)", self.host_conn_id, skip,
                    len(notified))

    def return_to_menu(self, requested_by: str) -> bool:
        """Any seated player may end the match for everyone."""
        self._require_open()
        if requested_by not in self.seat_table:
            logger.info("return to menu from unseated %s ignored", requested_by)
            return False
        logger.info("%s sent the table back to the menu", requested_by)
        self.teardown(requested_by)
        return True

    # ---- inbound ----

    def handle_message(self, conn_id: str, raw: Any) -> None:
        if self.closed or conn_id not in self.clients:
            return
        decoded = msgs.decode_client(raw)
        if decoded is None:
            return
        msg_type, payload = decoded
        if msg_type == msgs.MOVE and isinstance(payload, MoveIntent):
            self.handle_move_intent(conn_id, payload)
        elif msg_type == msgs.REQUEST_SNAPSHOT:
            self.send_snapshot(conn_id)
        elif msg_type == msgs.RESTART:
            self.restart(conn_id)
        elif msg_type == msgs.RETURN_TO_MENU:
            self.return_to_menu(conn_id)

    def handle_move_intent(self, conn_id: str, intent: MoveIntent) -> bool:
        if self.closed:
            return False
        verdict, reason = self.validator.validate_move(
            conn_id, self.game.current_team, started=self.is_started, over=self.game.is_over,
        )
        if verdict is not Verdict.ACCEPT:
            if verdict.is_desync:
                logger.warning("potential desync from %s: %s; re-sending snapshot", conn_id, reason)
                self.send_snapshot(conn_id)
            else:
                logger.info("ignored move intent from %s: %s", conn_id, reason)
            return False
        move = intent.to_move()
        if not self.game.try_apply_move(move):
            logger.info("rejected illegal move %s -> %s from %s", move.from_pos, move.to_pos, conn_id)
            return False
        return True

    def restart(self, requested_by: str) -> bool:
        """Host-only: new board, match running immediately."""
        self._require_open()
        if requested_by != self.host_conn_id:
            logger.info("restart from non-host %s ignored", requested_by)
            return False
        self.game.reset_board(self.layout)
        self.is_started = True
        logger.info("match restarted by host")
        self._broadcast_snapshot()
        return True

    def full_reset(self, requested_by: str) -> bool:
        """Host-only: new board, seat table rebuilt in join order, quorum required again."""
        self._require_open()
        if requested_by != self.host_conn_id:
            logger.info("full reset from non-host %s ignored", requested_by)
            return False
        self.is_started = False
        order: List[str] = [cid for cid in self.clients if cid != self.host_conn_id]
        self.seat_table.clear()
        self.seat_table[self.host_conn_id] = HOST_SEAT
        self.clients = {self.host_conn_id: {"seat": HOST_SEAT, "spectator": False}}
        reassigned: List[Tuple[str, SeatAssignment]] = []
        for conn_id in order:
            reassigned.append((conn_id, self._assign(conn_id)))
        for conn_id, assignment in reassigned:
            self._send(conn_id, msgs.SEAT_ASSIGNMENT, assignment)
        self.game.reset_board(self.layout)
        logger.info("full reset by host, %d peers re-seated", len(order))
        self._maybe_start()
        return True

"""How a move chosen on screen reaches the authoritative game.

The host and its peers drive the same mirror code; only the applier differs.
The host's applier runs the intent through its own session in-process, a
peer's applier relays it to the host as a ``move`` frame. Neither touches the
mirror's board: that only changes when the resulting snapshot comes back.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Protocol

from . import messages as msgs
from .messages import MoveIntent
from .session import SessionCoordinator

logger = logging.getLogger(__name__)


class StateApplier(Protocol):
    def submit(self, intent: MoveIntent) -> None:
        ...


class AuthoritativeApplier:
    def __init__(self, session: SessionCoordinator, conn_id: str) -> None:
        self.session = session
        self.conn_id = conn_id

    def submit(self, intent: MoveIntent) -> None:
        self.session.handle_move_intent(self.conn_id, intent)


class RelayApplier:
    def __init__(self, send: Callable[[Dict[str, Any]], None]) -> None:
        self._send = send

    def submit(self, intent: MoveIntent) -> None:
        logger.debug("relaying intent %s", intent)
        self._send(msgs.envelope(msgs.MOVE, intent))

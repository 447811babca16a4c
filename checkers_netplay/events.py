"""Typed notifications fired by the game orchestrator.

Subscribers register a handler on an :class:`EventChannel` and receive every
event in firing order. The local presentation layer and the network
broadcaster subscribe independently and never see each other.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Union

from .board import Move, Team

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardReset:
    pass


@dataclass(frozen=True)
class TurnChanged:
    team: Team


@dataclass(frozen=True)
class MoveApplied:
    move: Move
    promoted: bool = False


@dataclass(frozen=True)
class GameOver:
    winner: Team


@dataclass(frozen=True)
class ScoreChanged:
    score_a: int
    score_b: int


GameEvent = Union[BoardReset, TurnChanged, MoveApplied, GameOver, ScoreChanged]
Handler = Callable[[GameEvent], None]


class EventChannel:
    def __init__(self) -> None:
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register ``handler``; the returned callable removes it again."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, event: GameEvent) -> None:
        logger.debug("event %s", event)
        for handler in list(self._handlers):
            handler(event)

    def __len__(self) -> int:
        return len(self._handlers)

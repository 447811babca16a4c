"""Networked team checkers: an authoritative host, remote mirrors and a websocket service."""
from .board import BoardSizeError, BoardState, Move, PieceKind, Position, Team
from .config import ConfigurationError, Settings, load_settings
from .game import GameOrchestrator, GamePhase
from .rules import StandardLayout, is_terminal, legal_moves
from .session import SessionClosedError, SessionCoordinator

__version__ = "0.3.0"

__all__ = [
    "BoardSizeError",
    "BoardState",
    "ConfigurationError",
    "GameOrchestrator",
    "GamePhase",
    "Move",
    "PieceKind",
    "Position",
    "SessionClosedError",
    "SessionCoordinator",
    "Settings",
    "StandardLayout",
    "Team",
    "is_terminal",
    "legal_moves",
    "load_settings",
]

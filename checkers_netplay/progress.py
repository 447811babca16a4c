from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from .board import Team
from .events import GameEvent, GameOver

logger = logging.getLogger(__name__)

COINS_KEY = "coins"


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        "create table if not exists progress ("
        "key text primary key, "
        "value integer not null default 0)"
    )


class CoinStore:
    """Local integer key/value store; holds the coin balance between sessions."""

    def __init__(self, path: str) -> None:
        self.path = path

    def _run_query(self, query: str, params=()):
        with sqlite3.connect(self.path) as conn:
            _ensure_schema(conn)
            cur = conn.cursor()
            cur.execute(query, params)
            rows = cur.fetchall()
            conn.commit()
            return rows

    def get_int(self, key: str, default: int = 0) -> int:
        rows = self._run_query("select value from progress where key = ?", (key,))
        if not rows:
            return default
        return int(rows[0][0])

    def set_int(self, key: str, value: int) -> None:
        self._run_query(
            "insert into progress (key, value) values (?, ?) "
            "on conflict(key) do update set value = excluded.value",
            (key, int(value)),
        )

    @property
    def coins(self) -> int:
        return self.get_int(COINS_KEY)

    def add_coins(self, amount: int) -> int:
        if amount <= 0:
            return self.coins
        total = self.coins + amount
        self.set_int(COINS_KEY, total)
        logger.info("awarded %d coins, balance now %d", amount, total)
        return total


class CoinReward:
    """Credits ``amount`` coins whenever the local team wins a match."""

    def __init__(self, store: CoinStore, amount: int, local_team: Optional[Team] = None) -> None:
        self.store = store
        self.amount = amount
        self.local_team = local_team

    def award_if_local(self, winner: Team) -> bool:
        if self.local_team is None or winner is not self.local_team:
            return False
        self.store.add_coins(self.amount)
        return True

    def on_event(self, event: GameEvent) -> None:
        if isinstance(event, GameOver):
            self.award_if_local(event.winner)

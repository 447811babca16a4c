"""Peer-side network client: one websocket to the host, feeding a RemoteMirror."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import aiohttp

from .mirror import RemoteMirror
from .progress import CoinReward
from .sync import RelayApplier

logger = logging.getLogger(__name__)


def build_url(host: str, port: int, room: str = "main", role: str = "peer", players: Optional[int] = None) -> str:
    url = f"ws://{host}:{port}/ws?room={room}&role={role}"
    if players is not None:
        url += f"&players={players}"
    return url


async def wait_for_connection(is_connected: Callable[[], bool], timeout: float = 5.0, poll: float = 0.05) -> bool:
    """Poll ``is_connected`` until it is true or ``timeout`` seconds pass."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not is_connected():
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(poll)
    return True


class PeerClient:
    def __init__(self, url: str, reward: Optional[CoinReward] = None, rows: int = 6, cols: int = 6) -> None:
        self.url = url
        self.connected = False
        self._outgoing: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self.mirror = RemoteMirror(RelayApplier(self._outgoing.put_nowait), reward, rows, cols)
        self._task: Optional[asyncio.Task] = None

    async def connect(self, timeout: float = 5.0) -> bool:
        """Open the socket in the background; give up after ``timeout`` seconds."""
        self._task = asyncio.create_task(self._run())
        if await wait_for_connection(lambda: self.connected, timeout):
            return True
        logger.warning("no connection to %s after %.1fs, aborting", self.url, timeout)
        await self.close()
        return False

    def send(self, frame: Dict[str, Any]) -> None:
        self._outgoing.put_nowait(frame)

    def request_snapshot(self) -> None:
        self._outgoing.put_nowait(self.mirror.request_snapshot())

    def return_to_menu(self) -> None:
        self._outgoing.put_nowait(self.mirror.request_return_to_menu())

    async def close(self) -> None:
        if self.connected:
            try:
                await asyncio.wait_for(self._outgoing.join(), 1.0)
            except asyncio.TimeoutError:
                logger.debug("closing with %d frames unsent", self._outgoing.qsize())
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.connected = False

    async def _run(self) -> None:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.ws_connect(self.url) as ws:
                    self.connected = True
                    logger.info("connected to %s", self.url)
                    writer = asyncio.create_task(self._write(ws))
                    try:
                        await self._read(ws)
                    finally:
                        writer.cancel()
        except aiohttp.ClientError as exc:
            logger.warning("connection to %s failed: %s", self.url, exc)
        finally:
            self.connected = False

    async def _read(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._dispatch(msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning("websocket error: %s", ws.exception())
                break
        logger.info("host closed the connection")

    def _dispatch(self, text: str) -> None:
        try:
            frame = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("ignoring non-JSON frame")
            return
        if isinstance(frame, dict) and frame.get("type") in ("host_taken", "no_host", "bad_role"):
            logger.warning("host refused connection: %s", frame.get("type"))
            return
        self.mirror.handle_frame(frame)

    async def _write(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while True:
            frame = await self._outgoing.get()
            await ws.send_str(json.dumps(frame))
            self._outgoing.task_done()


__all__ = ["PeerClient", "build_url", "wait_for_connection"]

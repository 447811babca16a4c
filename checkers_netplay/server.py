import asyncio
import dataclasses
import io
import json
import logging
import re
import threading
from typing import Any, Dict, List, Optional

import qrcode
from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import messages as msgs
from .config import Settings, load_settings
from .discovery import lan_ip_guess
from .messages import ErrorNotice
from .session import SessionClosedError, SessionCoordinator

logger = logging.getLogger(__name__)


class HostTakenError(Exception):
    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room '{room_id}' already has a host")


class NoHostError(Exception):
    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room '{room_id}' has no host")


DEFAULT_ROOM_ID = "main"
ROLES = ("host", "peer")
_ROOM_SLUG_RE = re.compile(r"[^a-z0-9]+")

settings: Settings = load_settings()

app = FastAPI(title="checkers-netplay")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _normalize_room_id(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_ROOM_ID
    slug = _ROOM_SLUG_RE.sub("-", value.strip().lower()).strip("-")
    return slug or DEFAULT_ROOM_ID


class GameHub:
    """One room: websocket plumbing around a single SessionCoordinator.

    The session is synchronous; it queues outbound frames on this hub through
    ``send`` and the hub flushes them to the sockets after every input, under
    the room lock, so inputs are applied and broadcast one at a time.
    """

    def __init__(self, room_id: str = DEFAULT_ROOM_ID, room_settings: Optional[Settings] = None):
        self.room_id = _normalize_room_id(room_id)
        self.settings = room_settings or settings
        self.session: Optional[SessionCoordinator] = None
        self.sockets: Dict[str, WebSocket] = {}
        self._outbox: Dict[str, List[Dict[str, Any]]] = {}
        self._conn_counter = 0
        self.lock = asyncio.Lock()

    # Transport
    def send(self, conn_id: str, message: Dict[str, Any]) -> None:
        if conn_id not in self.sockets:
            raise ConnectionError(f"{conn_id} is not connected")
        self._outbox.setdefault(conn_id, []).append(message)

    @property
    def open(self) -> bool:
        return self.session is not None and not self.session.closed

    def _next_conn_id(self, role: str) -> str:
        self._conn_counter += 1
        return f"{self.room_id}-{role}-{self._conn_counter}"

    async def _flush(self) -> None:
        while self._outbox:
            pending, self._outbox = self._outbox, {}
            dead: List[str] = []
            for conn_id, frames in pending.items():
                ws = self.sockets.get(conn_id)
                if ws is None:
                    continue
                try:
                    for frame in frames:
                        await ws.send_text(json.dumps(frame))
                except Exception:
                    logger.warning("dropping dead connection %s in room %s", conn_id, self.room_id)
                    dead.append(conn_id)
            for conn_id in dead:
                self.sockets.pop(conn_id, None)
                if self.open:
                    self.session.disconnect(conn_id)
            if self.session is not None and self.session.closed:
                await self._close_room()

    async def _close_room(self) -> None:
        # Peers already got return_to_menu; drop their sockets too
        peers = list(self.sockets.items())
        self.sockets.clear()
        self._outbox.clear()
        self.session = None
        rooms.discard(self)
        for conn_id, ws in peers:
            try:
                await ws.close()
            except Exception:
                logger.debug("close of %s failed", conn_id, exc_info=True)
        logger.info("room %s closed", self.room_id)

    async def connect(self, ws: WebSocket, role: str, max_players: Optional[int] = None) -> str:
        async with self.lock:
            if role == "host":
                if self.open:
                    raise HostTakenError(self.room_id)
                room_settings = self.settings
                if max_players is not None:
                    room_settings = dataclasses.replace(room_settings, max_players=max_players)
                if not rooms.adopt(self):
                    raise HostTakenError(self.room_id)
                conn_id = self._next_conn_id(role)
                self.sockets[conn_id] = ws
                self.session = SessionCoordinator(conn_id, self, room_settings)
            else:
                if not self.open:
                    raise NoHostError(self.room_id)
                conn_id = self._next_conn_id(role)
                self.sockets[conn_id] = ws
                self.session.connect(conn_id)
            await self._flush()
            return conn_id

    async def disconnect(self, conn_id: str) -> None:
        async with self.lock:
            if self.sockets.pop(conn_id, None) is None:
                return
            if self.open:
                self.session.disconnect(conn_id)
            await self._flush()

    async def handle(self, conn_id: str, raw: str) -> None:
        async with self.lock:
            if self.open and conn_id in self.sockets:
                self.session.handle_message(conn_id, raw)
            await self._flush()

    async def restart(self) -> bool:
        async with self.lock:
            if not self.open:
                raise NoHostError(self.room_id)
            ok = self.session.restart(self.session.host_conn_id)
            await self._flush()
            return ok

    async def full_reset(self) -> bool:
        async with self.lock:
            if not self.open:
                raise NoHostError(self.room_id)
            ok = self.session.full_reset(self.session.host_conn_id)
            await self._flush()
            return ok

    def summary(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {"id": self.room_id, "open": self.open, "connections": len(self.sockets)}
        if self.open:
            info.update(self.session.summary())
        return info


class RoomManager:
    def __init__(self):
        self._rooms: Dict[str, GameHub] = {}
        self._lock = threading.RLock()

    def normalize(self, room_id: Optional[str]) -> str:
        return _normalize_room_id(room_id)

    def get_or_create(self, room_id: Optional[str]) -> GameHub:
        rid = self.normalize(room_id)
        with self._lock:
            hub = self._rooms.get(rid)
            if hub is None:
                hub = GameHub(room_id=rid)
                self._rooms[rid] = hub
            return hub

    def get(self, room_id: Optional[str]) -> Optional[GameHub]:
        with self._lock:
            return self._rooms.get(self.normalize(room_id))

    def adopt(self, hub: GameHub) -> bool:
        """Re-register ``hub`` under its id unless another hub holds it."""
        with self._lock:
            current = self._rooms.setdefault(hub.room_id, hub)
            return current is hub

    def discard(self, hub: GameHub) -> None:
        """Drop ``hub`` once it has neither a session nor sockets."""
        with self._lock:
            if hub.open or hub.sockets or self._rooms.get(hub.room_id) is not hub:
                return
            del self._rooms[hub.room_id]
        logger.debug("room %s evicted", hub.room_id)

    def require(self, room_id: Optional[str]) -> GameHub:
        rid = self.normalize(room_id)
        with self._lock:
            hub = self._rooms.get(rid)
            if hub is None:
                raise KeyError(rid)
            return hub

    def list_rooms(self) -> List[GameHub]:
        with self._lock:
            return list(self._rooms.values())

    def snapshot(self) -> List[Dict[str, Any]]:
        return [hub.summary() for hub in self.list_rooms()]

    def reset(self) -> None:
        with self._lock:
            self._rooms.clear()


rooms = RoomManager()


def _open_room_or_404(room_id: Optional[str]) -> GameHub:
    try:
        hub = rooms.require(room_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"room '{rooms.normalize(room_id)}' not found") from exc
    if not hub.open:
        raise HTTPException(status_code=404, detail=f"room '{hub.room_id}' has no host")
    return hub


async def _reject(ws: WebSocket, msg_type: str, room_id: str) -> None:
    await ws.send_text(json.dumps({"type": msg_type, "payload": {"room": room_id}}))
    await ws.close()


@app.websocket("/ws")
async def ws_endpoint(ws: WebSocket):
    role = (ws.query_params.get("role") or "peer").lower()
    players_raw = ws.query_params.get("players")
    room_id = rooms.normalize(ws.query_params.get("room"))
    await ws.accept()
    if role not in ROLES:
        await _reject(ws, "bad_role", room_id)
        return
    # Only a host brings a room into existence
    hub = rooms.get_or_create(room_id) if role == "host" else rooms.get(room_id)
    if hub is None:
        await _reject(ws, "no_host", room_id)
        return
    try:
        max_players = int(players_raw) if players_raw else None
        conn_id = await hub.connect(ws, role, max_players)
    except HostTakenError as e:
        await _reject(ws, "host_taken", e.room_id)
        return
    except NoHostError as e:
        await _reject(ws, "no_host", e.room_id)
        return
    except ValueError as e:
        rooms.discard(hub)
        await ws.send_text(msgs.encode(msgs.ERROR, ErrorNotice(detail=str(e)[:300])))
        await ws.close()
        return
    try:
        while True:
            txt = await ws.receive_text()
            try:
                await hub.handle(conn_id, txt)
            except Exception as e:
                # Never crash the socket loop on handler errors; report to client
                logger.exception("handler error on %s", conn_id)
                try:
                    await ws.send_text(msgs.encode(msgs.ERROR, ErrorNotice(detail=f"server error: {e}"[:300])))
                except Exception:
                    logger.debug("could not report error to %s", conn_id)
    except WebSocketDisconnect:
        await hub.disconnect(conn_id)
    except RuntimeError:
        # Closed from our side when the room shut down
        await hub.disconnect(conn_id)


@app.get('/rooms')
def rooms_list():
    return JSONResponse({'ok': True, 'rooms': rooms.snapshot()})


@app.get('/seats')
def seats_status(room: str = Query(DEFAULT_ROOM_ID)):
    """Report which seats are taken/available (claims are still enforced on connect)."""
    hub = _open_room_or_404(room)
    info = hub.session.summary()
    return JSONResponse({'ok': True, 'taken': info['taken'], 'available': info['available'],
                         'spectators': info['spectators'], 'max_players': info['max_players']})


@app.get('/state')
def state(room: str = Query(DEFAULT_ROOM_ID)):
    hub = _open_room_or_404(room)
    return JSONResponse({
        'ok': True,
        'state': hub.session.game.serialize_state(),
        'snapshot': hub.session.snapshot().model_dump(),
        'room': hub.summary(),
    })


@app.post('/admin/restart')
async def admin_restart(room: str = Query(DEFAULT_ROOM_ID)):
    hub = _open_room_or_404(room)
    try:
        ok = await hub.restart()
    except (NoHostError, SessionClosedError) as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return JSONResponse({'ok': ok, 'room': hub.summary()})


@app.post('/admin/full-reset')
async def admin_full_reset(room: str = Query(DEFAULT_ROOM_ID)):
    hub = _open_room_or_404(room)
    try:
        ok = await hub.full_reset()
    except (NoHostError, SessionClosedError) as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return JSONResponse({'ok': ok, 'room': hub.summary()})


def _is_loopback(host: Optional[str]) -> bool:
    if not host:
        return True
    return 'localhost' in host.lower() or '127.0.0.1' in host or host.startswith('::1')


@app.get('/whereami')
def whereami(req: Request, room: str = Query(DEFAULT_ROOM_ID)):
    """Return base URLs: host header and LAN IP when available, choosing a best default for QR links."""
    scheme = req.url.scheme or 'http'
    host_hdr = (req.headers.get('host') or '').strip()
    base_host = f"{scheme}://{host_hdr}" if host_hdr else None
    port = req.url.port or 0
    if not port and host_hdr and ':' in host_hdr:
        tail = host_hdr.rsplit(':', 1)[1]
        port = int(tail) if tail.isdigit() else 0
    if not port:
        port = settings.port
    lan_ip = lan_ip_guess()
    base_lan = f"{scheme}://{lan_ip}:{port}" if lan_ip else None
    chosen = base_lan if _is_loopback(host_hdr) and base_lan else (base_host or base_lan or f"{scheme}://127.0.0.1:{port}")
    ws_scheme = 'wss' if scheme == 'https' else 'ws'
    join = f"{ws_scheme}://{chosen.split('://', 1)[1]}/ws?room={rooms.normalize(room)}&role=peer"
    return JSONResponse({
        'ok': True,
        'base': chosen,
        'base_host': base_host,
        'base_lan': base_lan,
        'lan_ip': lan_ip,
        'join': join,
    })


@app.get('/qr.png')
def qr_png(url: str):
    """Return a QR code PNG for the given URL. Fully offline."""
    if not url or len(url) > 512:
        return JSONResponse({'ok': False, 'error': 'invalid url'}, status_code=400)
    qr = qrcode.QRCode(version=1, error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=8, border=2)
    qr.add_data(url)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    bio = io.BytesIO()
    img.save(bio, format='PNG')
    return Response(bio.getvalue(), media_type='image/png')

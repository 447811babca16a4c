import argparse
import asyncio
import logging
import sys
import threading
import time
from typing import List, Optional, Tuple

from . import messages as msgs
from .board import Position
from .config import ConfigurationError, load_settings

logger = logging.getLogger("checkers_netplay")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _serve(args) -> int:
    import uvicorn

    from .discovery import HostAnnouncer, lan_ip_guess
    from .server import app

    settings = load_settings(bind_host=args.host, port=args.port)
    announcer = None
    if not args.no_announce:
        announcer = HostAnnouncer(settings.discovery_port, settings.broadcast_interval)
        announcer.start()
    logger.info("hosting at %s:%d", lan_ip_guess() or settings.bind_host, settings.port)
    try:
        uvicorn.run(app, host=settings.bind_host, port=settings.port)
    finally:
        if announcer is not None:
            announcer.stop()
    return 0


def _discover(args) -> int:
    from .discovery import listen_for_host

    settings = load_settings()
    deadline = time.monotonic() + args.timeout
    host = listen_for_host(settings.discovery_port, lambda: time.monotonic() >= deadline)
    if host is None:
        print("no host found")
        return 1
    print(host)
    return 0


def parse_move(line: str) -> Optional[Tuple[Position, Position]]:
    """``"1 0 2 1"`` or ``"1,0 2,1"`` -> (from, to); None if it is not four integers."""
    parts = line.replace(",", " ").split()
    if len(parts) != 4:
        return None
    try:
        fr, fc, tr, tc = (int(p) for p in parts)
    except ValueError:
        return None
    return Position(fr, fc), Position(tr, tc)


def _stdin_lines(loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[str]") -> None:
    for line in sys.stdin:
        loop.call_soon_threadsafe(queue.put_nowait, line)


def _apply_command(client, line: str) -> bool:
    """Feed one typed line to the client; False once the player asked for the menu."""
    cmd = line.strip().lower()
    if not cmd:
        return True
    if cmd == "menu":
        client.return_to_menu()
        return False
    if cmd == "sync":
        client.request_snapshot()
        return True
    if cmd == "restart":
        client.send(msgs.envelope(msgs.RESTART))
        return True
    move = parse_move(cmd)
    if move is None:
        print("commands: <from_row> <from_col> <to_row> <to_col> | sync | restart | menu")
        return True
    mirror = client.mirror
    if not mirror.can_act():
        print(mirror.status_text())
        return True
    mirror.click(move[0])
    if move[1] not in {m.to_pos for m in mirror.highlights}:
        if mirror.selected is not None:
            mirror.click(mirror.selected)
        print(f"no legal move {move[0]} -> {move[1]}")
        return True
    mirror.click(move[1])
    return True


async def _join_loop(args, settings) -> int:
    from .client import PeerClient, build_url
    from .progress import CoinReward, CoinStore

    store = CoinStore(settings.progress_db)
    reward = CoinReward(store, settings.coins_per_win)
    players = args.players if args.role == "host" else None
    url = build_url(args.address, settings.port, args.room, args.role, players)
    client = PeerClient(url, reward, settings.rows, settings.cols)
    if not await client.connect(settings.connect_timeout):
        return 1
    lines: "asyncio.Queue[str]" = asyncio.Queue()
    if args.interactive:
        threading.Thread(target=_stdin_lines, args=(asyncio.get_running_loop(), lines), daemon=True).start()
    last = ""
    try:
        while client.connected and not client.mirror.in_menu:
            status = client.mirror.status_text()
            if status != last:
                print(f"[{client.mirror.score_a}:{client.mirror.score_b}] {status}")
                last = status
            while not lines.empty():
                if not _apply_command(client, lines.get_nowait()):
                    break
            await asyncio.sleep(0.2)
    finally:
        await client.close()
    print(f"coins: {store.coins}")
    return 0


def _join(args) -> int:
    settings = load_settings(port=args.port)
    return asyncio.run(_join_loop(args, settings))


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="checkers_netplay")
    ap.add_argument('--log-level', default='INFO')
    sub = ap.add_subparsers(dest='command', required=True)

    serve = sub.add_parser('serve', help='run the websocket host service')
    serve.add_argument('--host', default=None)
    serve.add_argument('--port', type=int, default=None)
    serve.add_argument('--no-announce', action='store_true', help='skip LAN discovery broadcasts')
    serve.set_defaults(func=_serve)

    discover = sub.add_parser('discover', help='wait for a LAN host announcement')
    discover.add_argument('--timeout', type=float, default=10.0)
    discover.set_defaults(func=_discover)

    join = sub.add_parser('join', help='take a seat in a match')
    join.add_argument('address')
    join.add_argument('--port', type=int, default=None)
    join.add_argument('--room', default='main')
    join.add_argument('--role', choices=('host', 'peer'), default='peer', help='host opens the room on seat 1')
    join.add_argument('--players', type=int, choices=(2, 4), default=None, help='seat count when hosting')
    join.add_argument('--watch', dest='interactive', action='store_false', help='only print status, ignore stdin')
    join.set_defaults(func=_join)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO), format=LOG_FORMAT)
    try:
        return args.func(args)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())

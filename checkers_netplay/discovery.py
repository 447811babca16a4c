"""Best-effort LAN discovery.

A hosting process shouts ``CHECKERS_HOST`` to the broadcast address once per
interval; a joining process listens on the same port and takes the sender
address of the first matching datagram. Nothing here is part of the game
protocol; it only fills in the address field of the join screen.
"""
from __future__ import annotations

import logging
import socket
import threading
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

ANNOUNCEMENT = b"CHECKERS_HOST"
BROADCAST_ADDR = "<broadcast>"


def lan_ip_guess() -> Optional[str]:
    # Prefer local interface enumeration to avoid external reachability
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, family=socket.AF_INET)
        for _fam, _st, _proto, _canon, sockaddr in infos:
            ip = sockaddr[0]
            if ip and not ip.startswith("127."):
                return ip
    except OSError:
        pass
    # UDP connect trick: no datagram is sent
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("10.255.255.255", 1))
            ip = s.getsockname()[0]
        if ip and not ip.startswith("127."):
            return ip
    except OSError:
        pass
    return None


def parse_announcement(data: bytes, sender: Tuple[str, int]) -> Optional[str]:
    """Return the host address if ``data`` is a discovery datagram."""
    if data.strip() == ANNOUNCEMENT:
        return sender[0]
    return None


class HostAnnouncer(threading.Thread):
    def __init__(self, port: int, interval: float = 1.0, target: str = BROADCAST_ADDR) -> None:
        super().__init__(name="checkers-announcer", daemon=True)
        self.port = port
        self.interval = interval
        self.target = target
        self._stop_event = threading.Event()
        self.sent = 0

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            logger.warning("discovery announcer could not open a socket: %s", exc)
            return
        with sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            logger.info("announcing host on udp/%d every %.1fs", self.port, self.interval)
            while not self._stop_event.is_set():
                try:
                    sock.sendto(ANNOUNCEMENT, (self.target, self.port))
                    self.sent += 1
                except OSError as exc:
                    logger.warning("discovery broadcast failed: %s", exc)
                self._stop_event.wait(self.interval)
        logger.info("announcer stopped after %d datagrams", self.sent)


def listen_for_host(port: int, should_stop: Callable[[], bool], poll: float = 0.5) -> Optional[str]:
    """Block until a host announces itself or ``should_stop()`` turns true."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("", port))
    except OSError as exc:
        logger.warning("discovery listener could not bind udp/%d: %s", port, exc)
        return None
    with sock:
        sock.settimeout(poll)
        while not should_stop():
            try:
                data, sender = sock.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError as exc:
                logger.warning("discovery listener failed: %s", exc)
                return None
            host = parse_announcement(data, sender)
            if host is not None:
                logger.info("found host at %s", host)
                return host
    return None

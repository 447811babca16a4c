import socket
import time
import unittest

from checkers_netplay.discovery import ANNOUNCEMENT, HostAnnouncer, lan_ip_guess, listen_for_host, parse_announcement


def _free_udp_port():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestAnnouncementParsing(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(parse_announcement(ANNOUNCEMENT, ("10.0.0.5", 47777)), "10.0.0.5")
        self.assertEqual(parse_announcement(ANNOUNCEMENT + b"\n", ("10.0.0.5", 1)), "10.0.0.5")
        self.assertIsNone(parse_announcement(b"HELLO", ("10.0.0.5", 1)))

    def test_lan_ip_guess_shape(self):
        ip = lan_ip_guess()
        if ip is not None:
            self.assertEqual(len(ip.split(".")), 4)
            self.assertFalse(ip.startswith("127."))


class TestListenLoop(unittest.TestCase):
    def test_stop_condition_ends_wait(self):
        port = _free_udp_port()
        started = time.monotonic()
        self.assertIsNone(listen_for_host(port, lambda: True))
        self.assertLess(time.monotonic() - started, 2.0)

    def test_finds_loopback_announcer(self):
        port = _free_udp_port()
        announcer = HostAnnouncer(port, interval=0.1, target="127.0.0.1")
        announcer.start()
        try:
            deadline = time.monotonic() + 5.0
            host = listen_for_host(port, lambda: time.monotonic() >= deadline, poll=0.1)
        finally:
            announcer.stop()
            announcer.join(timeout=2.0)
        self.assertEqual(host, "127.0.0.1")
        self.assertGreater(announcer.sent, 0)


if __name__ == "__main__":
    unittest.main()

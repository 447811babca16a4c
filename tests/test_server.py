import time
import unittest

from fastapi.testclient import TestClient

from checkers_netplay import server
from checkers_netplay.server import app, rooms


def recv_until(ws, msg_type, limit=40):
    for _ in range(limit):
        msg = ws.receive_json()
        if msg["type"] == msg_type:
            return msg
    raise AssertionError(f"no {msg_type} frame within {limit} messages")


def wait_until(predicate, timeout=2.0):
    # Each test websocket runs the app on its own portal thread
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() >= deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


class ServerCase(unittest.TestCase):
    def setUp(self):
        rooms.reset()
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        rooms.reset()


class TestHttpSurface(ServerCase):
    def test_rooms_empty(self):
        res = self.client.get("/rooms")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"ok": True, "rooms": []})

    def test_state_without_host_is_404(self):
        self.assertEqual(self.client.get("/state", params={"room": "nowhere"}).status_code, 404)
        self.assertEqual(self.client.post("/admin/restart").status_code, 404)

    def test_qr_png(self):
        res = self.client.get("/qr.png", params={"url": "ws://10.0.0.2:8000/ws?room=main&role=peer"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.headers["content-type"], "image/png")
        self.assertTrue(res.content.startswith(b"\x89PNG"))
        self.assertEqual(self.client.get("/qr.png", params={"url": ""}).status_code, 400)

    def test_whereami(self):
        data = self.client.get("/whereami", params={"room": "Den"}).json()
        self.assertTrue(data["ok"])
        self.assertTrue(data["join"].endswith("/ws?room=den&role=peer"))


class TestWebsocketMatch(ServerCase):
    def test_peer_without_host_rejected(self):
        with self.client.websocket_connect("/ws?room=main&role=peer") as ws:
            self.assertEqual(ws.receive_json(), {"type": "no_host", "payload": {"room": "main"}})

    def test_second_host_rejected(self):
        with self.client.websocket_connect("/ws?role=host") as host:
            recv_until(host, "seat_assignment")
            with self.client.websocket_connect("/ws?role=host") as other:
                self.assertEqual(other.receive_json()["type"], "host_taken")

    def test_invalid_player_mode_rejected(self):
        with self.client.websocket_connect("/ws?role=host&players=3") as ws:
            self.assertEqual(ws.receive_json()["type"], "error")

    def test_host_and_peer_play_a_move(self):
        with self.client.websocket_connect("/ws?room=main&role=host") as host:
            self.assertEqual(recv_until(host, "seat_assignment")["payload"]["seat"], 1)
            with self.client.websocket_connect("/ws?room=main&role=peer") as peer:
                self.assertEqual(recv_until(peer, "seat_assignment")["payload"], {"seat": 2, "is_spectator": False})
                recv_until(peer, "match_started")
                recv_until(host, "match_started")

                seats = self.client.get("/seats").json()
                self.assertEqual(seats["taken"], [1, 2])
                self.assertEqual(seats["available"], [])

                host.send_json({"type": "move", "payload": {"from_row": 1, "from_col": 0, "to_row": 2, "to_col": 1}})
                snap = recv_until(peer, "snapshot")
                while snap["payload"]["current_acting_seat"] != 2:
                    snap = recv_until(peer, "snapshot")
                self.assertEqual(snap["payload"]["pieces"][2 * 6 + 1], 1)

                state = self.client.get("/state").json()
                self.assertEqual(state["state"]["turn"], "B")
                self.assertEqual(len(state["state"]["moves"]), 1)

                peer.send_text("not json at all")
                peer.send_json({"type": "request_snapshot"})
                self.assertEqual(recv_until(peer, "snapshot")["payload"]["current_acting_seat"], 2)

    def test_admin_restart_resets_board(self):
        with self.client.websocket_connect("/ws?room=den&role=host") as host:
            recv_until(host, "seat_assignment")
            res = self.client.post("/admin/restart", params={"room": "den"})
            self.assertEqual(res.status_code, 200)
            self.assertTrue(res.json()["room"]["started"])
            recv_until(host, "board_reset")
            res = self.client.post("/admin/full-reset", params={"room": "den"})
            self.assertTrue(res.json()["ok"])
            self.assertFalse(res.json()["room"]["started"])

    def test_host_leaving_returns_peers_to_menu(self):
        host = self.client.websocket_connect("/ws?room=main&role=host")
        host.__enter__()
        recv_until(host, "seat_assignment")
        with self.client.websocket_connect("/ws?room=main&role=peer") as peer:
            recv_until(peer, "match_started")
            host.__exit__(None, None, None)
            recv_until(peer, "return_to_menu")
        wait_until(lambda: server.rooms.get("main") is None)
        self.assertEqual(self.client.get("/rooms").json()["rooms"], [])

    def test_peer_menu_request_closes_room(self):
        with self.client.websocket_connect("/ws?room=den&role=host") as host:
            recv_until(host, "seat_assignment")
            with self.client.websocket_connect("/ws?room=den&role=peer") as peer:
                recv_until(peer, "match_started")
                peer.send_json({"type": "return_to_menu"})
                recv_until(host, "return_to_menu")
        wait_until(lambda: rooms.list_rooms() == [])


class TestRoomLifetime(ServerCase):
    def test_rejected_connections_leave_no_rooms(self):
        for i in range(50):
            with self.client.websocket_connect(f"/ws?room=junk{i}&role=peer") as ws:
                self.assertEqual(ws.receive_json(), {"type": "no_host", "payload": {"room": f"junk{i}"}})
        with self.client.websocket_connect("/ws?room=junk&role=admin") as ws:
            self.assertEqual(ws.receive_json()["type"], "bad_role")
        with self.client.websocket_connect("/ws?room=junk&role=host&players=3") as ws:
            self.assertEqual(ws.receive_json()["type"], "error")
        self.assertEqual(len(rooms.list_rooms()), 0)
        self.assertEqual(self.client.get("/rooms").json()["rooms"], [])

    def test_room_reopens_after_host_leaves(self):
        with self.client.websocket_connect("/ws?room=den&role=host&players=4") as host:
            recv_until(host, "seat_assignment")
            self.assertEqual(self.client.get("/seats", params={"room": "den"}).json()["max_players"], 4)
        wait_until(lambda: rooms.get("den") is None)
        with self.client.websocket_connect("/ws?room=den&role=host") as host:
            recv_until(host, "seat_assignment")
            self.assertEqual(self.client.get("/seats", params={"room": "den"}).json()["max_players"], 2)
            self.assertIsNotNone(rooms.get("den"))


if __name__ == "__main__":
    unittest.main()

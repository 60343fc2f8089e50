import anyio
import orjson

from app.services.ws_manager import STATE_UPDATE, WS, WSManager, ws_publish_safe


class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def send_text(self, data):
        self.sent.append(orjson.loads(data))


class DeadSocket:
    async def send_text(self, data):
        raise RuntimeError("socket closed")


def test_publish_reaches_subscribers_of_the_game_only():
    manager = WSManager()
    party, other = RecordingSocket(), RecordingSocket()
    manager.subscribe(party, "party")
    manager.subscribe(other, "other")

    delivered = anyio.run(manager.publish, "party", {"version": 3})
    assert delivered == 1
    assert party.sent == [{"type": STATE_UPDATE, "game_id": "party", "payload": {"version": 3}}]
    assert other.sent == []


def test_publish_drops_dead_sockets():
    manager = WSManager()
    alive, dead = RecordingSocket(), DeadSocket()
    manager.subscribe(alive, "party")
    manager.subscribe(dead, "party")

    assert anyio.run(manager.publish, "party", {"version": 1}) == 1
    assert manager.stats() == {"games": {"party": 1}, "subscribers_total": 1}
    assert dead not in manager.ws_to_game


def test_subscribe_moves_socket_between_games():
    manager = WSManager()
    ws = RecordingSocket()
    manager.subscribe(ws, "party")
    manager.subscribe(ws, "other")
    assert manager.stats() == {"games": {"other": 1}, "subscribers_total": 1}


def test_publish_safe_from_plain_sync_code():
    ws = RecordingSocket()
    WS.subscribe(ws, "sync-party")
    try:
        ws_publish_safe("sync-party", {"version": 5})
    finally:
        WS.unsubscribe(ws)
    assert ws.sent[-1]["payload"] == {"version": 5}

from __future__ import annotations

import socketio

from bloodconnect.main import LiveUpdateHub


class FakeWebSocket:
    def __init__(self, hub: LiveUpdateHub, on_send=None, broken: bool = False) -> None:
        self.hub = hub
        self.on_send = on_send
        self.broken = broken
        self.received = []

    async def send_json(self, message) -> None:
        if self.on_send:
            self.on_send()
        if self.broken:
            raise ConnectionError("client went away")
        self.received.append(message)


async def test_notify_tolerates_clients_joining_and_leaving_mid_broadcast():
    hub = LiveUpdateHub(socketio.AsyncServer(async_mode="asgi"))
    newcomer = FakeWebSocket(hub)
    leaving = FakeWebSocket(hub, broken=True)
    joining = FakeWebSocket(hub, on_send=lambda: hub.websockets.add(newcomer))
    hub.websockets.update({joining, leaving})

    await hub.notify("dispatch_completed", {"requestId": "r1"})

    assert joining.received == [{"event": "dispatch_completed", "payload": {"requestId": "r1"}}]
    assert leaving not in hub.websockets
    assert newcomer in hub.websockets

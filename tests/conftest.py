import json
from datetime import datetime, timedelta, timezone

import pytest

from liveconnect.services.registry import FamilyRegistry
from liveconnect.websocket.manager import ConnectionManager
from liveconnect.websocket.relay import FamilyRelay


class FakeClock:
    """可手动拨动的时钟"""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class FakeWebSocket:
    """记录发出的消息，fail=True 时模拟发送失败"""

    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))

    def types(self):
        return [m["type"] for m in self.sent]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return FamilyRegistry(clock=clock)


@pytest.fixture
def relay(registry):
    return FamilyRelay(registry, ConnectionManager())


@pytest.fixture
def make_socket():
    return FakeWebSocket

from fastapi.requests import HTTPConnection

from liveconnect.services.registry import FamilyRegistry
from liveconnect.websocket.relay import FamilyRelay


# 注册表和转发层都在 lifespan 里创建并挂到 app.state 上
# HTTPConnection 同时适用于普通请求和 WebSocket
def get_registry(conn: HTTPConnection) -> FamilyRegistry:
    return conn.app.state.registry


def get_relay(conn: HTTPConnection) -> FamilyRelay:
    return conn.app.state.relay

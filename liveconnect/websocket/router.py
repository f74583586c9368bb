from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from liveconnect.core.dependencies import get_relay
from liveconnect.websocket.relay import FamilyRelay
import json
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    relay: FamilyRelay = Depends(get_relay),
):
    """
    WebSocket连接端点

    连接建立后先发送 join-family 事件加入家庭组，
    之后可以发送 update-location / send-message / send-sos / ping。
    消息格式: {"type": "...", "data": {...}}
    """
    connection = await relay.manager.connect(websocket)

    try:
        # 保持连接，监听客户端消息
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"收到无效JSON: {data[:200]}")
                continue

            await relay.dispatch(connection, message)

    except WebSocketDisconnect:
        logger.info(f"{connection!r} 主动断开连接")
    except Exception as e:
        logger.error(f"WebSocket错误: {e}")
    finally:
        await relay.handle_disconnect(connection)

import logging
from datetime import timezone

from pydantic import ValidationError

from liveconnect.core.exceptions import NotFound
from liveconnect.schemas.events import (
    JoinFamilyEvent,
    PingEvent,
    SendMessageEvent,
    SendSosEvent,
    UpdateLocationEvent,
)
from liveconnect.schemas.family import member_to_dict
from liveconnect.services.registry import FamilyRegistry
from liveconnect.websocket.manager import Connection, ConnectionManager

logger = logging.getLogger(__name__)


def event(type_: str, data) -> dict:
    return {"type": type_, "data": data}


class FamilyRelay:
    """家庭组实时转发

    把上行事件（加入、位置、聊天、SOS）写入注册表，
    再广播给同一家庭组的其他连接，发送方自己收不到回显。
    上行事件出错只记日志，绝不让异常穿过连接边界。
    """

    def __init__(self, registry: FamilyRegistry, manager: ConnectionManager, max_message_length: int = 1000):
        self.registry = registry
        self.manager = manager
        self.max_message_length = max_message_length
        self.handlers = {
            "join-family": self.handle_join,
            "update-location": self.handle_location,
            "send-message": self.handle_message,
            "send-sos": self.handle_sos,
            "ping": self.handle_ping,
        }

    def now(self) -> str:
        return self.registry.clock().astimezone(timezone.utc).isoformat()

    async def dispatch(self, connection: Connection, message) -> None:
        """按 type 分发一条已解析的 JSON 消息"""
        if not isinstance(message, dict):
            logger.warning(f"忽略非对象消息: {message!r}")
            return

        msg_type = message.get("type")
        handler = self.handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            logger.warning(f"忽略未知事件类型: {msg_type!r}")
            return

        if msg_type not in ("join-family", "ping") and not connection.is_associated:
            logger.warning(f"连接尚未加入家庭组，忽略 {msg_type} 事件")
            return

        data = message.get("data")
        if data is None:
            data = {}
        try:
            await handler(connection, data)
        except ValidationError as e:
            logger.warning(f"{msg_type} 事件参数不合法，已丢弃: {e.errors()}")
        except NotFound as e:
            logger.warning(f"{msg_type} 事件目标不存在，已丢弃: {e.message} ({connection!r})")

    def _check_group(self, connection: Connection, group_id) -> bool:
        # 上行事件里的 groupId 必须与连接关联的家庭组一致
        if group_id is not None and group_id != connection.group_id:
            logger.warning(f"事件 groupId {group_id} 与连接不一致，已丢弃 ({connection!r})")
            return False
        return True

    # ==================== 加入 ====================

    async def handle_join(self, connection: Connection, data: dict):
        if connection.is_associated:
            await self.manager.send_personal_message(connection, event("error", {"message": "已经加入家庭组"}))
            return

        try:
            payload = JoinFamilyEvent.model_validate(data)
        except ValidationError as e:
            logger.warning(f"join-family 参数不合法: {e.errors()}")
            await self.manager.send_personal_message(connection, event("error", {"message": "缺少 groupId 或 memberId"}))
            return

        try:
            member = self.registry.get_member(payload.group_id, payload.member_id)
        except NotFound as e:
            logger.warning(f"加入家庭组 {payload.group_id} 失败: {e.message}")
            await self.manager.send_personal_message(connection, event("error", {"message": e.message}))
            return

        self.manager.associate(connection, payload.group_id, member.id, member.name)
        self.registry.set_member_online(payload.group_id, member.id, True)
        logger.info(f"成员 {member.id} 已连接家庭组 {payload.group_id}，在线连接: {self.manager.room_size(payload.group_id)}")

        await self.manager.broadcast(
            payload.group_id,
            event("member-joined", {"id": member.id, "name": member.name, "timestamp": self.now()}),
            exclude_member=member.id,
        )

        members = [member_to_dict(m) for m in self.registry.list_members(payload.group_id)]
        await self.manager.send_personal_message(connection, event("family-members", members))

    # ==================== 位置 / 聊天 / SOS ====================

    async def handle_location(self, connection: Connection, data: dict):
        payload = UpdateLocationEvent.model_validate(data)
        if not self._check_group(connection, payload.group_id):
            return
        if payload.member_id is not None and payload.member_id != connection.member_id:
            logger.warning(f"事件 memberId {payload.member_id} 与连接不一致，已丢弃 ({connection!r})")
            return

        location = self.registry.update_location(
            connection.group_id, connection.member_id, payload.location.lat, payload.location.lng
        )
        await self.manager.broadcast(
            connection.group_id,
            event("member-location-updated", {
                "memberId": connection.member_id,
                "name": connection.name,
                "location": {"lat": location.lat, "lng": location.lng},
                "timestamp": self.now(),
            }),
            exclude=connection,
        )

    async def handle_message(self, connection: Connection, data: dict):
        payload = SendMessageEvent.model_validate(data)
        if not self._check_group(connection, payload.group_id):
            return
        # 发送者必须仍是该家庭组成员，抛 NotFound 由 dispatch 记日志丢弃
        self.registry.get_member(connection.group_id, connection.member_id)

        text = payload.message.strip()
        if not text or len(text) > self.max_message_length:
            logger.warning(f"消息为空或超长（{len(text)} 字符），已丢弃")
            return

        await self.manager.broadcast(
            connection.group_id,
            event("new-message", {
                "memberId": connection.member_id,
                "name": connection.name,
                "message": text,
                "timestamp": self.now(),
            }),
            exclude=connection,
        )

    async def handle_sos(self, connection: Connection, data: dict):
        payload = SendSosEvent.model_validate(data)
        if not self._check_group(connection, payload.group_id):
            return
        # 发送者必须仍是该家庭组成员，抛 NotFound 由 dispatch 记日志丢弃
        self.registry.get_member(connection.group_id, connection.member_id)

        location = payload.location.model_dump() if payload.location else None
        logger.warning(f"成员 {connection.member_id} 在家庭组 {connection.group_id} 发出 SOS: {location}")
        await self.manager.broadcast(
            connection.group_id,
            event("sos-alert", {
                "memberId": connection.member_id,
                "name": connection.name,
                "location": location,
                "timestamp": self.now(),
            }),
            exclude=connection,
        )

    # 心跳检测
    async def handle_ping(self, connection: Connection, data: dict):
        payload = PingEvent.model_validate(data)
        await self.manager.send_personal_message(connection, event("pong", {"timestamp": payload.timestamp}))

    # ==================== 断开 ====================

    async def handle_disconnect(self, connection: Connection):
        """连接断开：标记离线并通知其他成员"""
        was_associated = connection.is_associated
        group_id, member_id = connection.group_id, connection.member_id
        self.manager.release(connection)
        if not was_associated:
            return

        # 同一成员还有别的连接在线时不算离线
        if self.manager.member_connected(group_id, member_id):
            return

        if not self.registry.set_member_online(group_id, member_id, False):
            logger.info(f"家庭组 {group_id} 已不存在，跳过成员 {member_id} 的离线通知")
            return

        await self.manager.broadcast(
            group_id,
            event("member-left", {"id": member_id, "name": connection.name, "timestamp": self.now()}),
        )

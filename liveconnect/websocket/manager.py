from typing import Dict, Optional, Set
from fastapi import WebSocket
import json
import logging

logger = logging.getLogger(__name__)


class Connection:
    """一条 WebSocket 连接及其与家庭组的临时关联

    状态: unassociated -> associated -> closed
    只记录 group_id / member_id，成员数据以注册表为准。
    """

    UNASSOCIATED = "unassociated"
    ASSOCIATED = "associated"
    CLOSED = "closed"

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.state = self.UNASSOCIATED
        self.group_id: Optional[str] = None
        self.member_id: Optional[str] = None
        self.name: Optional[str] = None

    @property
    def is_associated(self) -> bool:
        return self.state == self.ASSOCIATED

    def __repr__(self):
        return f"<Connection {self.state} group={self.group_id} member={self.member_id}>"


class ConnectionManager:
    """WebSocket连接管理器：按家庭组维护房间并负责广播"""

    def __init__(self):
        # 所有已 accept 的连接
        self.active_connections: Set[Connection] = set()
        # 房间: {group_id: {Connection, ...}}
        self.rooms: Dict[str, Set[Connection]] = {}

    async def connect(self, websocket: WebSocket) -> Connection:
        """建立连接"""
        await websocket.accept()
        connection = Connection(websocket)
        self.active_connections.add(connection)
        logger.info(f"新连接已建立，当前连接数: {len(self.active_connections)}")
        return connection

    def associate(self, connection: Connection, group_id: str, member_id: str, name: str):
        """把连接加入家庭组房间"""
        connection.group_id = group_id
        connection.member_id = member_id
        connection.name = name
        connection.state = Connection.ASSOCIATED
        self.rooms.setdefault(group_id, set()).add(connection)

    def release(self, connection: Connection):
        """断开连接（同步版本）：移出房间并标记为 closed"""
        if connection.group_id is not None:
            room = self.rooms.get(connection.group_id)
            if room is not None:
                room.discard(connection)
                if not room:
                    del self.rooms[connection.group_id]
        self.active_connections.discard(connection)
        connection.state = Connection.CLOSED
        logger.info(f"连接已断开，当前连接数: {len(self.active_connections)}")

    def purge_rooms(self, group_ids) -> int:
        """家庭组被清理后解散其房间，连接回到 unassociated，需重新 join-family"""
        purged = 0
        for group_id in group_ids:
            for connection in self.rooms.pop(group_id, ()):
                connection.state = Connection.UNASSOCIATED
                connection.group_id = None
                connection.member_id = None
                connection.name = None
                purged += 1
        return purged

    def room_size(self, group_id: str) -> int:
        return len(self.rooms.get(group_id, ()))

    def member_connected(self, group_id: str, member_id: str) -> bool:
        """该成员在房间里是否还有其他存活的连接"""
        return any(c.member_id == member_id for c in self.rooms.get(group_id, ()))

    async def send_personal_message(self, connection: Connection, message: dict) -> bool:
        """发送消息给指定连接，失败只记日志不重试"""
        if connection.state == Connection.CLOSED:
            return False
        try:
            await connection.websocket.send_text(json.dumps(message, ensure_ascii=False))
            return True
        except Exception as e:
            logger.error(f"发送消息给 {connection!r} 失败: {e}")
            return False

    async def broadcast(
        self,
        group_id: str,
        message: dict,
        exclude: Optional[Connection] = None,
        exclude_member: Optional[str] = None,
    ) -> int:
        """向房间内除 exclude（及 exclude_member 的所有连接）之外广播，返回成功发送的数量"""
        # 先拷贝一份，发送过程中房间可能有人进出
        recipients = [
            c for c in self.rooms.get(group_id, ())
            if c is not exclude and (exclude_member is None or c.member_id != exclude_member)
        ]
        sent = 0
        for connection in recipients:
            if await self.send_personal_message(connection, message):
                sent += 1
        return sent

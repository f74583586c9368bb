import logging
import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from liveconnect.core.exceptions import CapacityExceeded, InvalidInput, NotFound
from liveconnect.models.family import Group, Location, Member

logger = logging.getLogger(__name__)

GROUP_ID_ALPHABET = string.ascii_uppercase + string.digits
GROUP_ID_LENGTH = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_group_id() -> str:
    """生成 6 位大写字母数字邀请码（36^6 ≈ 21 亿种组合）"""
    return "".join(secrets.choice(GROUP_ID_ALPHABET) for _ in range(GROUP_ID_LENGTH))


def normalize_group_id(group_id: str) -> str:
    """用户输入的邀请码忽略首尾空白和大小写"""
    return (group_id or "").strip().upper()


def generate_member_id() -> str:
    return uuid.uuid4().hex


class FamilyRegistry:
    """内存中的家庭组注册表

    进程启动时创建一次，通过 app.state 传给接口和 WebSocket 转发层。
    所有方法都是同步的，只在事件循环线程里调用，因此不需要加锁；
    每个方法先校验再修改，校验失败时不会留下半成品状态。
    """

    def __init__(
        self,
        max_age: timedelta = timedelta(hours=24),
        max_members_per_group: int = 50,
        max_groups: int = 10000,
        max_name_length: int = 50,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_group_id,
    ):
        self.max_age = max_age
        self.max_members_per_group = max_members_per_group
        self.max_groups = max_groups
        self.max_name_length = max_name_length
        self.clock = clock
        self.id_factory = id_factory
        # {group_id: Group}
        self.groups: dict[str, Group] = {}

    @classmethod
    def from_settings(cls, settings) -> "FamilyRegistry":
        return cls(
            max_age=settings.group_max_age,
            max_members_per_group=settings.MAX_MEMBERS_PER_GROUP,
            max_groups=settings.MAX_GROUPS,
            max_name_length=settings.MAX_NAME_LENGTH,
        )

    # ==================== 创建 / 加入 ====================

    def _clean_name(self, name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidInput("名字不能为空")
        if len(name) > self.max_name_length:
            raise InvalidInput(f"名字不能超过 {self.max_name_length} 个字符")
        return name

    def _new_group_id(self) -> str:
        # 与现有邀请码冲突就重新生成
        group_id = self.id_factory()
        while group_id in self.groups:
            group_id = self.id_factory()
        return group_id

    def _new_member(self, name: str) -> Member:
        return Member(id=generate_member_id(), name=name, last_seen=self.clock())

    def create_group(self, creator_name: str) -> Tuple[str, str]:
        """创建家庭组，创建者自动成为第一个成员，返回 (group_id, member_id)"""
        name = self._clean_name(creator_name)
        if len(self.groups) >= self.max_groups:
            raise CapacityExceeded("家庭组数量已达上限，请稍后再试")

        group = Group(id=self._new_group_id(), created_at=self.clock())
        member = self._new_member(name)
        group.members[member.id] = member
        self.groups[group.id] = group
        logger.info(f"家庭组 {group.id} 已创建，创建者 {member.id}，当前家庭组数: {len(self.groups)}")
        return group.id, member.id

    def join_group(self, group_id: str, name: str) -> Tuple[str, str]:
        """加入已有家庭组，每次加入都会生成新的成员ID"""
        name = self._clean_name(name)
        group = self._get_group(group_id)
        if len(group.members) >= self.max_members_per_group:
            raise CapacityExceeded(f"家庭组人数已满（最多 {self.max_members_per_group} 人）")

        member = self._new_member(name)
        group.members[member.id] = member
        logger.info(f"成员 {member.id} 加入家庭组 {group.id}，当前人数: {len(group.members)}")
        return group.id, member.id

    # ==================== 查询 ====================

    def _get_group(self, group_id: str) -> Group:
        group = self.groups.get(group_id) if group_id else None
        if group is None:
            raise NotFound("家庭组不存在")
        return group

    def _get_member(self, group_id: str, member_id: str) -> Member:
        member = self._get_group(group_id).members.get(member_id)
        if member is None:
            raise NotFound("成员不存在")
        return member

    def has_group(self, group_id: str) -> bool:
        return group_id in self.groups

    def list_members(self, group_id: str) -> List[Member]:
        """返回全部成员（含离线）的快照"""
        return [m.snapshot() for m in self._get_group(group_id).members.values()]

    def get_member(self, group_id: str, member_id: str) -> Member:
        return self._get_member(group_id, member_id).snapshot()

    def stats(self) -> dict:
        return {
            "groups": len(self.groups),
            "members": sum(len(g.members) for g in self.groups.values()),
        }

    # ==================== 状态更新 ====================

    def set_member_online(self, group_id: str, member_id: str, online: bool) -> bool:
        """更新在线状态，找不到成员时返回 False 而不是抛异常

        断开连接时家庭组可能已经被清理，这种情况不能报错。
        """
        group = self.groups.get(group_id)
        member = group.members.get(member_id) if group else None
        if member is None:
            return False
        member.is_online = online
        member.last_seen = self.clock()
        return True

    def update_location(self, group_id: str, member_id: str, lat: float, lng: float) -> Location:
        member = self._get_member(group_id, member_id)
        now = self.clock()
        member.location = Location(lat=lat, lng=lng, updated_at=now)
        member.last_seen = now
        return member.location

    # ==================== 过期清理 ====================

    def evict_expired(
        self, now: Optional[datetime] = None, max_age: Optional[timedelta] = None
    ) -> List[str]:
        """删除创建时间超过 max_age 的家庭组，不看成员是否活跃"""
        now = now or self.clock()
        max_age = max_age if max_age is not None else self.max_age
        expired = [gid for gid, g in self.groups.items() if g.is_expired(now, max_age)]
        for group_id in expired:
            del self.groups[group_id]
        return expired

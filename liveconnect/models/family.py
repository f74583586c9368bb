from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Optional


#坐标，updated_at 为服务器收到该坐标的时间
@dataclass(frozen=True)
class Location:
    lat: float
    lng: float
    updated_at: datetime


#家庭成员
@dataclass
class Member:
    #成员ID（uuid），加入时生成，不可变
    id: str
    #显示名，不要求唯一
    name: str
    last_seen: datetime
    location: Optional[Location] = None
    is_online: bool = True

    def snapshot(self) -> "Member":
        """返回副本，避免调用方改动注册表里的状态"""
        return replace(self)


#家庭组，只在内存里存活，按创建时间淘汰
@dataclass
class Group:
    #6 位邀请码
    id: str
    created_at: datetime
    members: Dict[str, Member] = field(default_factory=dict)

    def is_expired(self, now: datetime, max_age) -> bool:
        return now - self.created_at > max_age

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from liveconnect.models.family import Member


class CamelModel(BaseModel):
    """对外字段统一用驼峰（groupId / memberId / isOnline ...）"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# 坐标（前端上报）
class LocationIn(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


# 坐标（返回给前端）
class LocationOut(CamelModel):
    lat: float
    lng: float
    updated_at: datetime


# 创建家庭组
class GroupCreate(CamelModel):
    name: str


# 加入家庭组
class GroupJoin(CamelModel):
    group_id: str
    name: str


# 创建 / 加入的响应
class GroupJoinResponse(CamelModel):
    group_id: str
    member_id: str
    name: str


# 成员响应
class MemberResponse(CamelModel):
    id: str
    name: str
    location: LocationOut | None = None
    last_seen: datetime
    is_online: bool


class MembersResponse(CamelModel):
    members: list[MemberResponse]


def member_to_dict(member: Member) -> dict:
    """成员快照 -> 可直接 json.dumps 的字典"""
    return MemberResponse.model_validate(member).model_dump(mode="json", by_alias=True)

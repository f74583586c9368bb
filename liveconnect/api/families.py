from fastapi import APIRouter, Depends

from liveconnect.core.dependencies import get_registry
from liveconnect.schemas.family import (
    GroupCreate,
    GroupJoin,
    GroupJoinResponse,
    MemberResponse,
    MembersResponse,
)
from liveconnect.services.registry import FamilyRegistry, normalize_group_id

router = APIRouter()


# ==================== 家庭组接口 ====================
# 注册表抛出的 InvalidInput / NotFound / CapacityExceeded
# 由 main.py 里的异常处理器转换成 400 / 404 / 409
# 接口用 async def，保证注册表只在事件循环线程里被修改

@router.post("/create-group", response_model=GroupJoinResponse, status_code=201)
async def create_group(
    group_data: GroupCreate,
    registry: FamilyRegistry = Depends(get_registry),
):
    """
    创建家庭组

    Body:
        - name: 创建者名字（必填）

    说明：
        创建者自动成为第一个成员，返回 6 位邀请码和成员ID
    """
    group_id, member_id = registry.create_group(group_data.name)
    member = registry.get_member(group_id, member_id)
    return GroupJoinResponse(group_id=group_id, member_id=member_id, name=member.name)


@router.post("/join-group", response_model=GroupJoinResponse)
async def join_group(
    join_data: GroupJoin,
    registry: FamilyRegistry = Depends(get_registry),
):
    """
    通过邀请码加入家庭组

    Body:
        - groupId: 邀请码
        - name: 成员名字
    """
    group_id, member_id = registry.join_group(normalize_group_id(join_data.group_id), join_data.name)
    member = registry.get_member(group_id, member_id)
    return GroupJoinResponse(group_id=group_id, member_id=member_id, name=member.name)


@router.get("/group/{group_id}/members", response_model=MembersResponse)
async def get_group_members(
    group_id: str,
    registry: FamilyRegistry = Depends(get_registry),
):
    """获取家庭组成员列表（包含离线成员及最后位置）"""
    members = registry.list_members(normalize_group_id(group_id))
    return MembersResponse(members=[MemberResponse.model_validate(m) for m in members])

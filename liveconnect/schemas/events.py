from pydantic import Field

from liveconnect.schemas.family import CamelModel, LocationIn


# ==================== WebSocket 上行事件 ====================

class JoinFamilyEvent(CamelModel):
    group_id: str
    member_id: str
    name: str | None = None


class UpdateLocationEvent(CamelModel):
    group_id: str | None = None
    member_id: str | None = None
    location: LocationIn


class SendMessageEvent(CamelModel):
    group_id: str | None = None
    message: str = Field(min_length=1)


class SendSosEvent(CamelModel):
    group_id: str | None = None
    location: LocationIn | None = None


class PingEvent(CamelModel):
    timestamp: int | float | str | None = None

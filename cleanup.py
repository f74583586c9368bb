# cleanup.py
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging

from liveconnect.services.registry import FamilyRegistry
from liveconnect.websocket.manager import ConnectionManager

logger = logging.getLogger(__name__)


async def evict_expired_groups(registry: FamilyRegistry, manager: Optional[ConnectionManager] = None) -> list[str]:
    """删除创建时间超过上限的家庭组（只看创建时间，不看是否活跃）

    必须是协程：AsyncIOScheduler 会把普通函数丢进线程池执行，
    而注册表和房间只能在事件循环线程里修改。
    """
    try:
        evicted = registry.evict_expired()
    except Exception as e:
        logger.error(f"[cleanup] 清理任务出错: {e}")
        return []

    # 邀请码可能被新家庭组复用，旧连接不能留在房间里
    if manager is not None and evicted:
        released = manager.purge_rooms(evicted)
        if released:
            logger.info(f"[cleanup] 解除了 {released} 个连接与过期家庭组的关联")

    for group_id in evicted:
        logger.info(f"[cleanup] evicted family group {group_id}")
    logger.info(f"[cleanup] 清理完成，删除了 {len(evicted)} 个家庭组，剩余 {len(registry.groups)} 个")
    return evicted


def start_scheduler(registry: FamilyRegistry, settings, manager: Optional[ConnectionManager] = None) -> AsyncIOScheduler:
    """启动定时清理，需在事件循环内调用（lifespan 启动阶段）"""
    scheduler = AsyncIOScheduler()
    # 默认每小时跑一次，与注册表共用同一个事件循环
    scheduler.add_job(
        evict_expired_groups,
        "interval",
        seconds=settings.cleanup_interval.total_seconds(),
        args=[registry, manager],
        id="evict_expired_groups",
        coalesce=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info(f"[cleanup] 定时清理任务已启动，间隔 {settings.cleanup_interval}，家庭组有效期 {settings.group_max_age}")
    return scheduler

# start.py
import logging

import uvicorn

from liveconnect.core.config import settings

if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        # 注册表在进程内存里，只能单进程运行
        workers=1,
        loop="asyncio",
        log_level=settings.LOG_LEVEL.lower(),
        timeout_keep_alive=75,  # 避免WebSocket频繁断开
        limit_concurrency=200,
        backlog=2048,
    )

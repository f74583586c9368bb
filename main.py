from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from liveconnect.api import families
from liveconnect.core.config import settings
from liveconnect.core.exceptions import FamilyError
from liveconnect.services.registry import FamilyRegistry
from liveconnect.websocket import router as websocket_router
from liveconnect.websocket.manager import ConnectionManager
from liveconnect.websocket.relay import FamilyRelay
import logging
import cleanup

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ===== 启动阶段 =====
    # 注册表只存在内存里，重启即丢失
    registry = FamilyRegistry.from_settings(settings)
    manager = ConnectionManager()
    app.state.registry = registry
    app.state.manager = manager
    app.state.relay = FamilyRelay(registry, manager, max_message_length=settings.MAX_MESSAGE_LENGTH)

    scheduler = cleanup.start_scheduler(registry, settings, manager)
    logger.info("LiveConnect 服务已启动")

    yield
    # ===== 关闭阶段 =====
    scheduler.shutdown(wait=False)
    logger.info("[cleanup] 定时清理任务已关闭")


app = FastAPI(
    title="LiveConnect",
    lifespan=lifespan
)


# 领域异常 -> {"error": ...}
@app.exception_handler(FamilyError)
async def family_error_handler(request: Request, exc: FamilyError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# 缺少字段 / 类型错误统一返回 400
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
    return JSONResponse(status_code=400, content={"error": f"参数缺失或不合法: {', '.join(fields)}"})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS_LIST,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(families.router, prefix="/api", tags=["Families"])
app.include_router(websocket_router.router, tags=["WebSocket"])

# 根路由
@app.get("/")
def root():
    return {"msg": "LiveConnect 位置共享服务已启动"}


@app.get("/health")
def health_check(request: Request):
    """健康检查端点，用于监控服务状态"""
    stats = request.app.state.registry.stats()
    return {
        "status": "healthy",
        "groups": stats["groups"],
        "members": stats["members"],
        "websocket_connections": len(request.app.state.manager.active_connections)
    }

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api import events, tasks
from .config import Settings, settings as default_settings
from .exceptions import StoreClosedError, TaskboardError
from .services.broadcaster import EventBroadcaster
from .services.task_service import TaskService
from .storage.snapshot import TaskSnapshot
from .storage.task_store import TaskStore

# 配置日志
logging.basicConfig(
    level=default_settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """创建应用，存储和广播器在 lifespan 中启动/停止"""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 启动时初始化
        service = TaskService(
            store=TaskStore(TaskSnapshot(settings.data_file)),
            broadcaster=EventBroadcaster(settings.listener_buffer_size),
        )
        service.start()
        app.state.task_service = service
        logger.info(f"🚀 {settings.app_name} 启动")
        logger.info(f"📦 数据文件: {settings.data_file}")
        yield
        # 关闭时清理
        service.stop()
        logger.info(f"👋 {settings.app_name} 关闭")

    app = FastAPI(
        title=settings.app_name,
        description="任务管理服务：增删改查、JSON 快照持久化、新任务 SSE 推送",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings

    # CORS 配置
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 路由注册
    app.include_router(tasks.router)
    app.include_router(events.router)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # 不回显原始输入，其中可能有无法编码的字符
        errors = [
            {key: value for key, value in error.items() if key not in ("input", "ctx")}
            for error in exc.errors()
        ]
        logger.warning(f"请求参数无效: {request.method} {request.url.path}")
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})

    @app.exception_handler(StoreClosedError)
    async def store_closed_handler(request: Request, exc: StoreClosedError):
        logger.error(f"存储不可用: {request.method} {request.url.path}, {exc}")
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(TaskboardError)
    async def taskboard_error_handler(request: Request, exc: TaskboardError):
        logger.error(f"内部错误: {request.method} {request.url.path}, {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "服务内部错误"})

    @app.get("/", summary="服务信息", tags=["系统"])
    async def root():
        """获取 API 服务信息"""
        return {"message": f"{settings.app_name} is running", "version": __version__}

    @app.get("/health", summary="健康检查", tags=["系统"])
    async def health(request: Request):
        """检查服务健康状态"""
        service: TaskService = request.app.state.task_service
        return {
            "status": "healthy" if service.store.is_running else "unavailable",
            "listeners": service.broadcaster.listener_count,
            "pending_events": service.broadcaster.pending_events(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    # 存储是进程内单写者，只能单 worker 运行
    uvicorn.run(
        "taskboard.main:app",
        host=default_settings.host,
        port=default_settings.port,
        log_level=default_settings.log_level.lower(),
    )

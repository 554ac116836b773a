"""
Collab Hub Realtime - FastAPI Application

프로젝트 방 단위 실시간 협업(접속자 표시, 편집/드래그/타이핑 신호, 커서 공유)과
CRUD 레이어 커밋 이후 변경 전파를 담당하는 서비스
"""

from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from app.api import include_routers
from app.core.config import settings
from app.core.logging import get_logger, setup_logging
from app.database import init_databases, close_databases
from app.middleware.error_handler import ErrorHandlerMiddleware, create_http_exception_handler
from app.services.signal_monitor import SignalMonitor
from app.websockets import manager
from app.websockets.backplane import RedisBackplane

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} starting up...")

    await init_databases()

    backplane = None
    if settings.backplane_enabled:
        backplane = RedisBackplane(manager)
        await backplane.start()

    signal_monitor = SignalMonitor(manager)
    await signal_monitor.start()

    app.state.backplane = backplane
    app.state.signal_monitor = signal_monitor

    yield

    # Shutdown
    logger.info(f"{settings.app_name} shutting down...")

    await signal_monitor.stop()
    if backplane is not None:
        await backplane.stop()

    # 남은 세션 정리 (userLeft 전파 후 소켓 닫기)
    await manager.shutdown()

    await close_databases()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handling
app.add_middleware(ErrorHandlerMiddleware)
app.add_exception_handler(HTTPException, create_http_exception_handler())

# Include routers (health, realtime, websocket)
include_routers(app, "api", [str(Path(__file__).parent / "api")])

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

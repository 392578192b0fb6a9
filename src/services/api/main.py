"""
FastAPI 应用入口

功能：
1. 路由注册（联赛数据、缓存管理）
2. 请求 ID：中间件写入上下文，日志 Filter 把它带到每条日志上
3. 健康检查 / 就绪检查
"""
import logging
import time
import uuid
from contextvars import ContextVar

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from src.services.api.dependencies import get_league_data_manager
from src.services.api.routers import cache, football
from src.shared.config import get_settings

# 当前请求的 ID，请求之外为 "-"
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """给日志记录补上 request_id 字段"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True


settings = get_settings()
logging.basicConfig(
    level=settings.service.api.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIdFilter())
logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Football standings & prediction API",
    docs_url="/docs" if settings.service.api.enable_docs else None,
    redoc_url="/redoc" if settings.service.api.enable_docs else None
)


# ============ 中间件 ============

@app.middleware("http")
async def request_id_middleware(request: Request, call_next) -> Response:
    """沿用客户端的 X-Request-ID（没有则生成），并在响应头返回请求 ID 和耗时"""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    token = request_id_ctx.set(request_id)
    start_time = time.perf_counter()
    try:
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time-Ms"] = str(duration_ms)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {duration_ms}ms")
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} failed: {e}", exc_info=True)
        raise
    finally:
        request_id_ctx.reset(token)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ============ 路由 ============

app.include_router(football.router)
app.include_router(cache.router)


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "version": settings.app_version,
        "service": "football-predictor-api"
    }


@app.get("/ready")
async def readiness_check():
    """上游凭证和缓存后端状态"""
    return {
        "status": "ready",
        "version": settings.app_version,
        "checks": {
            "api": "ok",
            "api_key": "ok" if settings.api_key else "missing",
            "cache_backend": settings.service.cache.backend,
        }
    }


# ============ 生命周期 ============

@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    if not settings.api_key:
        logger.warning("football-data.org API_KEY 未配置，所有回源请求都会失败")


@app.on_event("shutdown")
async def shutdown_event():
    """关闭共享的上游连接和缓存连接"""
    logger.info(f"Shutting down {settings.app_name}")
    if get_league_data_manager.cache_info().currsize:
        await get_league_data_manager().aclose()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.service.api.host,
        port=settings.service.api.port
    )

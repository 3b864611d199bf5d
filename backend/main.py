"""
PhotoShare - 主入口
基于FastAPI的照片分享后端

- 身份提供方会话令牌鉴权与用户同步
- 相册、照片、点赞、评论、收藏、关注
- 搜索与批量上传
- 请求日志中间件
- 标准化错误处理
"""

import logging
from pathlib import Path
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from core.config import get_settings
from core.database import init_db, close_db
from core.middleware import RequestLoggingMiddleware
from core.errors import register_exception_handlers, ErrorCode

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# 减少第三方库的日志输出
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("PIL").setLevel(logging.WARNING)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # ==================== 启动阶段 ====================
    logger.info(f"🚀 正在启动 {settings.app_name} v{settings.app_version}...")

    Path(settings.upload_dir, settings.storage_bucket).mkdir(parents=True, exist_ok=True)
    await init_db()

    logger.info(f"🎉 {settings.app_name} 启动完成! 访问: http://localhost:8000")
    yield

    # ==================== 关闭阶段 ====================
    logger.info("🛑 系统关闭中...")
    await close_db()
    logger.info("👋 系统已关闭")


# ==================== 创建应用 ====================
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="照片分享平台后端",
    lifespan=lifespan
)


# ==================== 中间件配置（后添加的先执行） ====================

# 1. CORS 跨域配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

# 2. 请求日志中间件
app.add_middleware(
    RequestLoggingMiddleware,
    skip_paths=["/health", "/docs", "/redoc", "/openapi.json", settings.storage_public_base_url],
    slow_request_threshold=1.0
)


# ==================== 异常处理器 ====================
register_exception_handlers(app)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常捕获"""
    logger.error(f"未处理异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "code": ErrorCode.INTERNAL_ERROR.value,
            "message": "服务器内部错误，请稍后重试",
            "data": None
        }
    )


# ==================== 注册路由 ====================
from routers import health, webhooks
from modules.users.users_router import router as users_router
from modules.album.album_router import router as album_router
from modules.photo.photo_router import router as photo_router
from modules.search.search_router import router as search_router

app.include_router(users_router, prefix="/api/users", tags=["用户"])
app.include_router(album_router, prefix="/api/albums", tags=["相册"])
app.include_router(photo_router, prefix="/api/photos", tags=["照片"])
app.include_router(search_router, prefix="/api/search", tags=["搜索"])
app.include_router(webhooks.router, prefix="/api/webhooks")
app.include_router(health.router)


# ==================== 静态文件配置 ====================
# 照片公开地址：{storage_public_base_url}/{bucket}/{object_path}
app.mount(
    settings.storage_public_base_url,
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="storage"
)


# ==================== 根路由 ====================
@app.get("/", include_in_schema=False)
async def root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health"
    }


# ==================== 启动入口 ====================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )

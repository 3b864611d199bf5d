"""
健康检查路由
"""

import time
import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from core.config import get_settings
from core.database import engine
from utils.storage import get_object_storage
from utils.timezone import get_utc_time

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(tags=["健康检查"])

# 系统启动时间
_start_time = get_utc_time()


class ComponentHealth(BaseModel):
    """组件健康状态"""
    status: str
    message: Optional[str] = None
    latency_ms: Optional[float] = None


class HealthStatus(BaseModel):
    """健康状态响应"""
    status: str  # healthy, degraded, unhealthy
    version: str
    timestamp: str
    uptime_seconds: float
    components: dict


async def check_database() -> ComponentHealth:
    """检查数据库连接"""
    start = time.time()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"数据库健康检查失败: {e}")
        return ComponentHealth(status="unhealthy", message=f"数据库连接失败: {e}")

    return ComponentHealth(
        status="healthy",
        message="数据库连接正常",
        latency_ms=round((time.time() - start) * 1000, 2)
    )


def check_storage() -> ComponentHealth:
    """检查对象存储目录"""
    bucket_dir = get_object_storage().bucket_dir
    if bucket_dir.is_dir():
        return ComponentHealth(status="healthy", message=f"存储桶可用: {bucket_dir.name}")
    return ComponentHealth(status="degraded", message="存储桶目录尚未创建")


@router.get("/health", response_model=HealthStatus)
async def health_check():
    """
    健康检查端点

    数据库不可用时整体为 unhealthy，存储目录缺失时为 degraded
    """
    db_health = await check_database()
    storage_health = check_storage()

    if db_health.status == "unhealthy":
        overall_status = "unhealthy"
    elif storage_health.status != "healthy":
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    now = get_utc_time()
    return HealthStatus(
        status=overall_status,
        version=settings.app_version,
        timestamp=now.isoformat(),
        uptime_seconds=round((now - _start_time).total_seconds(), 2),
        components={
            "database": db_health.model_dump(),
            "storage": storage_health.model_dump()
        }
    )

"""
搜索模块路由
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.deps import get_optional_user
from models import User
from schemas.response import success

from .search_services import SearchService

router = APIRouter()


@router.get("", summary="搜索用户、相册、照片")
async def search(
    query: Optional[str] = Query(None, description="搜索关键词"),
    type: str = Query("all", description="搜索类型: all/users/albums/photos"),
    limit: int = Query(20, ge=1, le=100, description="每页数量"),
    page: int = Query(1, ge=1, description="页码"),
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user)
):
    """匿名也可以搜索，只返回公开内容"""
    data = await SearchService.search(
        db, query, type, user.id if user else None, limit, page
    )
    return success(data=data)

"""
统一分页工具
提供标准化的分页查询功能
"""

import math
from typing import TypeVar, Generic, List, Optional, Callable
from pydantic import BaseModel, ConfigDict, Field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar('T')


class PageResult(BaseModel, Generic[T]):
    """
    分页结果

    泛型类，可指定 items 的类型
    """
    items: List[T] = Field(description="数据列表")
    total: int = Field(description="总记录数")
    page: int = Field(description="当前页码")
    page_size: int = Field(description="每页数量")
    total_pages: int = Field(description="总页数")
    has_next: bool = Field(description="是否有下一页")
    has_prev: bool = Field(description="是否有上一页")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def create(
        cls,
        items: List[T],
        total: int,
        page: int,
        page_size: int
    ) -> "PageResult[T]":
        """创建分页结果"""
        total_pages = math.ceil(total / page_size) if page_size > 0 else 0
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1
        )

    def to_dict(self) -> dict:
        """转换为字典（用于API响应）"""
        return {
            "items": self.items,
            "pagination": {
                "total": self.total,
                "page": self.page,
                "page_size": self.page_size,
                "total_pages": self.total_pages,
                "has_next": self.has_next,
                "has_prev": self.has_prev
            }
        }


async def paginate(
    db: AsyncSession,
    query,
    page: int = 1,
    page_size: int = 20,
    transformer: Optional[Callable] = None,
    scalars: bool = True
) -> PageResult:
    """
    通用分页查询

    Args:
        db: 数据库会话
        query: SQLAlchemy 查询对象
        page: 页码（从1开始）
        page_size: 每页数量
        transformer: 可选的数据转换函数，用于将ORM对象转换为字典或其他格式
        scalars: 查询是否只返回单个实体；多列查询传 False，transformer 收到的是行

    Returns:
        PageResult: 分页结果

    Usage:
        query = select(Album).where(Album.is_private == False)
        result = await paginate(
            db, query, page=1, page_size=20,
            transformer=lambda album: {"id": album.id, "title": album.title}
        )
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    offset = (page - 1) * page_size
    result = await db.execute(query.offset(offset).limit(page_size))
    items = list(result.scalars().all()) if scalars else list(result.all())

    if transformer:
        items = [transformer(item) for item in items]

    return PageResult.create(
        items=items,
        total=total,
        page=page,
        page_size=page_size
    )


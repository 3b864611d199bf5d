"""
搜索模块业务逻辑
跨用户、相册、照片的关键词搜索
"""

import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ValidationException
from modules.album.album_services import AlbumService, album_to_dict
from modules.photo.photo_services import PhotoService, photo_to_dict
from modules.users.users_services import UserService, user_brief

logger = logging.getLogger(__name__)

SEARCH_TYPES = ("all", "users", "albums", "photos")
# type=all 时每类最多返回的条数
ALL_SECTION_LIMIT = 5


class SearchService:
    """搜索服务"""

    @staticmethod
    async def _search_section(
        db: AsyncSession,
        section: str,
        keyword: str,
        requester_id: Optional[int],
        limit: int,
        offset: int
    ):
        if section == "users":
            users, total = await UserService.search_users(db, keyword, limit, offset)
            return [user_brief(user) for user in users], total
        if section == "albums":
            rows, total = await AlbumService.search_albums(db, keyword, requester_id, limit, offset)
            return [album_to_dict(album, owner) for album, owner in rows], total
        rows, total = await PhotoService.search_photos(db, keyword, requester_id, limit, offset)
        return [photo_to_dict(photo, owner) for photo, owner in rows], total

    @staticmethod
    async def search(
        db: AsyncSession,
        keyword: Optional[str],
        search_type: str = "all",
        requester_id: Optional[int] = None,
        limit: int = 20,
        page: int = 1
    ) -> dict:
        """
        关键词搜索

        Args:
            keyword: 关键词（不区分大小写的子串匹配）
            search_type: all | users | albums | photos
            requester_id: 请求者ID，私密内容只对所有者可见
            limit: 单类搜索的每页数量
            page: 单类搜索的页码

        type=all 时每类返回前 5 条，不分页
        """
        keyword = (keyword or "").strip()
        if not keyword:
            raise ValidationException("搜索关键词不能为空")
        if search_type not in SEARCH_TYPES:
            raise ValidationException(f"不支持的搜索类型: {search_type}")

        if search_type == "all":
            results = {}
            for section in SEARCH_TYPES[1:]:
                items, _ = await SearchService._search_section(
                    db, section, keyword, requester_id, ALL_SECTION_LIMIT, 0
                )
                results[section] = items
            return {"query": keyword, "type": search_type, "results": results}

        offset = (page - 1) * limit
        items, total = await SearchService._search_section(
            db, search_type, keyword, requester_id, limit, offset
        )
        logger.debug(f"搜索 {search_type}: '{keyword}' 命中 {total} 条")
        return {
            "query": keyword,
            "type": search_type,
            "results": {search_type: items},
            "total": total,
            "page": page,
            "limit": limit
        }

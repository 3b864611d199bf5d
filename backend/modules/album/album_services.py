"""
相册模块业务逻辑
实现相册与相册收藏的管理操作
"""

import logging
from typing import Optional, List, Tuple
from sqlalchemy import select, func, and_, or_, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundException, PermissionException, ValidationException
from models import User
from schemas.user import UserBrief
from utils.sql_safety import LIKE_ESCAPE_CHAR, contains_pattern
from utils.timezone import get_utc_time

from .album_models import Album, Photo, AlbumBookmark
from .album_schemas import AlbumCreate, AlbumUpdate, AlbumResponse

logger = logging.getLogger(__name__)


def album_visible_to(requester_id: Optional[int]):
    """可见性条件：公开相册，或请求者自己的相册"""
    condition = Album.is_private.is_(False)
    if requester_id is not None:
        condition = or_(condition, Album.user_id == requester_id)
    return condition


def album_to_dict(album: Album, owner: Optional[User] = None) -> dict:
    """相册序列化"""
    data = AlbumResponse.model_validate(album).model_dump()
    if owner is not None:
        data["user"] = UserBrief.model_validate(owner).model_dump()
    return data


class AlbumService:
    """
    相册服务类
    提供相册的 CRUD 操作，所有写操作都以所有者为前提
    """

    # 列表排序：最近更新在前
    ORDERING = (Album.updated_at.desc(), Album.id.desc())

    # ==================== 查询 ====================

    @staticmethod
    async def get_album_by_id(
        db: AsyncSession,
        album_id: int,
        user_id: Optional[int] = None
    ) -> Optional[Album]:
        """
        根据ID获取相册

        Args:
            db: 数据库会话
            album_id: 相册ID
            user_id: 用户ID（如果指定，只返回该用户的相册）
        """
        query = select(Album).execution_options(populate_existing=True).where(Album.id == album_id)
        if user_id is not None:
            query = query.where(Album.user_id == user_id)

        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_album(db: AsyncSession, album_id: int, requester_id: Optional[int]) -> Album:
        """
        获取请求者可见的相册

        私密相册对非所有者的表现与不存在完全一致
        """
        result = await db.execute(
            select(Album).execution_options(populate_existing=True).where(Album.id == album_id, album_visible_to(requester_id))
        )
        album = result.scalar_one_or_none()
        if not album:
            raise NotFoundException("相册")
        return album

    @staticmethod
    async def get_album_photos(db: AsyncSession, album_id: int) -> List[Photo]:
        """相册内照片，最新上传在前"""
        result = await db.execute(
            select(Photo)
            .where(Photo.album_id == album_id)
            .order_by(Photo.created_at.desc(), Photo.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_by_owner(
        db: AsyncSession,
        owner_id: int,
        include_private: bool = True
    ) -> List[Album]:
        """获取用户的相册列表"""
        query = select(Album).execution_options(populate_existing=True).where(Album.user_id == owner_id)
        if not include_private:
            query = query.where(Album.is_private.is_(False))
        result = await db.execute(query.order_by(*AlbumService.ORDERING))
        return list(result.scalars().all())

    @staticmethod
    async def list_public(
        db: AsyncSession,
        limit: int = 20,
        offset: int = 0
    ) -> List[Tuple[Album, User]]:
        """获取所有公开相册（附带所有者）"""
        result = await db.execute(
            select(Album, User).execution_options(populate_existing=True)
            .join(User, User.id == Album.user_id)
            .where(Album.is_private.is_(False))
            .order_by(*AlbumService.ORDERING)
            .offset(offset)
            .limit(limit)
        )
        return [(album, owner) for album, owner in result.all()]

    @staticmethod
    async def search_albums(
        db: AsyncSession,
        keyword: str,
        requester_id: Optional[int],
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[Tuple[Album, User]], int]:
        """
        搜索相册（标题或描述，不区分大小写）

        Returns:
            (albums, total): 相册及所有者列表和总数
        """
        pattern = contains_pattern(keyword)
        conditions = [
            or_(
                Album.title.ilike(pattern, escape=LIKE_ESCAPE_CHAR),
                Album.description.ilike(pattern, escape=LIKE_ESCAPE_CHAR)
            ),
            album_visible_to(requester_id),
        ]

        count_query = select(func.count(Album.id)).where(and_(*conditions))
        total = (await db.execute(count_query)).scalar() or 0

        result = await db.execute(
            select(Album, User).execution_options(populate_existing=True)
            .join(User, User.id == Album.user_id)
            .where(and_(*conditions))
            .order_by(*AlbumService.ORDERING)
            .offset(offset)
            .limit(limit)
        )
        return [(album, owner) for album, owner in result.all()], total

    # ==================== 写操作 ====================

    @staticmethod
    async def create_album(
        db: AsyncSession,
        user_id: int,
        data: AlbumCreate
    ) -> Album:
        """创建相册"""
        album = Album(
            user_id=user_id,
            **data.model_dump()
        )
        db.add(album)
        await db.flush()
        await db.refresh(album)
        logger.info(f"创建相册: id={album.id}, user_id={user_id}, title={album.title}")
        return album

    @staticmethod
    async def update_album(
        db: AsyncSession,
        album_id: int,
        data: AlbumUpdate,
        user_id: int
    ) -> Album:
        """更新相册（仅所有者）"""
        album = await AlbumService.get_album_by_id(db, album_id, user_id)
        if not album:
            raise NotFoundException("相册")

        update_data = data.model_dump(exclude_unset=True)
        if "title" in update_data and update_data["title"] is None:
            raise ValidationException("相册标题不能为空")

        cover_photo_id = update_data.get("cover_photo_id")
        if cover_photo_id is not None:
            result = await db.execute(
                select(Photo.id).where(Photo.id == cover_photo_id, Photo.album_id == album_id)
            )
            if result.first() is None:
                raise ValidationException("封面照片必须属于该相册")

        if "description" in update_data and update_data["description"] is not None:
            update_data["description"] = update_data["description"].strip() or None

        for key, value in update_data.items():
            setattr(album, key, value)
        album.updated_at = get_utc_time()

        await db.flush()
        await db.refresh(album)
        logger.info(f"更新相册: id={album_id}")
        return album

    @staticmethod
    async def delete_album(db: AsyncSession, album_id: int, user_id: int) -> List[str]:
        """
        删除相册

        照片记录由数据库级联删除。存储文件不在这里删除，
        调用方提交事务后再用 ObjectStorage.discard 清理

        Returns:
            相册内照片及缩略图的对象路径
        """
        album = await AlbumService.get_album_by_id(db, album_id, user_id)
        if not album:
            raise NotFoundException("相册")

        result = await db.execute(
            select(Photo.storage_path, Photo.thumbnail_path).where(Photo.album_id == album_id)
        )
        paths = [path for row in result.all() for path in row if path]

        await db.delete(album)
        await db.flush()
        logger.info(f"删除相册: id={album_id}, 照片文件 {len(paths)} 个")
        return paths


class AlbumBookmarkService:
    """相册收藏服务"""

    @staticmethod
    async def _get_bookmarkable_album(db: AsyncSession, album_id: int, user_id: int) -> Album:
        """可收藏的相册：存在，且公开或属于自己"""
        album = await AlbumService.get_album_by_id(db, album_id)
        if not album:
            raise NotFoundException("相册")
        if album.is_private and album.user_id != user_id:
            raise PermissionException("不能收藏他人的私密相册")
        return album

    @staticmethod
    async def exists(db: AsyncSession, user_id: int, album_id: int) -> bool:
        result = await db.execute(
            select(AlbumBookmark.id).where(
                AlbumBookmark.user_id == user_id,
                AlbumBookmark.album_id == album_id
            )
        )
        return result.first() is not None

    @staticmethod
    async def add(db: AsyncSession, user_id: int, album_id: int) -> bool:
        """
        收藏相册（幂等）

        Returns:
            是否新建了收藏记录
        """
        await AlbumBookmarkService._get_bookmarkable_album(db, album_id, user_id)
        if await AlbumBookmarkService.exists(db, user_id, album_id):
            return False

        db.add(AlbumBookmark(user_id=user_id, album_id=album_id))
        try:
            await db.flush()
        except IntegrityError:
            # 并发重复收藏，由唯一约束拦截
            await db.rollback()
            return False
        logger.info(f"收藏相册: user_id={user_id}, album_id={album_id}")
        return True

    @staticmethod
    async def remove(db: AsyncSession, user_id: int, album_id: int) -> bool:
        """取消收藏，记录不存在时不做任何事"""
        result = await db.execute(
            delete(AlbumBookmark).where(
                AlbumBookmark.user_id == user_id,
                AlbumBookmark.album_id == album_id
            )
        )
        return (result.rowcount or 0) > 0

    @staticmethod
    async def list_by_user(db: AsyncSession, user_id: int) -> List[Tuple[Album, User]]:
        """用户收藏的相册（仍然可见的），最近收藏在前"""
        result = await db.execute(
            select(Album, User).execution_options(populate_existing=True)
            .join(AlbumBookmark, AlbumBookmark.album_id == Album.id)
            .join(User, User.id == Album.user_id)
            .where(AlbumBookmark.user_id == user_id, album_visible_to(user_id))
            .order_by(AlbumBookmark.created_at.desc(), AlbumBookmark.id.desc())
        )
        return [(album, owner) for album, owner in result.all()]

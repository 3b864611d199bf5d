"""
用户模块业务逻辑
用户资料、统计与关注关系
"""

import logging
from typing import Optional, List, Tuple
from sqlalchemy import select, func, and_, or_, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundException, BusinessException, ErrorCode
from core.pagination import PageResult, paginate
from models import User
from modules.album.album_models import Album, Photo
from modules.album.album_services import AlbumService, album_to_dict
from schemas.user import UserBrief, UserInfo, UserStats, UserUpdate
from utils.timezone import get_utc_time
from utils.sql_safety import LIKE_ESCAPE_CHAR, contains_pattern

from .users_models import UserFollow

logger = logging.getLogger(__name__)


def user_to_dict(user: User) -> dict:
    return UserInfo.model_validate(user).model_dump()


def user_brief(user: User) -> dict:
    return UserBrief.model_validate(user).model_dump()


class UserService:
    """用户服务类"""

    ORDERING = (User.updated_at.desc(), User.id.desc())

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        result = await db.execute(
            select(User).execution_options(populate_existing=True).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user(db: AsyncSession, user_id: int) -> User:
        """获取用户，不存在时抛出 NotFound"""
        user = await UserService.get_user_by_id(db, user_id)
        if not user:
            raise NotFoundException("用户")
        return user

    @staticmethod
    async def get_stats(db: AsyncSession, user_id: int) -> dict:
        """用户统计：相册数、照片数、关注数、粉丝数"""
        album_count = await db.execute(select(func.count(Album.id)).where(Album.user_id == user_id))
        photo_count = await db.execute(select(func.count(Photo.id)).where(Photo.user_id == user_id))
        following_count = await db.execute(
            select(func.count(UserFollow.id)).where(UserFollow.follower_id == user_id)
        )
        followers_count = await db.execute(
            select(func.count(UserFollow.id)).where(UserFollow.following_id == user_id)
        )
        return UserStats(
            album_count=album_count.scalar() or 0,
            photo_count=photo_count.scalar() or 0,
            following_count=following_count.scalar() or 0,
            followers_count=followers_count.scalar() or 0
        ).model_dump()

    @staticmethod
    async def get_profile(db: AsyncSession, user_id: int, requester_id: Optional[int]) -> dict:
        """
        用户主页：资料、统计、相册

        本人查看时包含邮箱和私密相册，其他人只能看到简要资料和公开相册
        """
        user = await UserService.get_user(db, user_id)
        albums = await AlbumService.list_by_owner(
            db, user_id, include_private=(requester_id == user_id)
        )
        return {
            "user": user_to_dict(user) if requester_id == user_id else user_brief(user),
            "stats": await UserService.get_stats(db, user_id),
            "albums": [album_to_dict(album) for album in albums]
        }

    @staticmethod
    async def list_users(db: AsyncSession, limit: int = 20, offset: int = 0) -> List[User]:
        """用户列表，最近更新在前"""
        result = await db.execute(
            select(User).execution_options(populate_existing=True)
            .order_by(*UserService.ORDERING)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def search_users(
        db: AsyncSession,
        keyword: str,
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[User], int]:
        """
        搜索用户（姓名、用户名、邮箱，不区分大小写）

        Returns:
            (users, total)
        """
        pattern = contains_pattern(keyword)
        conditions = [
            or_(
                User.name.ilike(pattern, escape=LIKE_ESCAPE_CHAR),
                User.username.ilike(pattern, escape=LIKE_ESCAPE_CHAR),
                User.email.ilike(pattern, escape=LIKE_ESCAPE_CHAR)
            )
        ]

        count_query = select(func.count(User.id)).where(and_(*conditions))
        total = (await db.execute(count_query)).scalar() or 0

        result = await db.execute(
            select(User).execution_options(populate_existing=True)
            .where(and_(*conditions))
            .order_by(*UserService.ORDERING)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def update_profile(db: AsyncSession, user: User, data: UserUpdate) -> User:
        """更新个人资料（用户名需唯一）"""
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)

        username = update_data.get("username")
        if username and username != user.username:
            result = await db.execute(
                select(User.id).where(User.username == username, User.id != user.id)
            )
            if result.first() is not None:
                raise BusinessException(ErrorCode.RESOURCE_EXISTS, "用户名已被占用")

        for key, value in update_data.items():
            setattr(user, key, value)
        user.updated_at = get_utc_time()

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise BusinessException(ErrorCode.RESOURCE_EXISTS, "用户名已被占用")

        await db.refresh(user)
        logger.info(f"更新个人资料: id={user.id}")
        return user


class FollowService:
    """关注服务"""

    @staticmethod
    async def exists(db: AsyncSession, follower_id: int, following_id: int) -> bool:
        result = await db.execute(
            select(UserFollow.id).where(
                UserFollow.follower_id == follower_id,
                UserFollow.following_id == following_id
            )
        )
        return result.first() is not None

    @staticmethod
    async def add(db: AsyncSession, follower_id: int, following_id: int) -> bool:
        """
        关注用户（幂等）

        Returns:
            是否新建了关注关系

        Raises:
            BusinessException: 关注自己
            NotFoundException: 被关注用户不存在
        """
        if follower_id == following_id:
            raise BusinessException(ErrorCode.INVALID_OPERATION, "不能关注自己")

        await UserService.get_user(db, following_id)
        if await FollowService.exists(db, follower_id, following_id):
            return False

        db.add(UserFollow(follower_id=follower_id, following_id=following_id))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            return False
        logger.info(f"关注用户: follower_id={follower_id}, following_id={following_id}")
        return True

    @staticmethod
    async def remove(db: AsyncSession, follower_id: int, following_id: int) -> bool:
        """取消关注，未关注时不做任何事"""
        result = await db.execute(
            delete(UserFollow).where(
                UserFollow.follower_id == follower_id,
                UserFollow.following_id == following_id
            )
        )
        return (result.rowcount or 0) > 0

    @staticmethod
    async def list_followers(
        db: AsyncSession,
        user_id: int,
        page: int = 1,
        page_size: int = 20
    ) -> PageResult[dict]:
        """粉丝列表，最近关注在前"""
        await UserService.get_user(db, user_id)
        query = (
            select(User)
            .join(UserFollow, UserFollow.follower_id == User.id)
            .where(UserFollow.following_id == user_id)
            .order_by(UserFollow.created_at.desc(), UserFollow.id.desc())
        )
        return await paginate(db, query, page, page_size, transformer=user_brief)

    @staticmethod
    async def list_following(
        db: AsyncSession,
        user_id: int,
        page: int = 1,
        page_size: int = 20
    ) -> PageResult[dict]:
        """关注列表，最近关注在前"""
        await UserService.get_user(db, user_id)
        query = (
            select(User)
            .join(UserFollow, UserFollow.following_id == User.id)
            .where(UserFollow.follower_id == user_id)
            .order_by(UserFollow.created_at.desc(), UserFollow.id.desc())
        )
        return await paginate(db, query, page, page_size, transformer=user_brief)

"""
身份桥接
把身份提供方的主体ID映射为本地用户：首次出现时创建，同步/更新事件时刷新资料，删除事件时删除
"""

import re
import random
import secrets
import logging
from typing import Optional, Tuple
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from utils.timezone import get_utc_time
from .errors import InvalidIdentityException, BusinessException, ErrorCode
from .security import IdentityClaims

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
USERNAME_FALLBACK = "user"
USERNAME_SUFFIX_ATTEMPTS = 10

_INVALID_USERNAME_CHARS = re.compile(r"[^A-Za-z0-9_.]")
USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_.]{3,30}")


def clamp_username(value: str) -> str:
    """长度限制在 [3, 30]：不足右侧补 0，超出截断"""
    if len(value) < USERNAME_MIN_LENGTH:
        value = value.ljust(USERNAME_MIN_LENGTH, "0")
    return value[:USERNAME_MAX_LENGTH]


def base_username(claims: IdentityClaims) -> str:
    """
    用户名候选值

    优先使用身份提供方给出的用户名，否则取邮箱 @ 之前的部分；
    去掉 [A-Za-z0-9_.] 以外的字符，清理后为空则使用 "user"
    """
    raw = claims.username or (claims.email or "").split("@")[0]
    cleaned = _INVALID_USERNAME_CHARS.sub("", raw)
    return clamp_username(cleaned or USERNAME_FALLBACK)


def display_name(claims: IdentityClaims) -> str:
    """显示名称："名 姓"，否则用户名，否则 "User" """
    full_name = " ".join(part for part in (claims.first_name, claims.last_name) if part)
    return full_name or claims.username or "User"


class IdentityBridge:
    """身份桥接服务"""

    @staticmethod
    async def get_by_subject(db: AsyncSession, subject: str) -> Optional[User]:
        """按身份提供方主体ID查找本地用户"""
        result = await db.execute(select(User).where(User.external_id == subject))
        return result.scalar_one_or_none()

    @staticmethod
    async def username_taken(db: AsyncSession, username: str) -> bool:
        result = await db.execute(select(User.id).where(User.username == username))
        return result.first() is not None

    @staticmethod
    async def generate_username(db: AsyncSession, claims: IdentityClaims) -> str:
        """
        生成唯一用户名

        冲突时追加随机数字后缀，并截短前缀保证总长度不超过 30；
        最终唯一性仍由数据库唯一约束保证
        """
        base = base_username(claims)
        if not await IdentityBridge.username_taken(db, base):
            return base

        for _ in range(USERNAME_SUFFIX_ATTEMPTS):
            suffix = str(random.randint(0, 9999))
            candidate = clamp_username(base[:USERNAME_MAX_LENGTH - len(suffix)] + suffix)
            if not await IdentityBridge.username_taken(db, candidate):
                return candidate

        suffix = secrets.token_hex(4)
        return clamp_username(base[:USERNAME_MAX_LENGTH - len(suffix)] + suffix)

    @staticmethod
    def _apply_claims(user: User, claims: IdentityClaims) -> None:
        """用身份断言中实际携带的字段刷新资料"""
        if claims.first_name or claims.last_name:
            user.name = display_name(claims)
        if claims.email:
            user.email = claims.email
        if claims.image_url:
            user.avatar_url = claims.image_url
        user.updated_at = get_utc_time()

    @staticmethod
    async def sync_identity(
        db: AsyncSession,
        claims: IdentityClaims,
        refresh: bool = True
    ) -> Tuple[User, bool]:
        """
        同步身份到本地用户

        Args:
            db: 数据库会话
            claims: 身份断言
            refresh: 用户已存在时是否刷新姓名/邮箱/头像

        Returns:
            (user, created): 本地用户，以及本次是否新建

        Raises:
            InvalidIdentityException: 需要新建但缺少主邮箱
        """
        user = await IdentityBridge.get_by_subject(db, claims.subject)
        if user:
            if refresh:
                IdentityBridge._apply_claims(user, claims)
                await db.flush()
                await db.refresh(user)
                logger.info(f"同步用户资料: id={user.id}, subject={claims.subject}")
            return user, False

        if not claims.email:
            raise InvalidIdentityException()

        username = await IdentityBridge.generate_username(db, claims)
        user = User(
            external_id=claims.subject,
            username=username,
            name=display_name(claims),
            email=claims.email,
            avatar_url=claims.image_url
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # 并发的同一主体首次访问，另一请求已创建
            await db.rollback()
            existing = await IdentityBridge.get_by_subject(db, claims.subject)
            if existing:
                return existing, False
            raise BusinessException(ErrorCode.RESOURCE_EXISTS, f"用户名 {username} 已被占用")

        await db.refresh(user)
        logger.info(f"创建本地用户: id={user.id}, username={user.username}, subject={claims.subject}")
        return user, True

    @staticmethod
    async def delete_by_subject(db: AsyncSession, subject: str) -> bool:
        """按主体ID删除本地用户，关联内容由数据库级联删除"""
        result = await db.execute(delete(User).where(User.external_id == subject))
        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info(f"删除本地用户: subject={subject}")
        return deleted

"""
依赖注入
提供全局可复用的依赖项
"""

from typing import Optional
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from utils.storage import ObjectStorage, get_object_storage as _get_object_storage
from .database import get_db
from .identity import IdentityBridge
from .security import IdentityClaims, get_current_identity, get_optional_identity
from .config import get_settings


# 重新导出常用依赖
__all__ = [
    "get_db",
    "get_current_user",
    "get_optional_user",
    "get_object_storage",
    "get_settings",
]


async def get_current_user(
    identity: IdentityClaims = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    获取当前本地用户

    首次访问时通过身份桥接自动创建本地记录
    """
    user = await IdentityBridge.get_by_subject(db, identity.subject)
    if user is None:
        user, _ = await IdentityBridge.sync_identity(db, identity, refresh=False)
        await db.commit()
    return user


async def get_optional_user(
    identity: Optional[IdentityClaims] = Depends(get_optional_identity),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """获取当前用户（可选，匿名访问时为 None）"""
    if identity is None:
        return None
    return await IdentityBridge.get_by_subject(db, identity.subject)


def get_object_storage() -> ObjectStorage:
    """获取对象存储（依赖注入用）"""
    return _get_object_storage()

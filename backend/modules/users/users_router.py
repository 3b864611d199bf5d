"""
用户模块路由
用户资料、同步与关注
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.deps import get_current_user, get_optional_user
from core.identity import IdentityBridge
from core.security import IdentityClaims, get_current_identity
from models import User
from schemas.response import success
from schemas.user import UserUpdate, FollowRequest

from .users_services import UserService, FollowService, user_brief, user_to_dict

router = APIRouter()


# ==================== 用户列表与同步 ====================

@router.get("", summary="用户列表")
async def get_users(
    limit: int = Query(20, ge=1, le=100, description="每页数量"),
    offset: int = Query(0, ge=0, description="偏移量"),
    db: AsyncSession = Depends(get_db)
):
    users = await UserService.list_users(db, limit, offset)
    return success(data=[user_brief(user) for user in users])


@router.post("", summary="同步当前登录身份")
async def sync_current_user(
    identity: IdentityClaims = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """
    根据会话身份创建或返回本地用户

    已存在时用身份提供方的最新资料刷新姓名、邮箱和头像
    """
    user, created = await IdentityBridge.sync_identity(db, identity, refresh=True)
    await db.commit()
    return success(
        data={"user": user_to_dict(user), "created": created},
        message="用户已创建" if created else "用户已同步"
    )


# ==================== 当前用户 ====================

@router.get("/current", summary="获取当前用户")
async def get_current(user: User = Depends(get_current_user)):
    return success(data=user_to_dict(user))


@router.patch("/current", summary="更新个人资料")
async def update_current(
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """更新用户名、显示名称或头像"""
    user = await UserService.update_profile(db, user, data)
    await db.commit()
    return success(data=user_to_dict(user), message="资料已更新")


# ==================== 关注 ====================

@router.get("/follow", summary="关注状态")
async def get_follow_status(
    user_id: int = Query(..., alias="userId", description="目标用户ID"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    is_following = await FollowService.exists(db, user.id, user_id)
    return success(data={"isFollowing": is_following})


@router.post("/follow", summary="关注用户")
async def follow_user(
    data: FollowRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    created = await FollowService.add(db, user.id, data.target_user_id)
    await db.commit()
    return success(data={"isFollowing": True}, message="关注成功" if created else "已关注")


@router.delete("/follow", summary="取消关注")
async def unfollow_user(
    target_user_id: int = Query(..., alias="targetUserId", description="目标用户ID"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    await FollowService.remove(db, user.id, target_user_id)
    await db.commit()
    return success(data={"isFollowing": False}, message="已取消关注")


@router.get("/{user_id}/followers", summary="粉丝列表")
async def get_followers(
    user_id: int,
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    db: AsyncSession = Depends(get_db)
):
    result = await FollowService.list_followers(db, user_id, page, page_size)
    return success(data=result.to_dict())


@router.get("/{user_id}/following", summary="关注列表")
async def get_following(
    user_id: int,
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    db: AsyncSession = Depends(get_db)
):
    result = await FollowService.list_following(db, user_id, page, page_size)
    return success(data=result.to_dict())


# ==================== 用户主页 ====================

@router.get("/{user_id}", summary="用户主页")
async def get_user_profile(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user)
):
    """资料、统计和可见相册，本人访问时包含私密相册"""
    profile = await UserService.get_profile(db, user_id, user.id if user else None)
    return success(data=profile)

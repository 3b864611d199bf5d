"""
相册模块路由
定义 API 接口
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.deps import get_current_user, get_optional_user, get_object_storage
from models import User
from schemas.response import success
from utils.storage import ObjectStorage

from modules.photo.photo_services import photo_to_dict
from .album_schemas import AlbumCreate, AlbumUpdate, AlbumBookmarkRequest
from .album_services import AlbumService, AlbumBookmarkService, album_to_dict

router = APIRouter()


# ==================== 相册接口 ====================

@router.get("", summary="获取公开相册列表")
async def get_public_albums(
    limit: int = Query(20, ge=1, le=100, description="每页数量"),
    offset: int = Query(0, ge=0, description="偏移量"),
    db: AsyncSession = Depends(get_db)
):
    """所有用户的公开相册，最近更新在前"""
    rows = await AlbumService.list_public(db, limit, offset)
    return success(data=[album_to_dict(album, owner) for album, owner in rows])


@router.post("", summary="创建相册")
async def create_album(
    data: AlbumCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """创建新相册"""
    album = await AlbumService.create_album(db, user.id, data)
    await db.commit()
    return success(data=album_to_dict(album), message="相册已成功创建")


@router.get("/my", summary="我的相册")
async def get_my_albums(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """当前用户的全部相册（含私密）"""
    albums = await AlbumService.list_by_owner(db, user.id)
    return success(data=[album_to_dict(album) for album in albums])


# ==================== 收藏接口 ====================

@router.get("/bookmark", summary="收藏状态或收藏列表")
async def get_album_bookmarks(
    album_id: Optional[int] = Query(None, alias="albumId", description="相册ID"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """带 albumId 时返回是否已收藏，否则返回收藏列表"""
    if album_id is not None:
        is_bookmarked = await AlbumBookmarkService.exists(db, user.id, album_id)
        return success(data={"isBookmarked": is_bookmarked})

    rows = await AlbumBookmarkService.list_by_user(db, user.id)
    return success(data=[album_to_dict(album, owner) for album, owner in rows])


@router.get("/bookmarks", summary="收藏的相册列表")
async def list_album_bookmarks(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    rows = await AlbumBookmarkService.list_by_user(db, user.id)
    return success(data=[album_to_dict(album, owner) for album, owner in rows])


@router.post("/bookmark", summary="收藏相册")
async def bookmark_album(
    data: AlbumBookmarkRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    created = await AlbumBookmarkService.add(db, user.id, data.album_id)
    await db.commit()
    message = "收藏成功" if created else "相册已收藏"
    return success(data={"isBookmarked": True}, message=message)


@router.delete("/bookmark", summary="取消收藏相册")
async def unbookmark_album(
    album_id: int = Query(..., alias="albumId", description="相册ID"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    await AlbumBookmarkService.remove(db, user.id, album_id)
    await db.commit()
    return success(data={"isBookmarked": False}, message="已取消收藏")


# ==================== 单个相册 ====================

@router.get("/{album_id}", summary="获取相册详情")
async def get_album_detail(
    album_id: int,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user)
):
    """获取相册详情（包含照片列表），私密相册仅所有者可见"""
    album = await AlbumService.get_album(db, album_id, user.id if user else None)
    photos = await AlbumService.get_album_photos(db, album_id)

    album_data = album_to_dict(album)
    album_data["photos"] = [photo_to_dict(photo) for photo in photos]
    return success(data=album_data)


@router.patch("/{album_id}", summary="更新相册")
async def update_album(
    album_id: int,
    data: AlbumUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """更新相册信息（仅所有者）"""
    album = await AlbumService.update_album(db, album_id, data, user.id)
    await db.commit()
    return success(data=album_to_dict(album), message="更新成功")


@router.delete("/{album_id}", summary="删除相册")
async def delete_album(
    album_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage)
):
    """删除相册（同时删除所有照片）"""
    paths = await AlbumService.delete_album(db, album_id, user.id)
    await db.commit()
    await storage.discard(paths, f"相册 {album_id} 已删除")
    return success(message="相册已删除")

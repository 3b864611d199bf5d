"""
照片模块路由
定义 API 接口
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from starlette.datastructures import UploadFile as StarletteUploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.deps import get_current_user, get_optional_user, get_object_storage
from core.errors import ValidationException
from models import User
from schemas.response import success
from schemas.user import UserBrief
from utils.storage import ObjectStorage

from .photo_schemas import PhotoUpdate, PhotoTargetRequest, CommentCreate
from .photo_services import (
    PhotoService, PhotoLikeService, PhotoCommentService, PhotoBookmarkService, photo_to_dict
)

router = APIRouter()


# ==================== 照片列表 ====================

@router.get("", summary="公开照片流")
async def get_public_photos(
    limit: int = Query(20, ge=1, le=100, description="每页数量"),
    offset: int = Query(0, ge=0, description="偏移量"),
    db: AsyncSession = Depends(get_db)
):
    """公开相册中的照片，最近更新在前"""
    rows = await PhotoService.list_public(db, limit, offset)
    return success(data=[photo_to_dict(photo, owner) for photo, owner in rows])


@router.get("/my", summary="我的照片")
async def get_my_photos(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    photos = await PhotoService.list_by_owner(db, user.id)
    return success(data=[photo_to_dict(photo) for photo in photos])


# ==================== 上传 ====================

@router.post("/upload", summary="上传照片")
async def upload_photo(
    album_id: int = Form(..., alias="albumId", description="相册ID"),
    title: str = Form(..., description="照片标题"),
    description: Optional[str] = Form(None, description="照片描述"),
    file: UploadFile = File(..., description="图片文件"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage)
):
    """上传单张照片到自己的相册"""
    content = await file.read()
    photo = await PhotoService.create_photo(
        db, user.id, album_id, title, content, storage,
        description=description, filename=file.filename
    )
    await db.commit()
    return success(data=photo_to_dict(photo), message="照片上传成功")


@router.post("/upload/batch-upload", summary="批量上传照片")
async def batch_upload_photos(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage)
):
    """
    批量上传照片

    表单字段：albumId、defaultTitle（可选）、files（可重复，也接受 files[0] 这类键名）
    """
    user_id = user.id
    form = await request.form()

    raw_album_id = form.get("albumId")
    if not raw_album_id or not str(raw_album_id).isdigit():
        raise ValidationException("缺少相册ID")

    uploads = [
        value for key, value in form.multi_items()
        if key.startswith("files") and isinstance(value, StarletteUploadFile)
    ]
    if not uploads:
        raise ValidationException("没有上传任何文件")

    files = []
    for upload in uploads:
        files.append((upload.filename, await upload.read()))

    default_title = form.get("defaultTitle")
    result = await PhotoService.batch_upload(
        db, user_id, int(raw_album_id), files, storage,
        default_title=default_title if isinstance(default_title, str) else None
    )

    message = f"成功上传 {result['uploaded']} 张照片"
    if result["failed"]:
        message += f"，{result['failed']} 张失败"
    return success(data=result, message=message)


# ==================== 点赞 ====================

@router.get("/like", summary="点赞状态")
async def get_like_status(
    photo_id: int = Query(..., alias="photoId", description="照片ID"),
    get_likes: bool = Query(False, alias="getLikes", description="是否返回点赞用户列表"),
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user)
):
    """点赞数、当前用户是否已点赞，可选返回最近 20 个点赞用户"""
    requester_id = user.id if user else None
    await PhotoService.get_photo(db, photo_id, requester_id)

    stats = await PhotoService.get_stats(db, photo_id)
    data = {
        "isLiked": await PhotoLikeService.exists(db, requester_id, photo_id) if requester_id else False,
        "likesCount": stats["likes_count"]
    }
    if get_likes:
        likers = await PhotoLikeService.list_by_target(db, photo_id)
        data["likes"] = [UserBrief.model_validate(liker).model_dump() for liker in likers]
    return success(data=data)


@router.post("/like", summary="点赞照片")
async def like_photo(
    data: PhotoTargetRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    created = await PhotoLikeService.add(db, user.id, data.photo_id)
    await db.commit()
    return success(data={"isLiked": True}, message="点赞成功" if created else "已点赞")


@router.delete("/like", summary="取消点赞")
async def unlike_photo(
    photo_id: int = Query(..., alias="photoId", description="照片ID"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    await PhotoLikeService.remove(db, user.id, photo_id)
    await db.commit()
    return success(data={"isLiked": False}, message="已取消点赞")


# ==================== 收藏 ====================

@router.get("/bookmark", summary="收藏状态或收藏列表")
async def get_photo_bookmarks(
    photo_id: Optional[int] = Query(None, alias="photoId", description="照片ID"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """带 photoId 时返回是否已收藏，否则返回收藏列表"""
    if photo_id is not None:
        is_bookmarked = await PhotoBookmarkService.exists(db, user.id, photo_id)
        return success(data={"isBookmarked": is_bookmarked})

    rows = await PhotoBookmarkService.list_by_user(db, user.id)
    return success(data=[photo_to_dict(photo, owner) for photo, owner in rows])


@router.post("/bookmark", summary="收藏照片")
async def bookmark_photo(
    data: PhotoTargetRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    created = await PhotoBookmarkService.add(db, user.id, data.photo_id)
    await db.commit()
    return success(data={"isBookmarked": True}, message="收藏成功" if created else "照片已收藏")


@router.delete("/bookmark", summary="取消收藏照片")
async def unbookmark_photo(
    photo_id: int = Query(..., alias="photoId", description="照片ID"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    await PhotoBookmarkService.remove(db, user.id, photo_id)
    await db.commit()
    return success(data={"isBookmarked": False}, message="已取消收藏")


# ==================== 评论 ====================

@router.get("/comments", summary="照片评论列表")
async def get_comments(
    photo_id: int = Query(..., alias="photoId", description="照片ID"),
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user)
):
    """按时间正序返回最多 50 条评论"""
    await PhotoService.get_photo(db, photo_id, user.id if user else None)
    comments = await PhotoCommentService.list_by_target(db, photo_id)
    return success(data=comments)


@router.post("/comments", summary="发表评论")
async def add_comment(
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    comment = await PhotoCommentService.add_comment(db, user.id, data.photo_id, data.content)
    await db.commit()
    return success(
        data={
            "id": comment.id,
            "photo_id": comment.photo_id,
            "user_id": comment.user_id,
            "content": comment.content,
            "created_at": comment.created_at,
            "user": UserBrief.model_validate(user).model_dump()
        },
        message="评论成功"
    )


@router.delete("/comments", summary="删除评论")
async def delete_comment(
    comment_id: int = Query(..., alias="id", description="评论ID"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """只有评论作者可以删除"""
    await PhotoCommentService.delete_comment(db, comment_id, user.id)
    await db.commit()
    return success(message="评论已删除")


# ==================== 单张照片 ====================

@router.get("/{photo_id}", summary="获取照片详情")
async def get_photo_detail(
    photo_id: int,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user)
):
    """照片详情，附带相册标题、作者和统计"""
    photo, album, owner = await PhotoService.get_photo(db, photo_id, user.id if user else None)
    data = photo_to_dict(photo, owner)
    data["album"] = {"id": album.id, "title": album.title, "is_private": album.is_private}
    data["stats"] = await PhotoService.get_stats(db, photo_id)
    return success(data=data)


@router.patch("/{photo_id}", summary="更新照片")
async def update_photo(
    photo_id: int,
    data: PhotoUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """更新照片标题、描述（仅所有者）"""
    photo = await PhotoService.update_photo(db, photo_id, data, user.id)
    await db.commit()
    return success(data=photo_to_dict(photo), message="更新成功")


@router.delete("/{photo_id}", summary="删除照片")
async def delete_photo(
    photo_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage)
):
    """删除照片记录和存储文件（仅所有者）"""
    paths = await PhotoService.delete_photo(db, photo_id, user.id)
    await db.commit()
    await storage.discard(paths, f"照片 {photo_id} 已删除")
    return success(message="照片已删除")

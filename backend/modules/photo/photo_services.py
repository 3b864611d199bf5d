"""
照片模块业务逻辑
实现照片的上传、查询、更新、删除，以及点赞、评论、收藏
"""

import io
import logging
from typing import Optional, List, Tuple
from PIL import Image
from sqlalchemy import select, func, and_, or_, delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import (
    AppException, ErrorCode, NotFoundException, PermissionException,
    ValidationException, UpstreamException
)
from models import User
from modules.album.album_models import Album, Photo
from modules.album.album_services import AlbumService, album_visible_to
from schemas.user import UserBrief
from utils.storage import ObjectStorage
from utils.sql_safety import LIKE_ESCAPE_CHAR, contains_pattern
from utils.timezone import get_utc_time

from .photo_models import PhotoLike, PhotoComment, PhotoBookmark
from .photo_schemas import (
    PhotoUpdate, PhotoResponse, PhotoStats, BatchUploadResult, CommentResponse, DEFAULT_BATCH_TITLE
)

logger = logging.getLogger(__name__)

# 缩略图尺寸
THUMBNAIL_SIZE = (300, 300)


# ==================== 图片处理 ====================

def extract_image_info(content: bytes) -> Optional[Tuple[int, int, float]]:
    """
    读取图片尺寸

    Returns:
        (width, height, aspect_ratio)，无法解析时返回 None
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            width, height = img.size
    except Exception as e:
        logger.warning(f"读取图片尺寸失败: {e}")
        return None

    if not width or not height:
        return None
    return width, height, round(width / height, 4)


def make_thumbnail(content: bytes) -> Optional[bytes]:
    """生成 JPEG 缩略图，失败返回 None"""
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.thumbnail(THUMBNAIL_SIZE, Image.LANCZOS)
            if img.mode != 'RGB':
                img = img.convert('RGB')
            buffer = io.BytesIO()
            img.save(buffer, 'JPEG', quality=85)
            return buffer.getvalue()
    except Exception as e:
        logger.warning(f"缩略图生成失败: {e}")
        return None


def photo_visible_to(requester_id: Optional[int]):
    """照片可见性跟随所属相册（查询需 join Album）"""
    return album_visible_to(requester_id)


def photo_to_dict(photo: Photo, owner: Optional[User] = None) -> dict:
    """照片序列化"""
    data = PhotoResponse.model_validate(photo).model_dump()
    if owner is not None:
        data["user"] = UserBrief.model_validate(owner).model_dump()
    return data


class PhotoService:
    """
    照片服务类
    提供照片的 CRUD 操作
    """

    # 列表排序：最近更新在前
    ORDERING = (Photo.updated_at.desc(), Photo.id.desc())

    # ==================== 查询 ====================

    @staticmethod
    async def get_photo_by_id(
        db: AsyncSession,
        photo_id: int,
        user_id: Optional[int] = None
    ) -> Optional[Photo]:
        """根据ID获取照片（指定 user_id 时只返回该用户的照片）"""
        query = select(Photo).execution_options(populate_existing=True).where(Photo.id == photo_id)
        if user_id is not None:
            query = query.where(Photo.user_id == user_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_photo(
        db: AsyncSession,
        photo_id: int,
        requester_id: Optional[int]
    ) -> Tuple[Photo, Album, User]:
        """
        获取请求者可见的照片

        Returns:
            (photo, album, owner)
        """
        result = await db.execute(
            select(Photo, Album, User).execution_options(populate_existing=True)
            .join(Album, Album.id == Photo.album_id)
            .join(User, User.id == Photo.user_id)
            .where(Photo.id == photo_id, photo_visible_to(requester_id))
        )
        row = result.first()
        if not row:
            raise NotFoundException("照片")
        return row[0], row[1], row[2]

    @staticmethod
    async def get_stats(db: AsyncSession, photo_id: int) -> dict:
        """照片统计：点赞数、评论数"""
        likes = await db.execute(select(func.count(PhotoLike.id)).where(PhotoLike.photo_id == photo_id))
        comments = await db.execute(select(func.count(PhotoComment.id)).where(PhotoComment.photo_id == photo_id))
        return PhotoStats(
            likes_count=likes.scalar() or 0,
            comments_count=comments.scalar() or 0
        ).model_dump()

    @staticmethod
    async def list_by_owner(db: AsyncSession, owner_id: int) -> List[Photo]:
        """获取用户的全部照片"""
        result = await db.execute(
            select(Photo).execution_options(populate_existing=True)
            .where(Photo.user_id == owner_id)
            .order_by(*PhotoService.ORDERING)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_public(
        db: AsyncSession,
        limit: int = 20,
        offset: int = 0
    ) -> List[Tuple[Photo, User]]:
        """公开相册中的照片（附带所有者）"""
        result = await db.execute(
            select(Photo, User).execution_options(populate_existing=True)
            .join(Album, Album.id == Photo.album_id)
            .join(User, User.id == Photo.user_id)
            .where(Album.is_private.is_(False))
            .order_by(*PhotoService.ORDERING)
            .offset(offset)
            .limit(limit)
        )
        return [(photo, owner) for photo, owner in result.all()]

    @staticmethod
    async def search_photos(
        db: AsyncSession,
        keyword: str,
        requester_id: Optional[int],
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[Tuple[Photo, User]], int]:
        """
        搜索照片（标题或描述，不区分大小写）

        Returns:
            (photos, total): 照片及所有者列表和总数
        """
        pattern = contains_pattern(keyword)
        conditions = [
            or_(
                Photo.title.ilike(pattern, escape=LIKE_ESCAPE_CHAR),
                Photo.description.ilike(pattern, escape=LIKE_ESCAPE_CHAR)
            ),
            photo_visible_to(requester_id),
        ]

        count_query = (
            select(func.count(Photo.id))
            .join(Album, Album.id == Photo.album_id)
            .where(and_(*conditions))
        )
        total = (await db.execute(count_query)).scalar() or 0

        result = await db.execute(
            select(Photo, User).execution_options(populate_existing=True)
            .join(Album, Album.id == Photo.album_id)
            .join(User, User.id == Photo.user_id)
            .where(and_(*conditions))
            .order_by(*PhotoService.ORDERING)
            .offset(offset)
            .limit(limit)
        )
        return [(photo, owner) for photo, owner in result.all()], total

    # ==================== 写操作 ====================

    @staticmethod
    async def create_photo(
        db: AsyncSession,
        user_id: int,
        album_id: int,
        title: str,
        content: bytes,
        storage: ObjectStorage,
        description: Optional[str] = None,
        filename: Optional[str] = None
    ) -> Photo:
        """
        上传照片到相册

        先上传文件再写入记录；写入失败时删除已上传的文件

        Args:
            db: 数据库会话
            user_id: 用户ID
            album_id: 相册ID（必须属于该用户）
            title: 照片标题
            content: 文件内容
            storage: 对象存储
            description: 照片描述
            filename: 原始文件名（仅用于日志）
        """
        album = await AlbumService.get_album_by_id(db, album_id, user_id)
        if not album:
            raise NotFoundException("相册")

        title = (title or "").strip()
        if not title:
            raise ValidationException("照片标题不能为空")
        if len(title) > 200:
            raise ValidationException("照片标题不能超过 200 字")
        description = (description or "").strip() or None

        mime_type, extension = storage.validate_image(content)

        # 尺寸读取失败不阻塞上传
        width = height = aspect_ratio = None
        info = extract_image_info(content)
        if info:
            width, height, aspect_ratio = info

        storage_path = storage.build_object_path(user_id, album_id, extension)
        await storage.upload(storage_path, content, mime_type)
        url = storage.get_public_url(storage_path)

        # 缩略图失败时直接使用原图地址
        thumbnail_path = None
        thumbnail_url = url
        thumbnail = make_thumbnail(content)
        if thumbnail:
            candidate = storage_path.rsplit(".", 1)[0] + "_thumb.jpg"
            try:
                await storage.upload(candidate, thumbnail, "image/jpeg")
                thumbnail_path = candidate
                thumbnail_url = storage.get_public_url(candidate)
            except UpstreamException as e:
                logger.warning(f"缩略图上传失败，使用原图: {e.message}")

        photo = Photo(
            album_id=album_id,
            user_id=user_id,
            title=title,
            description=description,
            url=url,
            thumbnail_url=thumbnail_url,
            storage_path=storage_path,
            thumbnail_path=thumbnail_path,
            aspect_ratio=aspect_ratio,
            width=width,
            height=height,
            file_size=len(content),
            mime_type=mime_type
        )
        db.add(photo)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"照片记录写入失败，回收已上传文件: {e}")
            await storage.discard([storage_path, thumbnail_path], "照片记录写入失败")
            raise UpstreamException(ErrorCode.DATABASE_ERROR, "照片保存失败")

        await db.refresh(photo)
        logger.info(f"上传照片: id={photo.id}, album_id={album_id}, file={filename}")
        return photo

    @staticmethod
    async def batch_upload(
        db: AsyncSession,
        user_id: int,
        album_id: int,
        files: List[Tuple[str, bytes]],
        storage: ObjectStorage,
        default_title: Optional[str] = None
    ) -> dict:
        """
        批量上传照片

        逐个处理、逐个提交，单个失败不影响其余文件

        Args:
            files: [(文件名, 文件内容)]，按输入顺序处理

        Returns:
            {"success", "uploaded", "failed", "photos", "errors"}
        """
        title = (default_title or "").strip() or DEFAULT_BATCH_TITLE
        photos = []
        errors = []

        for filename, content in files:
            try:
                photo = await PhotoService.create_photo(
                    db, user_id, album_id, title, content, storage, filename=filename
                )
                await db.commit()
                photos.append(photo_to_dict(photo))
            except AppException as e:
                await db.rollback()
                errors.append(f"{filename}: {e.message}")
            except Exception as e:
                await db.rollback()
                logger.error(f"批量上传文件失败 {filename}: {e}", exc_info=True)
                errors.append(f"{filename}: 上传失败")

        uploaded = len(photos)
        failed = len(errors)
        logger.info(f"批量上传: album_id={album_id}, 成功 {uploaded} 个, 失败 {failed} 个")
        return BatchUploadResult(
            success=failed == 0,
            uploaded=uploaded,
            failed=failed,
            photos=photos,
            errors=errors
        ).model_dump()

    @staticmethod
    async def update_photo(
        db: AsyncSession,
        photo_id: int,
        data: PhotoUpdate,
        user_id: int
    ) -> Photo:
        """更新照片信息（仅所有者）"""
        photo = await PhotoService.get_photo_by_id(db, photo_id, user_id)
        if not photo:
            raise NotFoundException("照片")

        update_data = data.model_dump(exclude_unset=True)
        if "title" in update_data and update_data["title"] is None:
            raise ValidationException("照片标题不能为空")
        if "description" in update_data and update_data["description"] is not None:
            update_data["description"] = update_data["description"].strip() or None

        for key, value in update_data.items():
            setattr(photo, key, value)
        photo.updated_at = get_utc_time()

        await db.flush()
        await db.refresh(photo)
        logger.info(f"更新照片: id={photo_id}")
        return photo

    @staticmethod
    async def delete_photo(db: AsyncSession, photo_id: int, user_id: int) -> List[str]:
        """
        删除照片（仅所有者）

        只删除记录，返回待清理的对象路径；调用方提交事务后再删除存储文件
        """
        photo = await PhotoService.get_photo_by_id(db, photo_id, user_id)
        if not photo:
            raise NotFoundException("照片")

        paths = [path for path in (photo.storage_path, photo.thumbnail_path) if path]

        # 被删除的照片是封面时清空封面
        await db.execute(
            update(Album)
            .where(Album.cover_photo_id == photo_id)
            .values(cover_photo_id=None)
        )
        await db.delete(photo)
        await db.flush()
        logger.info(f"删除照片: id={photo_id}")
        return paths


# ==================== 互动服务 ====================

async def _get_engageable_photo(db: AsyncSession, photo_id: int, user_id: int) -> Photo:
    """可互动的照片：存在，且所属相册公开或属于自己"""
    result = await db.execute(
        select(Photo, Album.is_private, Album.user_id)
        .join(Album, Album.id == Photo.album_id)
        .where(Photo.id == photo_id)
    )
    row = result.first()
    if not row:
        raise NotFoundException("照片")
    photo, is_private, album_owner_id = row
    if is_private and album_owner_id != user_id:
        raise PermissionException("不能操作私密相册中的照片")
    return photo


class PhotoLikeService:
    """照片点赞服务"""

    @staticmethod
    async def exists(db: AsyncSession, user_id: int, photo_id: int) -> bool:
        result = await db.execute(
            select(PhotoLike.id).where(PhotoLike.user_id == user_id, PhotoLike.photo_id == photo_id)
        )
        return result.first() is not None

    @staticmethod
    async def add(db: AsyncSession, user_id: int, photo_id: int) -> bool:
        """点赞（幂等），返回是否新建"""
        await _get_engageable_photo(db, photo_id, user_id)
        if await PhotoLikeService.exists(db, user_id, photo_id):
            return False

        db.add(PhotoLike(user_id=user_id, photo_id=photo_id))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            return False
        logger.info(f"点赞照片: user_id={user_id}, photo_id={photo_id}")
        return True

    @staticmethod
    async def remove(db: AsyncSession, user_id: int, photo_id: int) -> bool:
        """取消点赞，未点赞时不做任何事"""
        result = await db.execute(
            delete(PhotoLike).where(PhotoLike.user_id == user_id, PhotoLike.photo_id == photo_id)
        )
        return (result.rowcount or 0) > 0

    @staticmethod
    async def list_by_target(
        db: AsyncSession,
        photo_id: int,
        limit: int = 20
    ) -> List[User]:
        """点赞用户，最近点赞在前"""
        result = await db.execute(
            select(User)
            .join(PhotoLike, PhotoLike.user_id == User.id)
            .where(PhotoLike.photo_id == photo_id)
            .order_by(PhotoLike.created_at.desc(), PhotoLike.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class PhotoCommentService:
    """照片评论服务"""

    @staticmethod
    async def add_comment(db: AsyncSession, user_id: int, photo_id: int, content: str) -> PhotoComment:
        """发表评论"""
        await _get_engageable_photo(db, photo_id, user_id)
        content = (content or "").strip()
        if not content:
            raise ValidationException("评论内容不能为空")

        comment = PhotoComment(user_id=user_id, photo_id=photo_id, content=content)
        db.add(comment)
        await db.flush()
        await db.refresh(comment)
        logger.info(f"发表评论: id={comment.id}, photo_id={photo_id}, user_id={user_id}")
        return comment

    @staticmethod
    async def delete_comment(db: AsyncSession, comment_id: int, user_id: int) -> None:
        """删除评论（仅作者）"""
        result = await db.execute(
            select(PhotoComment).where(PhotoComment.id == comment_id, PhotoComment.user_id == user_id)
        )
        comment = result.scalar_one_or_none()
        if not comment:
            raise NotFoundException("评论")

        await db.delete(comment)
        await db.flush()
        logger.info(f"删除评论: id={comment_id}")

    @staticmethod
    async def list_by_target(
        db: AsyncSession,
        photo_id: int,
        limit: int = 50
    ) -> List[dict]:
        """照片评论，按时间正序"""
        result = await db.execute(
            select(PhotoComment, User)
            .join(User, User.id == PhotoComment.user_id)
            .where(PhotoComment.photo_id == photo_id)
            .order_by(PhotoComment.created_at.asc(), PhotoComment.id.asc())
            .limit(limit)
        )
        items = []
        for comment, author in result.all():
            data = CommentResponse.model_validate(comment).model_dump()
            data["user"] = UserBrief.model_validate(author).model_dump()
            items.append(data)
        return items


class PhotoBookmarkService:
    """照片收藏服务"""

    @staticmethod
    async def exists(db: AsyncSession, user_id: int, photo_id: int) -> bool:
        result = await db.execute(
            select(PhotoBookmark.id).where(PhotoBookmark.user_id == user_id, PhotoBookmark.photo_id == photo_id)
        )
        return result.first() is not None

    @staticmethod
    async def add(db: AsyncSession, user_id: int, photo_id: int) -> bool:
        """收藏照片（幂等），返回是否新建"""
        await _get_engageable_photo(db, photo_id, user_id)
        if await PhotoBookmarkService.exists(db, user_id, photo_id):
            return False

        db.add(PhotoBookmark(user_id=user_id, photo_id=photo_id))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            return False
        logger.info(f"收藏照片: user_id={user_id}, photo_id={photo_id}")
        return True

    @staticmethod
    async def remove(db: AsyncSession, user_id: int, photo_id: int) -> bool:
        """取消收藏"""
        result = await db.execute(
            delete(PhotoBookmark).where(PhotoBookmark.user_id == user_id, PhotoBookmark.photo_id == photo_id)
        )
        return (result.rowcount or 0) > 0

    @staticmethod
    async def list_by_user(db: AsyncSession, user_id: int) -> List[Tuple[Photo, User]]:
        """用户收藏的照片（仍然可见的），最近收藏在前"""
        result = await db.execute(
            select(Photo, User).execution_options(populate_existing=True)
            .join(PhotoBookmark, PhotoBookmark.photo_id == Photo.id)
            .join(Album, Album.id == Photo.album_id)
            .join(User, User.id == Photo.user_id)
            .where(PhotoBookmark.user_id == user_id, photo_visible_to(user_id))
            .order_by(PhotoBookmark.created_at.desc(), PhotoBookmark.id.desc())
        )
        return [(photo, owner) for photo, owner in result.all()]

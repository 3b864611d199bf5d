"""
相册模块数据模型
定义数据库表结构
"""

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Float, ForeignKey,
    UniqueConstraint, select, func
)
from sqlalchemy.orm import column_property

from core.database import Base
from utils.timezone import get_utc_time


class Album(Base):
    """
    相册数据表
    私密相册仅所有者可见
    """
    __tablename__ = "albums"
    __table_args__ = {'extend_existing': True, 'comment': '相册表'}

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="所属用户ID")

    title = Column(String(100), nullable=False, comment="相册标题")
    description = Column(Text, nullable=True, comment="相册描述")
    cover_photo_id = Column(Integer, nullable=True, comment="封面照片ID")

    # 状态字段
    is_private = Column(Boolean, nullable=False, default=False, comment="是否私密")

    # 时间戳
    created_at = Column(DateTime(timezone=True), default=get_utc_time, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), default=get_utc_time, onupdate=get_utc_time, index=True, comment="更新时间")

    def __repr__(self):
        return f"<Album(id={self.id}, title={self.title})>"


class Photo(Base):
    """
    照片数据表
    可见性跟随所属相册
    """
    __tablename__ = "photos"
    __table_args__ = {'extend_existing': True, 'comment': '照片表'}

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    album_id = Column(Integer, ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True, comment="所属相册ID")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="所属用户ID")

    title = Column(String(200), nullable=False, comment="照片标题")
    description = Column(Text, nullable=True, comment="照片描述")

    # 文件信息
    url = Column(String(500), nullable=False, comment="照片公开地址")
    thumbnail_url = Column(String(500), nullable=True, comment="缩略图公开地址")
    storage_path = Column(String(500), nullable=False, comment="存储路径")
    thumbnail_path = Column(String(500), nullable=True, comment="缩略图存储路径")

    # 图片元信息
    aspect_ratio = Column(Float, nullable=True, comment="宽高比")
    width = Column(Integer, nullable=True, comment="图片宽度")
    height = Column(Integer, nullable=True, comment="图片高度")
    file_size = Column(Integer, nullable=True, comment="文件大小(字节)")
    mime_type = Column(String(50), nullable=True, comment="MIME类型")

    # 时间戳
    created_at = Column(DateTime(timezone=True), default=get_utc_time, comment="上传时间")
    updated_at = Column(DateTime(timezone=True), default=get_utc_time, onupdate=get_utc_time, index=True, comment="更新时间")

    def __repr__(self):
        return f"<Photo(id={self.id}, title={self.title})>"


class AlbumBookmark(Base):
    """相册收藏表"""
    __tablename__ = "album_bookmarks"
    __table_args__ = (
        UniqueConstraint("album_id", "user_id", name="uq_album_bookmark"),
        {'extend_existing': True, 'comment': '相册收藏表'}
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    album_id = Column(Integer, ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True, comment="相册ID")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="用户ID")
    created_at = Column(DateTime(timezone=True), default=get_utc_time, comment="收藏时间")


# 派生字段：照片数量与封面地址由数据库在查询时计算
Album.photo_count = column_property(
    select(func.count(Photo.id))
    .where(Photo.album_id == Album.id)
    .correlate_except(Photo)
    .scalar_subquery()
)

Album.cover_url = column_property(
    select(Photo.thumbnail_url)
    .where(Photo.id == Album.cover_photo_id)
    .correlate_except(Photo)
    .scalar_subquery()
)

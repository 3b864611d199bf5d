"""
照片互动数据模型
点赞、评论、照片收藏
"""

from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, UniqueConstraint

from core.database import Base
from utils.timezone import get_utc_time


class PhotoLike(Base):
    """照片点赞表，每个用户对每张照片至多一条"""
    __tablename__ = "photo_likes"
    __table_args__ = (
        UniqueConstraint("photo_id", "user_id", name="uq_photo_like"),
        {'extend_existing': True, 'comment': '照片点赞表'}
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    photo_id = Column(Integer, ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True, comment="照片ID")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="用户ID")
    created_at = Column(DateTime(timezone=True), default=get_utc_time, comment="点赞时间")

    def __repr__(self):
        return f"<PhotoLike(photo_id={self.photo_id}, user_id={self.user_id})>"


class PhotoComment(Base):
    """照片评论表"""
    __tablename__ = "photo_comments"
    __table_args__ = {'extend_existing': True, 'comment': '照片评论表'}

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    photo_id = Column(Integer, ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True, comment="照片ID")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="作者ID")
    content = Column(Text, nullable=False, comment="评论内容")
    created_at = Column(DateTime(timezone=True), default=get_utc_time, comment="评论时间")

    def __repr__(self):
        return f"<PhotoComment(id={self.id}, photo_id={self.photo_id})>"


class PhotoBookmark(Base):
    """照片收藏表"""
    __tablename__ = "photo_bookmarks"
    __table_args__ = (
        UniqueConstraint("photo_id", "user_id", name="uq_photo_bookmark"),
        {'extend_existing': True, 'comment': '照片收藏表'}
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    photo_id = Column(Integer, ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True, comment="照片ID")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="用户ID")
    created_at = Column(DateTime(timezone=True), default=get_utc_time, comment="收藏时间")

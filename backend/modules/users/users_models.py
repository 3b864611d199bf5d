"""
用户关注数据模型
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint

from core.database import Base
from utils.timezone import get_utc_time


class UserFollow(Base):
    """用户关注表，每个有序用户对至多一条"""
    __tablename__ = "user_follows"
    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_user_follow"),
        CheckConstraint("follower_id <> following_id", name="ck_user_follow_not_self"),
        {'extend_existing': True, 'comment': '用户关注表'}
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    follower_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="关注者ID")
    following_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="被关注者ID")
    created_at = Column(DateTime(timezone=True), default=get_utc_time, comment="关注时间")

    def __repr__(self):
        return f"<UserFollow(follower_id={self.follower_id}, following_id={self.following_id})>"

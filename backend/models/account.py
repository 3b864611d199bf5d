"""
账户数据模型
本地用户表，与身份提供方的主体一一对应
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from utils.timezone import get_utc_time


class User(Base):
    """用户表"""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)  # 身份提供方主体ID
    username: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(255))
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=get_utc_time)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=get_utc_time, onupdate=get_utc_time)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"

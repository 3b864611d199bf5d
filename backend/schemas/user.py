"""
用户相关数据验证
"""

import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.timezone import ensure_utc


USERNAME_REGEX = re.compile(r"[A-Za-z0-9_.]{3,30}")


class UserBrief(BaseModel):
    """用户简要信息（作者、点赞者、关注者等）"""
    id: int
    username: str
    name: str
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserInfo(UserBrief):
    """用户信息"""
    email: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class UserStats(BaseModel):
    """用户统计"""
    album_count: int = 0
    photo_count: int = 0
    following_count: int = 0
    followers_count: int = 0


class UserUpdate(BaseModel):
    """更新个人资料"""
    username: Optional[str] = Field(None, description="用户名，3-30位字母、数字、下划线或点")
    name: Optional[str] = Field(None, max_length=100, description="显示名称")
    avatar_url: Optional[str] = Field(None, max_length=500, description="头像地址")

    @field_validator("username")
    @classmethod
    def _check_username(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        if not USERNAME_REGEX.fullmatch(value):
            raise ValueError("用户名只能包含字母、数字、下划线或点，长度 3-30")
        return value

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("显示名称不能为空")
        return value


class FollowRequest(BaseModel):
    """关注请求"""
    target_user_id: int = Field(..., alias="targetUserId", description="被关注用户ID")

    model_config = ConfigDict(populate_by_name=True)

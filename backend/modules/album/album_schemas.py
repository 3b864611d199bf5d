"""
相册模块数据验证
定义请求/响应的数据结构
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.timezone import ensure_utc


# ==================== 相册模型 ====================

class AlbumCreate(BaseModel):
    """
    创建相册请求

    标题去除首尾空白后不能为空，空描述统一存为 None，默认公开
    """
    title: str = Field(..., max_length=100, description="相册标题")
    description: Optional[str] = Field(None, description="相册描述")
    is_private: bool = Field(False, description="是否私密")

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("相册标题不能为空")
        return value

    @field_validator("description")
    @classmethod
    def _blank_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class AlbumUpdate(BaseModel):
    """更新相册请求（只更新传入的字段）"""
    title: Optional[str] = Field(None, max_length=100, description="相册标题")
    description: Optional[str] = Field(None, description="相册描述")
    is_private: Optional[bool] = Field(None, description="是否私密")
    cover_photo_id: Optional[int] = Field(None, description="封面照片ID")

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("相册标题不能为空")
        return value


class AlbumResponse(BaseModel):
    """相册响应模型"""
    id: int = Field(..., description="相册ID")
    user_id: int = Field(..., description="用户ID")
    title: str = Field(..., description="相册标题")
    description: Optional[str] = Field(None, description="相册描述")
    is_private: bool = Field(False, description="是否私密")
    cover_photo_id: Optional[int] = Field(None, description="封面照片ID")
    cover_url: Optional[str] = Field(None, description="封面图片URL")
    photo_count: int = Field(0, description="照片数量")
    created_at: datetime = Field(..., description="创建时间")
    updated_at: datetime = Field(..., description="更新时间")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class AlbumBookmarkRequest(BaseModel):
    """收藏相册请求"""
    album_id: int = Field(..., alias="albumId", description="相册ID")

    model_config = ConfigDict(populate_by_name=True)

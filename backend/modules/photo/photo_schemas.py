"""
照片模块数据验证
定义请求/响应的数据结构
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.timezone import ensure_utc

from schemas.user import UserBrief

COMMENT_MAX_LENGTH = 2000
DEFAULT_BATCH_TITLE = "Untitled Photo"


# ==================== 照片模型 ====================

class PhotoUpdate(BaseModel):
    """更新照片请求（只更新传入的字段）"""
    title: Optional[str] = Field(None, max_length=200, description="照片标题")
    description: Optional[str] = Field(None, description="照片描述")

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("照片标题不能为空")
        return value


class PhotoResponse(BaseModel):
    """照片响应模型"""
    id: int = Field(..., description="照片ID")
    album_id: int = Field(..., description="所属相册ID")
    user_id: int = Field(..., description="用户ID")
    title: str = Field(..., description="照片标题")
    description: Optional[str] = Field(None, description="照片描述")
    url: str = Field(..., description="照片URL")
    thumbnail_url: Optional[str] = Field(None, description="缩略图URL")
    aspect_ratio: Optional[float] = Field(None, description="宽高比")
    width: Optional[int] = Field(None, description="图片宽度")
    height: Optional[int] = Field(None, description="图片高度")
    file_size: Optional[int] = Field(None, description="文件大小")
    mime_type: Optional[str] = Field(None, description="MIME类型")
    created_at: datetime = Field(..., description="上传时间")
    updated_at: datetime = Field(..., description="更新时间")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class PhotoStats(BaseModel):
    """照片统计"""
    likes_count: int = 0
    comments_count: int = 0


class BatchUploadResult(BaseModel):
    """批量上传结果"""
    success: bool
    uploaded: int
    failed: int
    photos: List[PhotoResponse] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


# ==================== 互动模型 ====================

class PhotoTargetRequest(BaseModel):
    """点赞/收藏请求"""
    photo_id: int = Field(..., alias="photoId", description="照片ID")

    model_config = ConfigDict(populate_by_name=True)


class CommentCreate(BaseModel):
    """发表评论请求"""
    photo_id: int = Field(..., alias="photoId", description="照片ID")
    content: str = Field(..., description="评论内容")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("content")
    @classmethod
    def _check_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("评论内容不能为空")
        if len(value) > COMMENT_MAX_LENGTH:
            raise ValueError(f"评论内容不能超过 {COMMENT_MAX_LENGTH} 字")
        return value


class CommentResponse(BaseModel):
    """评论响应"""
    id: int
    photo_id: int
    user_id: int
    content: str
    created_at: datetime
    user: Optional[UserBrief] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

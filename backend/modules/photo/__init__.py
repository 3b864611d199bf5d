"""
照片模块
上传、点赞、评论、收藏
"""

from .photo_models import PhotoLike, PhotoComment, PhotoBookmark
from .photo_services import PhotoService, PhotoLikeService, PhotoCommentService, PhotoBookmarkService

__all__ = [
    "PhotoLike", "PhotoComment", "PhotoBookmark",
    "PhotoService", "PhotoLikeService", "PhotoCommentService", "PhotoBookmarkService",
]

"""
相册模块
"""

from .album_models import Album, Photo, AlbumBookmark
from .album_services import AlbumService, AlbumBookmarkService

__all__ = ["Album", "Photo", "AlbumBookmark", "AlbumService", "AlbumBookmarkService"]

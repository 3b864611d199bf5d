"""
搜索模块
"""

from .search_services import SearchService

__all__ = ["SearchService"]

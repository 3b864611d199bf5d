"""
工具函数目录
按功能分类组织
"""

from .timezone import get_utc_time, ensure_utc

__all__ = [
    # 时间
    "get_utc_time",
    "ensure_utc",
]

"""
数据验证模式目录
"""

from .user import UserBrief, UserInfo, UserStats, UserUpdate, FollowRequest
from .response import success

__all__ = [
    # 用户
    "UserBrief", "UserInfo", "UserStats", "UserUpdate", "FollowRequest",
    # 响应
    "success",
]

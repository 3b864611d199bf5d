"""
用户模块
"""

from .users_models import UserFollow
from .users_services import UserService, FollowService

__all__ = ["UserFollow", "UserService", "FollowService"]

"""
路由目录
"""

from . import health, webhooks

__all__ = ["health", "webhooks"]

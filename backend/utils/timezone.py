# -*- coding: utf-8 -*-
"""
时区工具模块
数据库统一存储 UTC 时间
"""

from datetime import datetime, timezone


def get_utc_time() -> datetime:
    """
    获取当前 UTC 时间

    Returns:
        datetime: 带有 UTC 时区信息的当前时间
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    补全时区信息

    SQLite 读回的时间不带时区，按 UTC 处理

    Args:
        dt: 待处理的时间对象

    Returns:
        datetime: UTC 时间
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

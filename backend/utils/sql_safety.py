# -*- coding: utf-8 -*-
"""
安全校验工具
关键词模糊查询的 LIKE 转义
"""

LIKE_ESCAPE_CHAR = "\\"


def escape_like(keyword: str) -> str:
    """
    转义 LIKE 通配符

    反斜杠、%、_ 按字面量匹配，查询时需配合 escape=LIKE_ESCAPE_CHAR
    """
    return (
        keyword
        .replace(LIKE_ESCAPE_CHAR, LIKE_ESCAPE_CHAR * 2)
        .replace("%", LIKE_ESCAPE_CHAR + "%")
        .replace("_", LIKE_ESCAPE_CHAR + "_")
    )


def contains_pattern(keyword: str) -> str:
    """子串匹配模式：%关键词%"""
    return f"%{escape_like(keyword)}%"

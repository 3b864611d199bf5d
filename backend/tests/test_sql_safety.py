"""
SQL 安全校验工具单元测试
覆盖：LIKE 通配符转义
"""

from utils.sql_safety import escape_like, contains_pattern


class TestEscapeLike:
    """LIKE 转义测试"""

    def test_plain_keyword_unchanged(self):
        assert escape_like("sunset") == "sunset"

    def test_wildcards_escaped(self):
        assert escape_like("100%") == "100\\%"
        assert escape_like("a_b") == "a\\_b"

    def test_backslash_escaped_first(self):
        assert escape_like("a\\%") == "a\\\\\\%"

    def test_contains_pattern(self):
        assert contains_pattern("_") == "%\\_%"

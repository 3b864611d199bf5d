"""
数据库核心模块单元测试
"""

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import Base, get_db


@pytest.mark.asyncio
class TestDatabase:
    """数据库功能测试"""

    async def test_engine_connection(self, db_session):
        result = await db_session.execute(text("SELECT 1"))
        assert result.scalar() == 1

    async def test_all_tables_registered(self, test_engine):
        tables = set(Base.metadata.tables)
        assert {
            "users", "user_follows", "albums", "photos", "album_bookmarks",
            "photo_likes", "photo_comments", "photo_bookmarks"
        } <= tables

    async def test_foreign_keys_enabled(self, db_session):
        result = await db_session.execute(text("PRAGMA foreign_keys"))
        assert result.scalar() == 1

    async def test_get_db_override(self, client):
        """测试环境下 get_db 被替换为测试会话"""
        from main import app

        gen = app.dependency_overrides[get_db]()
        async for session in gen:
            assert isinstance(session, AsyncSession)
            break

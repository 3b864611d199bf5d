"""
搜索模块测试
"""

import pytest
from httpx import AsyncClient

from core.errors import ValidationException
from modules.album.album_schemas import AlbumCreate
from modules.album.album_services import AlbumService
from modules.photo.photo_services import PhotoService
from modules.search.search_services import SearchService, ALL_SECTION_LIMIT
from tests.test_conftest import auth_headers, create_user, png_bytes


async def _seed(db, storage):
    """一个公开相册、一个私密相册，各有标题含 sunset 的照片"""
    owner = await create_user(db, "owner", username="sunset_lover", name="Owner")
    public = await AlbumService.create_album(db, owner.id, AlbumCreate(title="Sunset Beach"))
    secret = await AlbumService.create_album(db, owner.id, AlbumCreate(title="Sunset Secret", is_private=True))
    await PhotoService.create_photo(db, owner.id, public.id, "Golden sunset", png_bytes(), storage)
    await PhotoService.create_photo(db, owner.id, secret.id, "Private sunset", png_bytes(), storage)
    await db.commit()
    return owner


@pytest.mark.asyncio
class TestSearchService:
    """搜索服务测试"""

    async def test_blank_keyword_rejected(self, db):
        with pytest.raises(ValidationException):
            await SearchService.search(db, "   ")
        with pytest.raises(ValidationException):
            await SearchService.search(db, None)

    async def test_unknown_type_rejected(self, db):
        with pytest.raises(ValidationException):
            await SearchService.search(db, "sunset", "videos")

    async def test_all_sections(self, db, storage):
        await _seed(db, storage)
        data = await SearchService.search(db, "  SUNSET ")

        assert data["query"] == "SUNSET"
        assert set(data["results"]) == {"users", "albums", "photos"}
        assert [u["username"] for u in data["results"]["users"]] == ["sunset_lover"]
        assert [a["title"] for a in data["results"]["albums"]] == ["Sunset Beach"]
        assert [p["title"] for p in data["results"]["photos"]] == ["Golden sunset"]
        assert "total" not in data

    async def test_owner_sees_private_matches(self, db, storage):
        owner = await _seed(db, storage)
        data = await SearchService.search(db, "sunset", "photos", owner.id)

        assert data["total"] == 2
        assert {p["title"] for p in data["results"]["photos"]} == {"Golden sunset", "Private sunset"}

    async def test_all_sections_capped(self, db, storage):
        owner = await create_user(db, "owner")
        for i in range(ALL_SECTION_LIMIT + 2):
            await AlbumService.create_album(db, owner.id, AlbumCreate(title=f"Mountain {i}"))
        await db.commit()

        data = await SearchService.search(db, "mountain")
        assert len(data["results"]["albums"]) == ALL_SECTION_LIMIT

    async def test_single_type_pagination(self, db):
        owner = await create_user(db, "owner")
        for i in range(5):
            await AlbumService.create_album(db, owner.id, AlbumCreate(title=f"Lake {i}"))
        await db.commit()

        first = await SearchService.search(db, "lake", "albums", limit=2, page=1)
        last = await SearchService.search(db, "lake", "albums", limit=2, page=3)

        assert first["total"] == 5
        assert (first["page"], first["limit"]) == (1, 2)
        assert len(first["results"]["albums"]) == 2
        assert len(last["results"]["albums"]) == 1


@pytest.mark.asyncio
class TestSearchApi:
    """搜索接口测试"""

    async def test_search_requires_query(self, client: AsyncClient):
        assert (await client.get("/api/search")).status_code == 400
        assert (await client.get("/api/search?query=%20")).status_code == 400

    async def test_search_bad_type(self, client: AsyncClient):
        resp = await client.get("/api/search?query=x&type=videos")
        assert resp.status_code == 400

    async def test_anonymous_search_hides_private(self, client: AsyncClient, db, storage):
        await _seed(db, storage)
        resp = await client.get("/api/search?query=sunset&type=albums")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["total"] == 1
        assert data["results"]["albums"][0]["title"] == "Sunset Beach"

    async def test_other_user_search_hides_private(self, client: AsyncClient, db, storage):
        await _seed(db, storage)
        resp = await client.get("/api/search?query=sunset&type=photos", headers=auth_headers("user_other"))

        data = resp.json()["data"]
        assert [p["title"] for p in data["results"]["photos"]] == ["Golden sunset"]

    async def test_wildcards_are_literal(self, client: AsyncClient, db, storage):
        owner = await create_user(db, "owner", username="plain", name="Plain")
        album = await AlbumService.create_album(db, owner.id, AlbumCreate(title="Summer trip"))
        await AlbumService.create_album(db, owner.id, AlbumCreate(title="Winter"))
        await PhotoService.create_photo(db, owner.id, album.id, "Beach", png_bytes(), storage)
        await db.commit()

        for query in ("_", "%25"):
            for kind in ("albums", "photos", "users"):
                resp = await client.get(f"/api/search?query={query}&type={kind}")
                assert resp.status_code == 200
                assert resp.json()["data"]["total"] == 0

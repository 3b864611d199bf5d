"""
照片模块测试
覆盖：上传、批量上传、更新删除、点赞、评论、收藏
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from core.errors import (
    AppException, NotFoundException, PermissionException, ValidationException, UpstreamException, ErrorCode
)
from modules.album.album_schemas import AlbumCreate, AlbumUpdate
from modules.album.album_services import AlbumService
from modules.photo.photo_schemas import CommentCreate, DEFAULT_BATCH_TITLE
from modules.photo.photo_services import (
    PhotoService, PhotoLikeService, PhotoCommentService, PhotoBookmarkService,
    extract_image_info, make_thumbnail
)
from tests.test_conftest import auth_headers, create_user, png_bytes


class TestImageHelpers:
    """图片处理测试"""

    def test_extract_image_info(self):
        width, height, ratio = extract_image_info(png_bytes(size=(80, 40)))
        assert (width, height) == (80, 40)
        assert ratio == 2.0

    def test_extract_image_info_invalid(self):
        assert extract_image_info(b"not an image") is None

    def test_make_thumbnail(self):
        thumb = make_thumbnail(png_bytes(size=(1200, 600)))
        assert thumb[:3] == b"\xff\xd8\xff"
        assert extract_image_info(thumb)[:2] == (300, 150)
        assert make_thumbnail(b"garbage") is None

    def test_comment_validation(self):
        assert CommentCreate(photoId=1, content="  nice  ").content == "nice"
        with pytest.raises(ValueError):
            CommentCreate(photoId=1, content="   ")
        with pytest.raises(ValueError):
            CommentCreate(photoId=1, content="x" * 2001)


async def _setup_album(db, subject="owner", is_private=False):
    owner = await create_user(db, subject)
    album = await AlbumService.create_album(db, owner.id, AlbumCreate(title="Album", is_private=is_private))
    await db.commit()
    return owner, album


@pytest.mark.asyncio
class TestPhotoService:
    """照片服务测试"""

    async def test_create_photo(self, db, storage):
        owner, album = await _setup_album(db)
        photo = await PhotoService.create_photo(
            db, owner.id, album.id, "  Sunset ", png_bytes(size=(64, 32)), storage, description="  "
        )
        await db.commit()

        assert photo.title == "Sunset"
        assert photo.description is None
        assert photo.mime_type == "image/png"
        assert (photo.width, photo.height, photo.aspect_ratio) == (64, 32, 2.0)
        assert photo.url == storage.get_public_url(photo.storage_path)
        assert photo.thumbnail_path.endswith("_thumb.jpg")
        assert photo.storage_path.startswith(f"{owner.id}/{album.id}/")
        assert storage.exists(photo.storage_path)
        assert storage.exists(photo.thumbnail_path)

    async def test_create_photo_in_foreign_album(self, db, storage):
        _, album = await _setup_album(db)
        intruder = await create_user(db, "intruder")
        with pytest.raises(NotFoundException):
            await PhotoService.create_photo(db, intruder.id, album.id, "Pic", png_bytes(), storage)

    async def test_create_photo_rejects_bad_input(self, db, storage):
        owner, album = await _setup_album(db)
        with pytest.raises(ValidationException):
            await PhotoService.create_photo(db, owner.id, album.id, "   ", png_bytes(), storage)
        with pytest.raises(AppException) as exc_info:
            await PhotoService.create_photo(db, owner.id, album.id, "Doc", b"plain text file", storage)
        assert exc_info.value.code == ErrorCode.FILE_TYPE_NOT_ALLOWED

    async def test_failed_insert_removes_uploaded_files(self, db, storage, monkeypatch):
        owner, album = await _setup_album(db)
        owner_id, album_id = owner.id, album.id

        async def _failing_flush(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(db, "flush", _failing_flush)
        with pytest.raises(UpstreamException) as exc_info:
            await PhotoService.create_photo(db, owner_id, album_id, "Pic", png_bytes(), storage)

        assert exc_info.value.code == ErrorCode.DATABASE_ERROR
        assert [p for p in storage.bucket_dir.rglob("*") if p.is_file()] == []

    async def test_batch_upload_partial_failure(self, db, storage):
        owner, album = await _setup_album(db)
        album_id = album.id
        files = [
            ("a.png", png_bytes()),
            ("notes.txt", b"not an image"),
            ("b.png", png_bytes(size=(10, 20))),
        ]
        result = await PhotoService.batch_upload(db, owner.id, album_id, files, storage)

        assert result["success"] is False
        assert result["uploaded"] == 2
        assert result["failed"] == 1
        assert result["errors"][0].startswith("notes.txt")
        assert all(p["title"] == DEFAULT_BATCH_TITLE for p in result["photos"])
        assert result["photos"][1]["aspect_ratio"] == 0.5

        refreshed = await AlbumService.get_album_by_id(db, album_id)
        assert refreshed.photo_count == 2

    async def test_batch_upload_unreadable_size_still_uploads(self, db, storage):
        owner, album = await _setup_album(db)
        # PNG 文件头正确，但后续数据损坏，无法读取尺寸
        broken = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
        files = [("ok.png", png_bytes(size=(40, 30))), ("broken.png", broken)]
        result = await PhotoService.batch_upload(db, owner.id, album.id, files, storage)

        assert (result["uploaded"], result["failed"]) == (2, 0)
        assert [p["aspect_ratio"] for p in result["photos"]] == [1.3333, None]
        assert result["photos"][1]["thumbnail_url"] == result["photos"][1]["url"]

    async def test_batch_upload_foreign_album_fails_every_item(self, db, storage):
        _, album = await _setup_album(db)
        intruder = await create_user(db, "intruder")
        result = await PhotoService.batch_upload(
            db, intruder.id, album.id, [("a.png", png_bytes()), ("b.png", png_bytes())], storage,
            default_title="Mine now"
        )
        assert result["uploaded"] == 0
        assert result["failed"] == 2

    async def test_delete_photo_clears_cover(self, db, storage):
        owner, album = await _setup_album(db)
        photo = await PhotoService.create_photo(db, owner.id, album.id, "Cover", png_bytes(), storage)
        await AlbumService.update_album(db, album.id, AlbumUpdate(cover_photo_id=photo.id), owner.id)
        await db.commit()

        paths = await PhotoService.delete_photo(db, photo.id, owner.id)
        await db.commit()
        await storage.discard(paths, "test")

        refreshed = await AlbumService.get_album_by_id(db, album.id)
        assert refreshed.cover_photo_id is None
        assert refreshed.photo_count == 0
        assert not storage.exists(photo.storage_path)
        assert not storage.exists(photo.thumbnail_path)

    async def test_files_kept_until_delete_committed(self, db, storage):
        owner, album = await _setup_album(db)
        photo = await PhotoService.create_photo(db, owner.id, album.id, "Pic", png_bytes(), storage)
        await db.commit()
        photo_id, storage_path = photo.id, photo.storage_path

        paths = await PhotoService.delete_photo(db, photo_id, owner.id)
        assert storage_path in paths
        assert storage.exists(storage_path)

        await db.rollback()
        assert await PhotoService.get_photo_by_id(db, photo_id) is not None
        assert storage.exists(storage_path)

    async def test_discard_survives_storage_failure(self, db, storage, monkeypatch):
        owner, album = await _setup_album(db)
        photo = await PhotoService.create_photo(db, owner.id, album.id, "Pic", png_bytes(), storage)
        await db.commit()

        async def _broken_remove(paths):
            raise UpstreamException(ErrorCode.STORAGE_ERROR, "bucket offline")

        monkeypatch.setattr(storage, "remove", _broken_remove)
        paths = await PhotoService.delete_photo(db, photo.id, owner.id)
        await db.commit()
        await storage.discard(paths, "test")
        assert await PhotoService.get_photo_by_id(db, photo.id) is None


@pytest.mark.asyncio
class TestEngagement:
    """点赞、评论、收藏测试"""

    async def test_like_is_idempotent(self, db, storage):
        owner, album = await _setup_album(db)
        fan = await create_user(db, "fan")
        photo = await PhotoService.create_photo(db, owner.id, album.id, "Pic", png_bytes(), storage)
        await db.commit()

        assert await PhotoLikeService.add(db, fan.id, photo.id) is True
        assert await PhotoLikeService.add(db, fan.id, photo.id) is False
        await db.commit()

        stats = await PhotoService.get_stats(db, photo.id)
        assert stats["likes_count"] == 1
        likers = await PhotoLikeService.list_by_target(db, photo.id)
        assert [u.id for u in likers] == [fan.id]

        assert await PhotoLikeService.remove(db, fan.id, photo.id) is True
        assert await PhotoLikeService.remove(db, fan.id, photo.id) is False

    async def test_private_photo_engagement_forbidden(self, db, storage):
        owner, album = await _setup_album(db, is_private=True)
        fan = await create_user(db, "fan")
        photo = await PhotoService.create_photo(db, owner.id, album.id, "Pic", png_bytes(), storage)
        await db.commit()

        with pytest.raises(PermissionException):
            await PhotoLikeService.add(db, fan.id, photo.id)
        with pytest.raises(PermissionException):
            await PhotoCommentService.add_comment(db, fan.id, photo.id, "hi")
        with pytest.raises(PermissionException):
            await PhotoBookmarkService.add(db, fan.id, photo.id)

        assert await PhotoLikeService.add(db, owner.id, photo.id) is True

    async def test_engagement_on_missing_photo(self, db):
        fan = await create_user(db, "fan")
        with pytest.raises(NotFoundException):
            await PhotoLikeService.add(db, fan.id, 9999)

    async def test_comments(self, db, storage):
        owner, album = await _setup_album(db)
        fan = await create_user(db, "fan")
        photo = await PhotoService.create_photo(db, owner.id, album.id, "Pic", png_bytes(), storage)
        first = await PhotoCommentService.add_comment(db, fan.id, photo.id, "first")
        await PhotoCommentService.add_comment(db, owner.id, photo.id, "second")
        await db.commit()

        comments = await PhotoCommentService.list_by_target(db, photo.id)
        assert [c["content"] for c in comments] == ["first", "second"]
        assert comments[0]["user"]["username"] == "fan"

        with pytest.raises(NotFoundException):
            await PhotoCommentService.delete_comment(db, first.id, owner.id)
        await PhotoCommentService.delete_comment(db, first.id, fan.id)
        await db.commit()
        assert len(await PhotoCommentService.list_by_target(db, photo.id)) == 1

    async def test_deleting_photo_cascades_engagement(self, db, storage):
        owner, album = await _setup_album(db)
        fan = await create_user(db, "fan")
        photo = await PhotoService.create_photo(db, owner.id, album.id, "Pic", png_bytes(), storage)
        await PhotoLikeService.add(db, fan.id, photo.id)
        await PhotoBookmarkService.add(db, fan.id, photo.id)
        await PhotoCommentService.add_comment(db, fan.id, photo.id, "nice")
        await db.commit()

        await PhotoService.delete_photo(db, photo.id, owner.id)
        await db.commit()

        assert await PhotoLikeService.exists(db, fan.id, photo.id) is False
        assert await PhotoBookmarkService.exists(db, fan.id, photo.id) is False
        assert await PhotoCommentService.list_by_target(db, photo.id) == []


@pytest.mark.asyncio
class TestPhotoApi:
    """照片接口测试"""

    async def _create_album(self, client, headers, **extra) -> int:
        resp = await client.post("/api/albums", json={"title": "Album", **extra}, headers=headers)
        return resp.json()["data"]["id"]

    async def _upload(self, client, headers, album_id, title="Pic"):
        return await client.post(
            "/api/photos/upload",
            data={"albumId": str(album_id), "title": title, "description": "desc"},
            files={"file": ("pic.png", png_bytes(), "image/png")},
            headers=headers
        )

    async def test_upload_and_detail(self, client: AsyncClient):
        owner = auth_headers("user_owner")
        album_id = await self._create_album(client, owner)

        resp = await self._upload(client, owner, album_id, title="Sunrise")
        assert resp.status_code == 200
        photo = resp.json()["data"]
        assert photo["title"] == "Sunrise"
        assert photo["url"].startswith("/storage/photos/")

        detail = await client.get(f"/api/photos/{photo['id']}")
        assert detail.status_code == 200
        body = detail.json()["data"]
        assert body["album"]["id"] == album_id
        assert body["user"]["username"] == "user_owner"
        assert body["stats"] == {"likes_count": 0, "comments_count": 0}

        album = await client.get(f"/api/albums/{album_id}")
        assert album.json()["data"]["photo_count"] == 1
        assert [p["id"] for p in album.json()["data"]["photos"]] == [photo["id"]]

    async def test_upload_rejects_non_image(self, client: AsyncClient):
        owner = auth_headers("user_owner")
        album_id = await self._create_album(client, owner)
        resp = await client.post(
            "/api/photos/upload",
            data={"albumId": str(album_id), "title": "Doc"},
            files={"file": ("doc.txt", b"hello world", "text/plain")},
            headers=owner
        )
        assert resp.status_code == 400

    async def test_upload_to_foreign_album(self, client: AsyncClient):
        album_id = await self._create_album(client, auth_headers("user_owner"))
        resp = await self._upload(client, auth_headers("user_other"), album_id)
        assert resp.status_code == 404

    async def test_batch_upload(self, client: AsyncClient):
        owner = auth_headers("user_owner")
        album_id = await self._create_album(client, owner)

        resp = await client.post(
            "/api/photos/upload/batch-upload",
            data={"albumId": str(album_id), "defaultTitle": "Trip"},
            files=[
                ("files", ("a.png", png_bytes(), "image/png")),
                ("files", ("b.txt", b"nope", "text/plain")),
                ("files[2]", ("c.png", png_bytes(), "image/png")),
            ],
            headers=owner
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["uploaded"] == 2
        assert data["failed"] == 1
        assert {p["title"] for p in data["photos"]} == {"Trip"}

    async def test_batch_upload_without_files(self, client: AsyncClient):
        owner = auth_headers("user_owner")
        album_id = await self._create_album(client, owner)
        resp = await client.post(
            "/api/photos/upload/batch-upload",
            data={"albumId": str(album_id)},
            files={"other": ("a.png", png_bytes(), "image/png")},
            headers=owner
        )
        assert resp.status_code == 400

    async def test_private_photo_hidden(self, client: AsyncClient):
        owner = auth_headers("user_owner")
        album_id = await self._create_album(client, owner, is_private=True)
        photo_id = (await self._upload(client, owner, album_id)).json()["data"]["id"]

        assert (await client.get(f"/api/photos/{photo_id}", headers=owner)).status_code == 200
        assert (await client.get(f"/api/photos/{photo_id}", headers=auth_headers("user_other"))).status_code == 404
        assert (await client.get("/api/photos")).json()["data"] == []

        resp = await client.post("/api/photos/like", json={"photoId": photo_id}, headers=auth_headers("user_other"))
        assert resp.status_code == 403

    async def test_update_and_delete(self, client: AsyncClient, storage):
        owner = auth_headers("user_owner")
        album_id = await self._create_album(client, owner)
        photo_id = (await self._upload(client, owner, album_id)).json()["data"]["id"]

        other = auth_headers("user_other")
        assert (await client.patch(f"/api/photos/{photo_id}", json={"title": "X"}, headers=other)).status_code == 404

        resp = await client.patch(f"/api/photos/{photo_id}", json={"title": "Renamed"}, headers=owner)
        assert resp.json()["data"]["title"] == "Renamed"

        mine = await client.get("/api/photos/my", headers=owner)
        assert [p["title"] for p in mine.json()["data"]] == ["Renamed"]

        assert (await client.delete(f"/api/photos/{photo_id}", headers=owner)).status_code == 200
        assert (await client.get(f"/api/photos/{photo_id}")).status_code == 404
        assert [p for p in storage.bucket_dir.rglob("*") if p.is_file()] == []

    async def test_like_flow(self, client: AsyncClient):
        owner = auth_headers("user_owner")
        fan = auth_headers("user_fan")
        album_id = await self._create_album(client, owner)
        photo_id = (await self._upload(client, owner, album_id)).json()["data"]["id"]

        assert (await client.post("/api/photos/like", json={"photoId": photo_id}, headers=fan)).status_code == 200
        assert (await client.post("/api/photos/like", json={"photoId": photo_id}, headers=fan)).status_code == 200

        status_resp = await client.get(f"/api/photos/like?photoId={photo_id}&getLikes=true", headers=fan)
        data = status_resp.json()["data"]
        assert data["isLiked"] is True
        assert data["likesCount"] == 1
        assert [u["username"] for u in data["likes"]] == ["user_fan"]

        anonymous = await client.get(f"/api/photos/like?photoId={photo_id}")
        assert anonymous.json()["data"]["isLiked"] is False

        assert (await client.delete(f"/api/photos/like?photoId={photo_id}", headers=fan)).status_code == 200
        status_resp = await client.get(f"/api/photos/like?photoId={photo_id}", headers=fan)
        assert status_resp.json()["data"] == {"isLiked": False, "likesCount": 0}

    async def test_comment_flow(self, client: AsyncClient):
        owner = auth_headers("user_owner")
        fan = auth_headers("user_fan")
        album_id = await self._create_album(client, owner)
        photo_id = (await self._upload(client, owner, album_id)).json()["data"]["id"]

        resp = await client.post("/api/photos/comments", json={"photoId": photo_id, "content": "Lovely"}, headers=fan)
        assert resp.status_code == 200
        comment_id = resp.json()["data"]["id"]

        blank = await client.post("/api/photos/comments", json={"photoId": photo_id, "content": " "}, headers=fan)
        assert blank.status_code == 400

        listing = await client.get(f"/api/photos/comments?photoId={photo_id}")
        assert [c["content"] for c in listing.json()["data"]] == ["Lovely"]

        assert (await client.delete(f"/api/photos/comments?id={comment_id}", headers=owner)).status_code == 404
        assert (await client.delete(f"/api/photos/comments?id={comment_id}", headers=fan)).status_code == 200

    async def test_bookmark_flow(self, client: AsyncClient):
        owner = auth_headers("user_owner")
        fan = auth_headers("user_fan")
        album_id = await self._create_album(client, owner)
        photo_id = (await self._upload(client, owner, album_id)).json()["data"]["id"]

        assert (await client.post("/api/photos/bookmark", json={"photoId": photo_id}, headers=fan)).status_code == 200
        status_resp = await client.get(f"/api/photos/bookmark?photoId={photo_id}", headers=fan)
        assert status_resp.json()["data"]["isBookmarked"] is True

        listing = await client.get("/api/photos/bookmark", headers=fan)
        assert [p["id"] for p in listing.json()["data"]] == [photo_id]

        assert (await client.delete(f"/api/photos/bookmark?photoId={photo_id}", headers=fan)).status_code == 200
        listing = await client.get("/api/photos/bookmark", headers=fan)
        assert listing.json()["data"] == []

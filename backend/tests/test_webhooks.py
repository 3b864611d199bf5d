"""
身份提供方 Webhook 接口测试
"""

import json
import time

import pytest
from httpx import AsyncClient

from core.config import get_settings
from core.identity import IdentityBridge
from core.security import sign_webhook_payload
from tests.test_conftest import create_user

URL = "/api/webhooks/clerk"


def _user_data(subject="user_wh", email="hook@example.com", **extra) -> dict:
    data = {
        "id": subject,
        "email_addresses": [{"id": "idn_1", "email_address": email}],
        "primary_email_address_id": "idn_1",
        "username": None,
        "first_name": "Hook",
        "last_name": "User",
        "image_url": "http://img/hook.png",
    }
    data.update(extra)
    return data


def _signed(payload: dict, msg_id: str = "msg_test"):
    body = json.dumps(payload).encode()
    timestamp = int(time.time())
    headers = {
        "svix-id": msg_id,
        "svix-timestamp": str(timestamp),
        "svix-signature": sign_webhook_payload(get_settings().identity_webhook_secret, msg_id, timestamp, body),
        "content-type": "application/json",
    }
    return body, headers


@pytest.mark.asyncio
class TestIdentityWebhook:
    """Webhook 事件处理测试"""

    async def test_user_created(self, client: AsyncClient, db):
        body, headers = _signed({"type": "user.created", "data": _user_data()})
        resp = await client.post(URL, content=body, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["message"] == "用户已创建"
        user = await IdentityBridge.get_by_subject(db, "user_wh")
        assert user is not None
        assert user.email == "hook@example.com"
        assert user.username == "hook"
        assert user.name == "Hook User"

    async def test_user_created_twice_reports_existing(self, client: AsyncClient):
        body, headers = _signed({"type": "user.created", "data": _user_data()})
        await client.post(URL, content=body, headers=headers)
        resp = await client.post(URL, content=body, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["message"] == "用户已存在"

    async def test_primary_email_selected(self, client: AsyncClient, db):
        data = _user_data(subject="user_multi")
        data["email_addresses"] = [
            {"id": "idn_a", "email_address": "secondary@example.com"},
            {"id": "idn_b", "email_address": "primary@example.com"},
        ]
        data["primary_email_address_id"] = "idn_b"
        body, headers = _signed({"type": "user.created", "data": data})
        resp = await client.post(URL, content=body, headers=headers)

        assert resp.status_code == 200
        user = await IdentityBridge.get_by_subject(db, "user_multi")
        assert user.email == "primary@example.com"

    async def test_user_updated_refreshes_or_creates(self, client: AsyncClient, db):
        await create_user(db, "user_upd", name="Before")

        body, headers = _signed({
            "type": "user.updated",
            "data": _user_data(subject="user_upd", email="after@example.com", first_name="After", last_name=None)
        })
        resp = await client.post(URL, content=body, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["message"] == "用户已更新"

        user = await IdentityBridge.get_by_subject(db, "user_upd")
        assert user.name == "After"
        assert user.email == "after@example.com"

        body, headers = _signed({"type": "user.updated", "data": _user_data(subject="user_fresh")})
        resp = await client.post(URL, content=body, headers=headers)
        assert resp.json()["message"] == "用户已创建"

    async def test_user_deleted(self, client: AsyncClient, db):
        await create_user(db, "user_del")

        body, headers = _signed({"type": "user.deleted", "data": {"id": "user_del", "deleted": True}})
        resp = await client.post(URL, content=body, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["data"]["deleted"] is True
        assert await IdentityBridge.get_by_subject(db, "user_del") is None

    async def test_unknown_event_ignored(self, client: AsyncClient):
        body, headers = _signed({"type": "session.created", "data": {"id": "sess_1"}})
        resp = await client.post(URL, content=body, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["data"]["handled"] is False

    async def test_created_without_email_rejected(self, client: AsyncClient, db):
        body, headers = _signed({
            "type": "user.created",
            "data": _user_data(subject="user_nomail", email_addresses=[], primary_email_address_id=None)
        })
        resp = await client.post(URL, content=body, headers=headers)

        assert resp.status_code == 400
        assert await IdentityBridge.get_by_subject(db, "user_nomail") is None

    async def test_bad_signature_rejected_before_changes(self, client: AsyncClient, db):
        body, headers = _signed({"type": "user.created", "data": _user_data(subject="user_forged")})
        tampered = body.replace(b"user_forged", b"user_forgeX")
        resp = await client.post(URL, content=tampered, headers=headers)

        assert resp.status_code == 400
        assert await IdentityBridge.get_by_subject(db, "user_forgeX") is None

    async def test_missing_signature_headers(self, client: AsyncClient):
        resp = await client.post(URL, json={"type": "user.created", "data": _user_data()})
        assert resp.status_code == 400

"""
身份提供方 Webhook
同步用户的创建、更新与删除
"""

import json
import logging
from typing import Annotated, List, Literal, Optional, Union

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.errors import ValidationException
from core.identity import IdentityBridge
from core.security import IdentityClaims, verify_webhook_signature
from schemas.response import success

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhook"])


# ==================== 事件模型 ====================

class EmailAddress(BaseModel):
    id: Optional[str] = None
    email_address: str


class UserEventData(BaseModel):
    """user.created / user.updated 事件中的用户资料"""
    id: str
    email_addresses: List[EmailAddress] = []
    primary_email_address_id: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None

    def primary_email(self) -> Optional[str]:
        """主邮箱：匹配 primary_email_address_id，否则取第一个"""
        for address in self.email_addresses:
            if self.primary_email_address_id and address.id == self.primary_email_address_id:
                return address.email_address
        if self.email_addresses:
            return self.email_addresses[0].email_address
        return None

    def to_claims(self) -> IdentityClaims:
        return IdentityClaims(
            subject=self.id,
            email=self.primary_email(),
            username=self.username,
            first_name=self.first_name,
            last_name=self.last_name,
            image_url=self.image_url
        )


class DeletedObject(BaseModel):
    id: str
    deleted: bool = True


class UserCreatedEvent(BaseModel):
    type: Literal["user.created"]
    data: UserEventData


class UserUpdatedEvent(BaseModel):
    type: Literal["user.updated"]
    data: UserEventData


class UserDeletedEvent(BaseModel):
    type: Literal["user.deleted"]
    data: DeletedObject


WebhookEvent = Annotated[
    Union[UserCreatedEvent, UserUpdatedEvent, UserDeletedEvent],
    Field(discriminator="type")
]
_event_adapter = TypeAdapter(WebhookEvent)
HANDLED_EVENT_TYPES = ("user.created", "user.updated", "user.deleted")


def parse_event(body: bytes) -> Union[UserCreatedEvent, UserUpdatedEvent, UserDeletedEvent, str]:
    """
    解析事件

    Returns:
        已知事件返回事件对象，未知类型返回类型字符串
    """
    try:
        payload = json.loads(body)
    except ValueError:
        raise ValidationException("Webhook 请求体不是合法的 JSON")
    if not isinstance(payload, dict):
        raise ValidationException("Webhook 请求体格式错误")

    event_type = str(payload.get("type", ""))
    if event_type not in HANDLED_EVENT_TYPES:
        return event_type

    try:
        return _event_adapter.validate_python(payload)
    except ValidationError as e:
        raise ValidationException(
            "Webhook 事件数据格式错误",
            errors=[{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()]
        )


# ==================== 接口 ====================

@router.post("/clerk", summary="身份提供方用户事件")
async def identity_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    接收用户生命周期事件

    先校验签名，校验失败时不做任何数据变更
    """
    body = await request.body()
    verify_webhook_signature(request.headers, body)

    event = parse_event(body)
    if isinstance(event, str):
        logger.info(f"忽略未处理的 Webhook 事件: {event or '未知'}")
        return success(data={"type": event, "handled": False}, message=f"未处理的事件类型: {event}")

    logger.info(f"收到 Webhook 事件: {event.type}, subject={event.data.id}")

    if isinstance(event, UserDeletedEvent):
        deleted = await IdentityBridge.delete_by_subject(db, event.data.id)
        await db.commit()
        return success(
            data={"type": event.type, "handled": True, "deleted": deleted},
            message="用户已删除" if deleted else "用户不存在"
        )

    refresh = isinstance(event, UserUpdatedEvent)
    user, created = await IdentityBridge.sync_identity(db, event.data.to_claims(), refresh=refresh)
    await db.commit()

    if created:
        message = "用户已创建"
    elif refresh:
        message = "用户已更新"
    else:
        message = "用户已存在"
    return success(
        data={"type": event.type, "handled": True, "user_id": user.id, "username": user.username},
        message=message
    )

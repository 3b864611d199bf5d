"""
统一鉴权模块
校验身份提供方签发的会话令牌，并解析出身份断言
身份提供方 Webhook 的 svix 签名校验
"""

import json
import binascii
import logging
from datetime import datetime, timezone
from typing import Mapping, Optional
from jose import ExpiredSignatureError, JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from svix.webhooks import Webhook, WebhookVerificationError

from .config import get_settings
from .errors import AppException, AuthException, ErrorCode, WebhookSignatureException

logger = logging.getLogger(__name__)

# Bearer令牌认证（缺失时由我们自己返回 401，而不是 FastAPI 默认的 403）
security = HTTPBearer(auto_error=False)


class IdentityClaims(BaseModel):
    """身份断言（来自会话令牌或 Webhook 事件）"""
    subject: str
    email: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None


def decode_session_token(token: str) -> IdentityClaims:
    """
    解码会话令牌

    Raises:
        AuthException: 令牌过期、签名无效或缺少 sub
    """
    settings = get_settings()
    if not settings.identity_jwt_key:
        raise AuthException(ErrorCode.TOKEN_INVALID)

    options = {"verify_aud": False}
    try:
        payload = jwt.decode(
            token,
            settings.identity_jwt_key,
            algorithms=[settings.identity_jwt_algorithm],
            issuer=settings.identity_issuer,
            options=options
        )
    except ExpiredSignatureError:
        raise AuthException(ErrorCode.TOKEN_EXPIRED)
    except JWTError as e:
        logger.debug(f"会话令牌校验失败: {e}")
        raise AuthException(ErrorCode.TOKEN_INVALID)

    subject = payload.get("sub")
    if not subject:
        raise AuthException(ErrorCode.TOKEN_INVALID)

    return IdentityClaims(
        subject=subject,
        email=payload.get("email"),
        username=payload.get("username"),
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
        image_url=payload.get("image_url")
    )


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> IdentityClaims:
    """获取当前会话身份（依赖注入用）"""
    if credentials is None:
        raise AuthException()
    return decode_session_token(credentials.credentials)


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[IdentityClaims]:
    """可选身份：匿名或令牌无效时返回 None"""
    if credentials is None:
        return None
    try:
        return decode_session_token(credentials.credentials)
    except AuthException:
        return None


# ==================== Webhook 签名 ====================

def _webhook(secret: str) -> Webhook:
    if not secret:
        raise AppException(ErrorCode.CONFIG_ERROR, "未配置 IDENTITY_WEBHOOK_SECRET")
    try:
        return Webhook(secret)
    except (binascii.Error, ValueError):
        raise AppException(ErrorCode.CONFIG_ERROR, "IDENTITY_WEBHOOK_SECRET 格式错误")


def sign_webhook_payload(secret: str, msg_id: str, timestamp: int, body: bytes) -> str:
    """生成 svix-signature 头的值（"v1,<签名>"）"""
    sent_at = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return _webhook(secret).sign(msg_id, sent_at, body.decode())


def verify_webhook_signature(
    headers: Mapping[str, str],
    body: bytes,
    secret: Optional[str] = None
) -> None:
    """
    校验身份提供方 Webhook 签名

    签名头为空格分隔的 "v1,<签名>" 列表，任意一个匹配即通过；时间戳容差 5 分钟

    Raises:
        WebhookSignatureException: 缺少签名头、时间戳超出容差或签名不匹配
        AppException: 未配置签名密钥
    """
    secret = secret if secret is not None else get_settings().identity_webhook_secret
    webhook = _webhook(secret)

    try:
        webhook.verify(body, dict(headers.items()))
    except WebhookVerificationError as e:
        logger.warning(f"Webhook 签名校验失败: svix-id={headers.get('svix-id')}, {e}")
        raise WebhookSignatureException()
    except json.JSONDecodeError:
        # 签名已通过，事件内容由调用方解析
        return
    except ValueError:
        raise WebhookSignatureException("svix-signature 格式错误")

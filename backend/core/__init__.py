"""
PhotoShare 核心模块
提供框架的基础设施和通用功能

导出列表：
- 配置管理: get_settings, Settings
- 数据库: Base, get_db, async_session
- 安全认证: IdentityClaims, get_current_identity, get_optional_identity
- 分页工具: paginate, PageResult
- 错误处理: ErrorCode, AppException, register_exception_handlers
"""

# 配置管理
from .config import get_settings, Settings, reload_settings

# 数据库
from .database import Base, get_db, async_session, init_db, close_db

# 安全认证
from .security import (
    IdentityClaims,
    decode_session_token,
    get_current_identity,
    get_optional_identity
)

# 分页工具
from .pagination import (
    paginate,
    PageResult
)

# 错误处理
from .errors import (
    ErrorCode,
    AppException,
    ValidationException,
    AuthException,
    NotFoundException,
    PermissionException,
    BusinessException,
    UpstreamException,
    register_exception_handlers
)


__all__ = [
    # 配置
    "get_settings",
    "Settings",
    "reload_settings",

    # 数据库
    "Base",
    "get_db",
    "async_session",
    "init_db",
    "close_db",

    # 安全
    "IdentityClaims",
    "decode_session_token",
    "get_current_identity",
    "get_optional_identity",

    # 分页
    "paginate",
    "PageResult",

    # 错误
    "ErrorCode",
    "AppException",
    "ValidationException",
    "AuthException",
    "NotFoundException",
    "PermissionException",
    "BusinessException",
    "UpstreamException",
    "register_exception_handlers",
]

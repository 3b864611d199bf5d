"""
系统配置管理
统一管理所有配置项，支持环境变量覆盖
"""

import logging
from pathlib import Path
from pydantic_settings import BaseSettings
from typing import List, Optional
from urllib.parse import quote_plus

# 获取backend目录的绝对路径
BACKEND_DIR = Path(__file__).parent.parent.resolve()
ENV_FILE = BACKEND_DIR / ".env"


class Settings(BaseSettings):
    """系统配置"""

    # 应用信息
    app_name: str = "PhotoShare"
    app_version: str = "1.0.0"
    debug: bool = False

    # 数据库配置（DATABASE_URL 优先，否则按 MySQL 参数拼接）
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "photoshare"

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        encoded_user = quote_plus(self.db_user)
        encoded_pwd = quote_plus(self.db_password)
        return f"mysql+aiomysql://{encoded_user}:{encoded_pwd}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def is_sqlite(self) -> bool:
        return self.db_url.startswith("sqlite")

    # 身份提供方（会话令牌校验）
    identity_jwt_key: str = ""  # RS256 时为 PEM 公钥，HS256 时为共享密钥
    identity_jwt_algorithm: str = "RS256"
    identity_issuer: Optional[str] = None

    # 身份提供方 Webhook（svix 签名）
    identity_webhook_secret: str = ""  # 形如 whsec_xxx

    # 对象存储
    upload_dir: str = "storage/uploads"
    storage_bucket: str = "photos"
    storage_public_base_url: str = "/storage"
    max_upload_size: int = 20 * 1024 * 1024  # 20MB

    # 跨域
    allow_origins: List[str] = ["*"]

    class Config:
        env_file = str(ENV_FILE)
        env_file_encoding = "utf-8"


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    获取配置单例
    支持运行时重新加载
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()

        if not _settings_instance.identity_jwt_key:
            logging.getLogger("core.config").warning(
                "🚨 [安全警告] 未配置 IDENTITY_JWT_KEY，所有需要登录的接口都将返回 401"
            )
    return _settings_instance


def reload_settings():
    """重新加载配置（测试或密钥更换时使用）"""
    global _settings_instance
    _settings_instance = Settings()
    return _settings_instance

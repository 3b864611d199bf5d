"""
对象存储工具
照片二进制文件的持久化与公开访问地址
"""

import time
import secrets
import logging
import filetype
from pathlib import Path
from typing import Iterable, Optional, Tuple

from core.config import get_settings
from core.errors import AppException, ErrorCode, UpstreamException

logger = logging.getLogger(__name__)

# 允许的图片类型
ALLOWED_IMAGE_MIME_TYPES = {'image/jpeg', 'image/png', 'image/gif', 'image/webp', 'image/bmp'}


class ObjectStorage:
    """
    对象存储（本地磁盘实现）

    存储桶对应 upload_dir 下的一个子目录，公开地址由 main.py 中挂载的静态目录提供
    """

    def __init__(
        self,
        root_dir: Optional[str] = None,
        bucket: Optional[str] = None,
        public_base_url: Optional[str] = None,
        max_size: Optional[int] = None
    ):
        settings = get_settings()
        self.bucket = bucket or settings.storage_bucket
        # 使用绝对路径，避免工作目录差异导致多处生成 storage
        self.root_dir = Path(root_dir or settings.upload_dir).resolve()
        self.bucket_dir = self.root_dir / self.bucket
        self.public_base_url = (public_base_url or settings.storage_public_base_url).rstrip("/")
        self.max_size = max_size or settings.max_upload_size

    @staticmethod
    def build_object_path(user_id: int, album_id: int, extension: str) -> str:
        """生成对象路径：{用户ID}/{相册ID}/{毫秒时间戳}-{随机串}.{扩展名}"""
        millis = int(time.time() * 1000)
        return f"{user_id}/{album_id}/{millis}-{secrets.token_hex(4)}.{extension}"

    def validate_image(self, content: bytes) -> Tuple[str, str]:
        """
        校验上传内容是否为允许的图片

        Returns:
            (mime_type, extension)
        """
        if not content:
            raise AppException(ErrorCode.VALIDATION_ERROR, "文件内容为空")

        if len(content) > self.max_size:
            raise AppException(
                ErrorCode.FILE_TOO_LARGE,
                f"文件大小超过限制（最大 {self.max_size / 1024 / 1024:.1f}MB）"
            )

        kind = filetype.guess(content)
        if kind is None or kind.mime not in ALLOWED_IMAGE_MIME_TYPES:
            detected = kind.mime if kind else "未知"
            raise AppException(ErrorCode.FILE_TYPE_NOT_ALLOWED, f"只能上传图片文件（检测到: {detected}）")

        extension = "jpg" if kind.extension == "jpeg" else kind.extension
        return kind.mime, extension

    def _resolve(self, path: str) -> Path:
        """
        解析对象路径（防止路径遍历攻击）
        """
        if not path or '..' in path or path.startswith('/'):
            raise AppException(ErrorCode.VALIDATION_ERROR, f"非法的对象路径: {path}")

        full_path = (self.bucket_dir / path).resolve()
        if not str(full_path).startswith(str(self.bucket_dir.resolve())):
            logger.warning(f"路径遍历尝试被阻止: {path}")
            raise AppException(ErrorCode.VALIDATION_ERROR, f"非法的对象路径: {path}")
        return full_path

    async def upload(self, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        """写入对象，返回对象路径"""
        full_path = self._resolve(path)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(content)
        except OSError as e:
            logger.error(f"对象上传失败 {path}: {e}")
            raise UpstreamException(ErrorCode.STORAGE_ERROR, f"文件上传失败: {e}")

        logger.debug(f"对象已上传: {self.bucket}/{path} ({content_type}, {len(content)} bytes)")
        return path

    async def remove(self, paths: Iterable[str]) -> None:
        """删除对象，不存在的对象视为已删除"""
        failed = []
        for path in paths:
            if not path:
                continue
            try:
                self._resolve(path).unlink(missing_ok=True)
            except (OSError, AppException) as e:
                failed.append(f"{path}: {e}")

        if failed:
            raise UpstreamException(ErrorCode.STORAGE_ERROR, f"文件删除失败: {'; '.join(failed)}")

    async def discard(self, paths: Iterable[Optional[str]], reason: str) -> None:
        """尽力删除对象，失败只记录警告"""
        paths = [path for path in paths if path]
        if not paths:
            return
        try:
            await self.remove(paths)
        except UpstreamException as e:
            logger.warning(f"{reason}，存储文件未能删除 {paths}: {e.message}")

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def get_public_url(self, path: str) -> str:
        """获取对象的公开访问地址"""
        return f"{self.public_base_url}/{self.bucket}/{path}"


# 全局对象存储实例（由 core.deps.get_object_storage 注入，测试中可覆盖）
_object_storage: Optional[ObjectStorage] = None


def get_object_storage() -> ObjectStorage:
    """获取对象存储实例"""
    global _object_storage
    if _object_storage is None:
        _object_storage = ObjectStorage()
    return _object_storage

"""
Blob 存储服务 - Vercel Blob HTTP API
"""
from typing import Optional
from urllib.parse import quote

import requests

from myname_fulfillment.core import get_settings, get_logger
from myname_fulfillment.core.exceptions import UploadError

logger = get_logger(__name__)

BLOB_API_VERSION = "7"


class BlobStorageService:
    """Blob 存储上传（单次请求，不重试）"""

    def __init__(self):
        settings = get_settings()
        self.api_url = settings.blob_api_url.rstrip("/")
        self.token = settings.blob_read_write_token
        self.prefix = settings.blob_prefix.strip("/")
        self.timeout = settings.blob_timeout

    def order_key(self, session_id: str) -> str:
        """订单图片的存储路径: {prefix}/{session_id}.png"""
        name = f"{session_id}.png"
        return f"{self.prefix}/{name}" if self.prefix else name

    def put(self, pathname: str, data: bytes, content_type: str = "image/png") -> str:
        """
        上传文件并返回公开访问 URL

        Args:
            pathname: 存储路径
            data: 文件内容
            content_type: MIME 类型

        Returns:
            公开 URL

        Raises:
            ConfigurationError: 未配置 BLOB_READ_WRITE_TOKEN
            UploadError: 上传失败或响应中没有 url
        """
        token = self.token or get_settings().require("blob_read_write_token")

        headers = {
            "Authorization": f"Bearer {token}",
            "x-api-version": BLOB_API_VERSION,
            "x-content-type": content_type,
            "x-add-random-suffix": "0",
            "x-allow-overwrite": "1",
        }
        url = f"{self.api_url}/{quote(pathname)}"

        try:
            response = requests.put(
                url,
                headers=headers,
                data=data,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise UploadError(f"Blob 上传失败: {e}") from e
        except ValueError as e:
            raise UploadError(f"Blob 响应解析失败: {e}") from e

        blob_url = payload.get("url") if isinstance(payload, dict) else None
        if not blob_url:
            raise UploadError("Blob 响应中没有 url")

        logger.info(f"Blob 已上传: {pathname} -> {blob_url}")
        return blob_url


# 全局单例
_blob_service: Optional[BlobStorageService] = None


def get_blob_service() -> BlobStorageService:
    """获取 Blob 存储服务单例"""
    global _blob_service
    if _blob_service is None:
        _blob_service = BlobStorageService()
    return _blob_service

"""
名字图片渲染服务

本地渲染（Pillow）和远程渲染服务（HTTP）两种方式
"""
import io
import os
from typing import Any, Optional

import requests
from PIL import Image, ImageDraw, ImageFont

from myname_fulfillment.core import get_settings, get_logger, redact_url
from myname_fulfillment.core.exceptions import ConfigurationError, RenderError

logger = get_logger(__name__)

# metadata 缺失时的占位名字
PLACEHOLDER_CHINESE_NAME = "小明"
PLACEHOLDER_ENGLISH_NAME = "Michael"

# 未配置 CJK_FONT_PATH 时依次查找的常见中文字体
CJK_FONT_CANDIDATES = (
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/google-noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/wqy/wqy-zenhei.ttc",
    "/usr/share/fonts/truetype/wqy/wqy-microhei.ttc",
    "/System/Library/Fonts/PingFang.ttc",
    "/System/Library/Fonts/STHeiti Medium.ttc",
    "C:/Windows/Fonts/msyh.ttc",
)

BACKGROUND_COLOR = "#ffffff"
TEXT_COLOR = "#000000"


class NameImageRenderer:
    """
    名字图片渲染器

    白底方图，中文名在中线上方（中文字体），英文名在中线下方（拉丁字体）
    """

    def __init__(
        self,
        size: Optional[int] = None,
        cjk_font_path: Optional[str] = None,
        latin_font_path: Optional[str] = None,
    ):
        settings = get_settings()
        self.size = size or settings.image_size
        self.cjk_font_path = cjk_font_path if cjk_font_path is not None else settings.cjk_font_path
        self.latin_font_path = latin_font_path if latin_font_path is not None else settings.latin_font_path

    def resolve_cjk_font_path(self) -> str:
        """
        中文字体路径：优先 CJK_FONT_PATH，否则使用系统中找到的第一个常见中文字体

        Raises:
            RenderError: 没有可用的中文字体
        """
        if self.cjk_font_path:
            return self.cjk_font_path
        for candidate in CJK_FONT_CANDIDATES:
            if os.path.isfile(candidate):
                return candidate
        raise RenderError("缺少中文字体: 请配置 CJK_FONT_PATH")

    def _load_font(self, path: Optional[str], font_size: int) -> ImageFont.ImageFont:
        """加载字体；未配置路径时使用 Pillow 内置字体（仅含拉丁字符）"""
        if not path:
            return ImageFont.load_default(size=font_size)
        try:
            return ImageFont.truetype(path, font_size)
        except OSError as e:
            raise RenderError(f"字体加载失败: {path}: {e}") from e

    def render(
        self,
        chinese_name: Optional[str],
        english_name: Optional[str],
        session_id: str = "",
    ) -> bytes:
        """
        生成名字 PNG

        Args:
            chinese_name: 中文名，为空时使用占位名
            english_name: 英文名，为空时使用占位名
            session_id: 订单 ID（仅用于日志）

        Returns:
            PNG 字节

        Raises:
            RenderError: 字体缺失或绘制失败
        """
        cn = (chinese_name or "").strip() or PLACEHOLDER_CHINESE_NAME
        en = (english_name or "").strip() or PLACEHOLDER_ENGLISH_NAME

        width = height = self.size
        # 字号与画布等比例（2000px 画布上分别为 220px / 100px）
        cjk_font = self._load_font(self.resolve_cjk_font_path(), max(1, int(self.size * 0.11)))
        latin_font = self._load_font(self.latin_font_path, max(1, int(self.size * 0.05)))

        try:
            image = Image.new("RGB", (width, height), BACKGROUND_COLOR)
            draw = ImageDraw.Draw(image)
            draw.text((width / 2, height / 2 - height * 0.04), cn, font=cjk_font, fill=TEXT_COLOR, anchor="mm")
            draw.text((width / 2, height / 2 + height * 0.09), en, font=latin_font, fill=TEXT_COLOR, anchor="mm")

            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
        except (OSError, ValueError) as e:
            raise RenderError(f"图片绘制失败: {e}") from e

        png = buffer.getvalue()
        logger.info(f"PNG 已生成: session_id={session_id}, bytes={len(png)}")
        return png


class RemoteRenderer:
    """
    远程渲染服务客户端（worker 使用）

    POST {sessionId, email, metadata} → {pngUrl}
    """

    def __init__(self):
        settings = get_settings()
        self.url = settings.render_url
        self.auth = settings.render_auth
        self.timeout = settings.render_timeout

    @property
    def configured(self) -> bool:
        return bool(self.url)

    @property
    def safe_url(self) -> str:
        return redact_url(self.url) if self.url else ""

    def render(self, session_id: str, email: str, metadata: dict[str, Any]) -> str:
        """
        调用渲染服务，返回图片 URL

        Raises:
            ConfigurationError: 未配置 RENDER_URL
            RenderError: 非 2xx、超时或返回空 pngUrl
        """
        if not self.url:
            raise ConfigurationError("RENDER_URL")

        headers = {"Content-Type": "application/json"}
        if self.auth:
            headers["Authorization"] = f"Bearer {self.auth}"

        try:
            response = requests.post(
                self.url,
                headers=headers,
                json={"sessionId": session_id, "email": email, "metadata": metadata},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise RenderError(f"Renderer timeout ({self.timeout:g}s)") from e
        except requests.RequestException as e:
            raise RenderError(f"Renderer request failed: {e}") from e

        if not response.ok:
            raise RenderError(f"Renderer failed ({response.status_code}): {response.text[:300]}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        png_url = data.get("pngUrl") if isinstance(data, dict) else ""
        if not png_url:
            raise RenderError("Renderer returned empty pngUrl")
        return png_url


# 全局单例
_renderer: Optional[NameImageRenderer] = None
_remote_renderer: Optional[RemoteRenderer] = None


def get_renderer() -> NameImageRenderer:
    """获取本地渲染器单例"""
    global _renderer
    if _renderer is None:
        _renderer = NameImageRenderer()
    return _renderer


def get_remote_renderer() -> RemoteRenderer:
    """获取远程渲染客户端单例"""
    global _remote_renderer
    if _remote_renderer is None:
        _remote_renderer = RemoteRenderer()
    return _remote_renderer

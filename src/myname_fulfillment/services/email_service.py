"""
邮件服务 - 发送图片下载链接（Resend HTTP API）
"""
import html
from typing import Optional

import requests

from myname_fulfillment.core import get_settings, get_logger
from myname_fulfillment.core.exceptions import EmailError

logger = get_logger(__name__)

DELIVERY_SUBJECT = "你的名字图片已生成 / Your name image is ready"


def build_delivery_html(png_url: str, session_id: str) -> str:
    """下载链接邮件正文"""
    return (
        "<p>感谢购买！你的名字图片已经生成。</p>"
        "<p>Thank you for your order! Your personalized name image is ready.</p>"
        f'<p><a href="{html.escape(png_url, quote=True)}">下载图片 / Download</a></p>'
        f"<p style=\"color:#888\">Order: {html.escape(session_id)}</p>"
    )


class EmailService:
    """交付邮件发送"""

    def __init__(self):
        settings = get_settings()
        self.api_key = settings.resend_api_key
        self.sender = settings.email_from
        self.api_url = settings.email_api_url
        self.timeout = settings.email_timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.sender)

    def send_delivery_email(self, to: str, png_url: str, session_id: str) -> bool:
        """
        发送下载链接

        Returns:
            True 已发送；False 未配置或没有收件人，跳过

        Raises:
            EmailError: 邮件 API 调用失败
        """
        if not self.enabled:
            logger.info(f"邮件未配置，跳过发送: session_id={session_id}")
            return False
        if not to:
            logger.info(f"订单没有邮箱，跳过发送: session_id={session_id}")
            return False

        try:
            response = requests.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": self.sender,
                    "to": [to],
                    "subject": DELIVERY_SUBJECT,
                    "html": build_delivery_html(png_url, session_id),
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise EmailError(f"邮件发送失败: {e}") from e

        logger.info(f"交付邮件已发送: session_id={session_id}")
        return True


# 全局单例
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """获取邮件服务单例"""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service

"""
配置管理 - 所有密钥和 ID 均来自环境变量（或 .env）
"""
from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from myname_fulfillment.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """应用配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API 配置
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False

    # Stripe 配置
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_price_id: str = ""
    stripe_api_version: str = "2023-10-16"
    webhook_tolerance: int = 300
    checkout_success_url: str = (
        "https://myname-world-m7xd.vercel.app/success.html?session_id={CHECKOUT_SESSION_ID}"
    )
    checkout_cancel_url: str = "https://myname-world-m7xd.vercel.app"

    # 订单状态表配置
    state_backend: Literal["sheets", "database"] = "sheets"
    sheet_id: str = ""
    sheet_name: str = "orders_state"
    google_service_account_json: str = ""
    database_url: str = "sqlite:///./data/myname_orders.db"

    # 履约配置
    # inline: webhook 内直接生成图片；deferred: 只入队，由定时 worker 处理
    fulfillment_mode: Literal["inline", "deferred"] = "inline"
    # processing 状态超过该秒数未更新，视为中断，重复事件可重新处理
    processing_stale_seconds: int = 600
    image_size: int = 2000
    cjk_font_path: Optional[str] = None
    latin_font_path: Optional[str] = None

    # Blob 存储配置
    blob_read_write_token: str = ""
    blob_api_url: str = "https://blob.vercel-storage.com"
    blob_prefix: str = "orders"
    blob_timeout: float = 30.0

    # 邮件配置（Resend）
    resend_api_key: str = ""
    email_from: str = ""
    email_api_url: str = "https://api.resend.com/emails"
    email_timeout: float = 10.0

    # Worker / 渲染服务配置
    cron_secret: str = ""
    render_url: str = ""
    render_auth: str = ""
    render_timeout: float = 15.0
    worker_default_limit: int = 3
    worker_max_limit: int = 10
    build_sha: str = Field(
        default="dev",
        validation_alias=AliasChoices("BUILD_SHA", "VERCEL_GIT_COMMIT_SHA"),
    )

    # 日志配置
    log_level: str = "INFO"

    def require(self, field_name: str) -> str:
        """读取必需配置，缺失时抛出 ConfigurationError（错误信息使用环境变量名）"""
        value = getattr(self, field_name)
        if not value:
            raise ConfigurationError(field_name.upper())
        return value


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()

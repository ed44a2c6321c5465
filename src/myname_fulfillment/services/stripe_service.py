"""
Stripe 服务 - Webhook 验签与 Checkout Session
"""
import json
from dataclasses import dataclass, field
from typing import Any, Optional

import stripe

from myname_fulfillment.core import get_settings, get_logger
from myname_fulfillment.core.exceptions import SignatureError

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass
class CheckoutOrder:
    """从 checkout.session.completed 事件中提取的订单信息"""

    session_id: str
    email: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


def _to_plain(obj: Any) -> Any:
    """StripeObject → 普通 dict（递归转换嵌套对象）"""
    if isinstance(obj, stripe.StripeObject):
        return obj.to_dict()
    return obj


def extract_checkout(session: dict[str, Any]) -> CheckoutOrder:
    """
    提取订单 ID、邮箱和 metadata

    邮箱优先取 customer_details.email，其次 customer_email
    """
    customer_details = session.get("customer_details") or {}
    email = customer_details.get("email") or session.get("customer_email") or ""
    metadata = session.get("metadata") or {}
    return CheckoutOrder(
        session_id=str(session.get("id") or "").strip(),
        email=str(email).strip(),
        metadata={str(k): "" if v is None else str(v) for k, v in metadata.items()},
    )


class StripeService:
    """Stripe API 封装"""

    def __init__(self):
        settings = get_settings()
        self.webhook_secret = settings.stripe_webhook_secret
        self.api_version = settings.stripe_api_version
        self.tolerance = settings.webhook_tolerance
        self.success_url = settings.checkout_success_url
        self.cancel_url = settings.checkout_cancel_url

    @property
    def webhook_configured(self) -> bool:
        return bool(self.webhook_secret)

    def verify_event(self, raw_body: bytes, signature: Optional[str]) -> dict[str, Any]:
        """
        校验 Webhook 签名并解析事件

        必须使用未经 JSON 解析的原始请求体，否则签名无法通过。

        Args:
            raw_body: 原始请求体
            signature: Stripe-Signature 请求头

        Returns:
            事件字典（type / data.object ...）

        Raises:
            SignatureError: 缺少签名、签名无效或请求体不是合法 JSON
        """
        if not signature:
            raise SignatureError("Missing stripe-signature")
        if not self.webhook_secret:
            raise SignatureError("Missing STRIPE_WEBHOOK_SECRET")

        try:
            payload = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
            stripe.WebhookSignature.verify_header(
                payload, signature, self.webhook_secret, self.tolerance
            )
        except UnicodeDecodeError as e:
            raise SignatureError(f"Invalid payload encoding: {e}") from e
        except stripe.SignatureVerificationError as e:
            raise SignatureError(f"Invalid signature: {e}") from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise SignatureError(f"Invalid payload: {e}") from e
        if not isinstance(event, dict):
            raise SignatureError("Invalid payload: not an object")
        return event

    def create_checkout_session(
        self,
        email: Optional[str],
        name: Optional[str] = None,
        chinese_name: Optional[str] = None,
        english_name: Optional[str] = None,
    ) -> str:
        """创建一次性付款的 Checkout Session，返回跳转 URL"""
        settings = get_settings()
        api_key = settings.require("stripe_secret_key")
        price_id = settings.require("stripe_price_id")

        metadata = {
            key: value
            for key, value in {
                "name": name,
                "chinese_name": chinese_name,
                "english_name": english_name,
            }.items()
            if value
        }

        session = stripe.checkout.Session.create(
            api_key=api_key,
            stripe_version=self.api_version,
            mode="payment",
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            customer_email=email or None,
            metadata=metadata,
            success_url=self.success_url,
            cancel_url=self.cancel_url,
        )
        logger.info(f"Checkout Session 已创建: {session.id}")
        return session.url

    def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        """查询 Checkout Session（成功页展示用）"""
        api_key = get_settings().require("stripe_secret_key")

        session = _to_plain(
            stripe.checkout.Session.retrieve(
                session_id,
                api_key=api_key,
                stripe_version=self.api_version,
                expand=["line_items", "payment_intent"],
            )
        )
        customer_details = session.get("customer_details") or {}
        payment_intent = session.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")
        line_items = session.get("line_items") or {}

        return {
            "id": session.get("id"),
            "status": session.get("status"),
            "payment_status": session.get("payment_status"),
            "customer_email": customer_details.get("email") or session.get("customer_email"),
            "amount_total": session.get("amount_total"),
            "currency": session.get("currency"),
            "metadata": session.get("metadata") or {},
            "payment_intent": payment_intent,
            "line_items": line_items.get("data") or [],
        }


# 全局单例
_stripe_service: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """获取 Stripe 服务单例"""
    global _stripe_service
    if _stripe_service is None:
        _stripe_service = StripeService()
    return _stripe_service

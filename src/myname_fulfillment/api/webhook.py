"""
Stripe Webhook API
"""
import asyncio
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from myname_fulfillment.core import get_logger
from myname_fulfillment.core.exceptions import SignatureError
from myname_fulfillment.services.fulfillment_service import FulfillmentService, get_fulfillment_service
from myname_fulfillment.services.stripe_service import StripeService, get_stripe_service

logger = get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


async def verified_event(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> dict[str, Any]:
    """验签并解析事件（必须使用原始请求体）"""
    raw_body = await request.body()
    try:
        return stripe_service.verify_event(raw_body, stripe_signature)
    except SignatureError as e:
        logger.warning(f"Webhook 验签失败: {e}")
        raise


async def signature_error_handler(request: Request, exc: SignatureError) -> PlainTextResponse:
    """验签失败 → 400（Stripe 不应重试）"""
    message = "Invalid signature" if request.headers.get("stripe-signature") else "Missing stripe-signature"
    return PlainTextResponse(message, status_code=400)


@router.get("")
async def webhook_probe(stripe_service: StripeService = Depends(get_stripe_service)):
    """存活探测"""
    return {"ok": True, "configured": stripe_service.webhook_configured}


@router.post("")
async def receive_webhook(
    event: dict[str, Any] = Depends(verified_event),
    fulfillment_service: FulfillmentService = Depends(get_fulfillment_service),
):
    """
    接收 Stripe 事件

    - 签名缺失或无效 → 400（验签在履约服务初始化之前完成）
    - 已处理/忽略/入队/交付 → 200
    - 履约失败或状态表不可用 → 500（交给 Stripe 的重试策略）
    """
    logger.info(f"Webhook 已接收: {event.get('type')}")

    try:
        result = await asyncio.to_thread(fulfillment_service.handle_event, event)
    except Exception as e:
        logger.error(f"Webhook 处理失败: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"received": True, "delivered": False, "error": str(e)},
        )

    return JSONResponse(
        status_code=200 if result.ok else 500,
        content=result.to_response(),
    )

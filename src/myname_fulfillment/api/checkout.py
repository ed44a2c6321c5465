"""
Checkout Session API（下单页和成功页使用）
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from myname_fulfillment.core import get_logger
from myname_fulfillment.services.stripe_service import StripeService, get_stripe_service

logger = get_logger(__name__)

router = APIRouter(tags=["checkout"])


class CreateCheckoutRequest(BaseModel):
    """创建 Checkout Session 请求"""
    email: Optional[str] = None
    name: Optional[str] = None
    chinese_name: Optional[str] = None
    english_name: Optional[str] = None


@router.post("/create-checkout-session")
async def create_checkout_session(
    request: CreateCheckoutRequest,
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """创建付款会话，返回 Stripe 托管页面 URL"""
    try:
        url = await asyncio.to_thread(
            stripe_service.create_checkout_session,
            request.email,
            request.name,
            request.chinese_name,
            request.english_name,
        )
    except Exception as e:
        logger.error(f"创建 Checkout Session 失败: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})
    return {"url": url}


@router.get("/get-checkout-session")
async def get_checkout_session(
    session_id: Optional[str] = None,
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """查询付款会话"""
    if not session_id:
        return JSONResponse(status_code=400, content={"error": "Missing session_id"})

    try:
        return await asyncio.to_thread(stripe_service.retrieve_checkout_session, session_id)
    except Exception as e:
        logger.error(f"查询 Checkout Session 失败: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})

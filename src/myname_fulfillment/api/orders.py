"""
订单状态查询 API
"""
import asyncio

from fastapi import APIRouter, Depends, HTTPException

from myname_fulfillment.services.fulfillment_service import FulfillmentService, get_fulfillment_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/{session_id}")
async def get_order(
    session_id: str,
    fulfillment_service: FulfillmentService = Depends(get_fulfillment_service),
):
    """查询订单状态（成功页轮询用）"""
    order = await asyncio.to_thread(fulfillment_service.get_order, session_id)
    if not order:
        raise HTTPException(status_code=404, detail="订单不存在")

    return {
        "session_id": order.session_id,
        "status": order.status,
        "png_url": order.png_url or None,
        "error": order.error or None,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }

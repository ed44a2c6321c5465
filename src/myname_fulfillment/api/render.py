"""
渲染服务 API - worker 通过 RENDER_URL 调用
"""
import asyncio
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from myname_fulfillment.api.auth import bearer_matches
from myname_fulfillment.core import get_settings, get_logger
from myname_fulfillment.core.exceptions import FulfillmentError
from myname_fulfillment.services.fulfillment_service import FulfillmentService, get_fulfillment_service

logger = get_logger(__name__)

router = APIRouter(tags=["render"])


class RenderRequest(BaseModel):
    """渲染请求"""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    email: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


@router.post("/render")
async def render_order_image(
    request: RenderRequest,
    authorization: Optional[str] = Header(default=None),
    fulfillment_service: FulfillmentService = Depends(get_fulfillment_service),
):
    """生成名字图片并上传，返回 {pngUrl}"""
    if not bearer_matches(authorization, get_settings().render_auth):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        png_url = await asyncio.to_thread(
            fulfillment_service.render_and_upload,
            request.session_id,
            request.metadata,
        )
    except FulfillmentError as e:
        logger.error(f"渲染失败: session_id={request.session_id}: {e}")
        return JSONResponse(status_code=502, content={"error": str(e)})

    return {"pngUrl": png_url}

"""
定时 Worker API（由 cron 触发）
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse

from myname_fulfillment.api.auth import bearer_matches
from myname_fulfillment.core import get_settings, get_logger
from myname_fulfillment.services.worker_service import WorkerService, get_worker_service

logger = get_logger(__name__)

router = APIRouter(tags=["worker"])


def _parse_limit(value: Optional[str]) -> Optional[int]:
    """limit 参数非法时回退到默认值"""
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        return None


@router.api_route("/worker", methods=["GET", "POST"])
async def run_worker(
    limit: Optional[str] = None,
    dry: str = "0",
    authorization: Optional[str] = Header(default=None),
    x_vercel_id: Optional[str] = Header(default=None),
    x_vercel_trace_id: Optional[str] = Header(default=None),
    worker_service: WorkerService = Depends(get_worker_service),
):
    """处理一批 queued 订单（dry=1 时只返回将要处理的订单）"""
    settings = get_settings()
    meta = {"build": settings.build_sha, "reqId": x_vercel_id or x_vercel_trace_id or "unknown"}

    if not bearer_matches(authorization, settings.cron_secret):
        return JSONResponse(status_code=401, content={**meta, "ok": False, "error": "Unauthorized"})

    try:
        report = await asyncio.to_thread(
            worker_service.run,
            _parse_limit(limit),
            dry.strip() == "1",
        )
    except Exception as e:
        logger.error(f"[worker] FATAL: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={**meta, "ok": False, "error": str(e) or "fatal_worker_error"},
        )

    return {**meta, **report.to_response()}

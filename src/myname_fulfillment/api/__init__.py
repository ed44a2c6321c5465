"""
API 路由模块
"""
from fastapi import APIRouter
from .webhook import router as webhook_router, signature_error_handler
from .checkout import router as checkout_router
from .worker import router as worker_router
from .render import router as render_router
from .orders import router as orders_router

# 创建主路由
api_router = APIRouter(prefix="/api")

api_router.include_router(webhook_router)
api_router.include_router(checkout_router)
api_router.include_router(worker_router)
api_router.include_router(render_router)
api_router.include_router(orders_router)

__all__ = ["api_router", "signature_error_handler"]

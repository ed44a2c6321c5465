"""
FastAPI 应用入口
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from myname_fulfillment import __version__
from myname_fulfillment.core import setup_logging, get_settings, get_logger
from myname_fulfillment.api import api_router, signature_error_handler
from myname_fulfillment.core.exceptions import SignatureError

# 初始化日志
settings = get_settings()
setup_logging(settings.log_level)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info(
        f"🚀 订单履约服务启动: backend={settings.state_backend}, "
        f"mode={settings.fulfillment_mode}, build={settings.build_sha}"
    )
    yield
    logger.info("👋 订单履约服务关闭")


app = FastAPI(
    title="MyName 订单履约 API",
    description="Stripe 付款 → 订单状态表 → 名字图片生成 → Blob 存储 → 邮件交付",
    version=__version__,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS 中间件（下单页和成功页跨域调用 checkout 接口）
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "https://myname-world-m7xd.vercel.app",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册 API 路由
app.include_router(api_router)
app.add_exception_handler(SignatureError, signature_error_handler)


@app.get("/")
async def root():
    """健康检查"""
    return {"status": "ok", "message": "MyName 订单履约服务运行中"}


@app.get("/health")
async def health():
    """健康检查"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    logger.info(f"启动服务: http://{settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "myname_fulfillment.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )

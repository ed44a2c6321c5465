"""
创建订单状态表（STATE_BACKEND=database 时使用）
"""
from sqlmodel import SQLModel, create_engine
from myname_fulfillment.models import OrderRecord  # noqa: F401  注册表结构
from myname_fulfillment.core import get_settings

settings = get_settings()

if __name__ == "__main__":
    engine = create_engine(settings.database_url, echo=True)
    SQLModel.metadata.create_all(engine)

    print("✅ 订单表创建完成")

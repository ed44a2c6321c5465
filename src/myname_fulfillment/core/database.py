"""
数据库连接管理 - STATE_BACKEND=database 时使用
"""
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlmodel import create_engine

from myname_fulfillment.core.config import get_settings

_settings = get_settings()

# SQLite 文件所在目录不存在时先创建
_url = make_url(_settings.database_url)
if _url.drivername.startswith("sqlite") and _url.database and _url.database != ":memory:":
    Path(_url.database).parent.mkdir(parents=True, exist_ok=True)

# 创建全局数据库引擎
engine = create_engine(_settings.database_url, echo=False)

__all__ = ["engine"]

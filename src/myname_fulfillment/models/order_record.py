"""
订单状态记录模型

同一份记录既是 SQLModel 表，也对应表格中的一行（列顺序见 SHEET_COLUMNS）。
"""
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlmodel import Field, SQLModel


class OrderStatus(str, Enum):
    """订单状态: queued → processing → delivered / failed"""

    QUEUED = "queued"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    FAILED = "failed"


# 表格列顺序（A..H），第 1 行为表头
SHEET_COLUMNS = {
    "session_id": "A",
    "email": "B",
    "status": "C",
    "created_at": "D",
    "updated_at": "E",
    "error": "F",
    "png_url": "G",
    "metadata_json": "H",
}
SHEET_HEADER = ["session_id", "email", "status", "created_at", "updated_at", "error", "png_url", "metadata"]

# 写入 error 列的最大长度
MAX_ERROR_LENGTH = 500


def now_iso() -> str:
    """当前 UTC 时间，ISO 8601（毫秒精度，Z 结尾）"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def seconds_since(value: Optional[str]) -> Optional[float]:
    """距 ISO 时间戳已过去的秒数；无法解析时返回 None"""
    text = str(value or "").strip()
    if not text:
        return None
    try:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (datetime.now(timezone.utc) - moment).total_seconds()


def normalize_status(value: Optional[str]) -> str:
    """状态列大小写和空白不敏感"""
    return str(value or "").strip().lower()


def truncate_error(message: Optional[str]) -> str:
    """截断错误信息，避免单元格过长"""
    return str(message or "")[:MAX_ERROR_LENGTH]


class OrderRecord(SQLModel, table=True):
    """订单状态表"""

    __tablename__ = "order_records"

    # 插入顺序，等价于表格中的行号（不对外暴露）
    seq: Optional[int] = Field(default=None, primary_key=True)

    # 业务唯一键：Stripe Checkout Session ID，创建后不可变
    session_id: str = Field(index=True, unique=True, description="Checkout Session ID")
    email: str = Field(default="", description="客户邮箱")

    # 状态
    status: str = Field(default=OrderStatus.QUEUED.value, description="状态: queued/processing/delivered/failed")
    error: str = Field(default="", description="最近一次失败原因")
    png_url: str = Field(default="", description="生成图片的公开 URL，仅成功时写入")

    # Checkout metadata（JSON 格式存储）
    metadata_json: str = Field(default="{}", description="Checkout metadata JSON")

    # 时间戳（ISO 8601 字符串，与表格保持一致）
    created_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso)

    @property
    def is_terminal(self) -> bool:
        return normalize_status(self.status) == OrderStatus.DELIVERED.value

    @property
    def metadata_dict(self) -> dict[str, Any]:
        """解析 metadata 列，格式错误时返回空字典"""
        try:
            value = json.loads(self.metadata_json or "{}")
        except (TypeError, ValueError):
            return {}
        return value if isinstance(value, dict) else {}

    @staticmethod
    def dump_metadata(metadata: Optional[dict[str, Any]]) -> str:
        return json.dumps(metadata or {}, ensure_ascii=False, sort_keys=True)

    def to_row(self) -> list[str]:
        """转换为表格行（A..H）"""
        return [
            self.session_id,
            self.email or "",
            self.status,
            self.created_at,
            self.updated_at,
            self.error or "",
            self.png_url or "",
            self.metadata_json or "{}",
        ]

    @classmethod
    def from_row(cls, row: list[str]) -> "OrderRecord":
        """从表格行构造记录，缺失的尾部单元格按空字符串处理"""
        cells = [str(cell or "") for cell in row] + [""] * (len(SHEET_HEADER) - len(row))
        return cls(
            session_id=cells[0].strip(),
            email=cells[1].strip(),
            status=normalize_status(cells[2]),
            created_at=cells[3],
            updated_at=cells[4],
            error=cells[5],
            png_url=cells[6],
            metadata_json=cells[7] or "{}",
        )

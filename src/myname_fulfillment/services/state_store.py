"""
订单状态存储 - 以表格作为轻量数据库

按 session_id 线性扫描第一列定位行；没有事务，也没有行锁。
"""
import json
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from myname_fulfillment.core import get_settings, get_logger
from myname_fulfillment.core.exceptions import StoreError
from myname_fulfillment.models.order_record import (
    SHEET_COLUMNS,
    SHEET_HEADER,
    OrderRecord,
    normalize_status,
    now_iso,
    truncate_error,
)

logger = get_logger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


class OrderStore:
    """
    订单状态存储接口

    row 为 1 起始的行号，第 1 行是表头，数据从第 2 行开始。
    """

    def find_row(self, session_id: str) -> Optional[int]:
        """按 session_id 查找行号，不存在返回 None"""
        raise NotImplementedError

    def get_status(self, row: int) -> str:
        """读取单个状态单元格"""
        raise NotImplementedError

    def get_row(self, row: int) -> Optional[OrderRecord]:
        """读取整行"""
        raise NotImplementedError

    def append(self, record: OrderRecord) -> int:
        """追加一行，返回新行号"""
        raise NotImplementedError

    def update(
        self,
        row: int,
        status: Optional[str] = None,
        error: Optional[str] = None,
        png_url: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """只更新传入的单元格，同时刷新 updated_at"""
        raise NotImplementedError

    def list_rows(self) -> list[tuple[int, OrderRecord]]:
        """读取全部数据行（按存储顺序）"""
        raise NotImplementedError

    def get(self, session_id: str) -> Optional[OrderRecord]:
        row = self.find_row(session_id)
        if row is None:
            return None
        return self.get_row(row)

    def list_by_status(self, status: str) -> list[tuple[int, OrderRecord]]:
        wanted = normalize_status(status)
        return [
            (row, record)
            for row, record in self.list_rows()
            if record.session_id and normalize_status(record.status) == wanted
        ]


class SheetsOrderStore(OrderStore):
    """基于 Google Sheets（gspread）的订单状态存储"""

    def __init__(self, worksheet=None):
        """
        Args:
            worksheet: gspread Worksheet；为空时按配置用服务账号打开
        """
        self._worksheet = worksheet

    @property
    def worksheet(self):
        if self._worksheet is None:
            self._worksheet = self._open_worksheet()
        return self._worksheet

    def _open_worksheet(self):
        import gspread

        settings = get_settings()
        sa_json = settings.require("google_service_account_json")
        sheet_id = settings.require("sheet_id")

        try:
            creds = json.loads(sa_json)
        except ValueError as e:
            raise StoreError(f"GOOGLE_SERVICE_ACCOUNT_JSON 不是合法 JSON: {e}") from e

        try:
            client = gspread.service_account_from_dict(creds, scopes=SHEETS_SCOPES)
            worksheet = client.open_by_key(sheet_id).worksheet(settings.sheet_name)
            # 空表补写表头，保证数据从第 2 行开始
            if not worksheet.row_values(1):
                worksheet.update(values=[SHEET_HEADER], range_name="A1", value_input_option="RAW")
        except Exception as e:
            raise StoreError(f"打开表格失败: {e}") from e

        logger.info(f"已连接订单表: {settings.sheet_name}")
        return worksheet

    def find_row(self, session_id: str) -> Optional[int]:
        ws = self.worksheet
        try:
            values = ws.col_values(1)
        except Exception as e:
            raise StoreError(f"读取 session_id 列失败: {e}") from e

        # 跳过表头
        for index, value in enumerate(values[1:], start=2):
            if str(value or "").strip() == session_id:
                return index
        return None

    def get_status(self, row: int) -> str:
        ws = self.worksheet
        try:
            value = ws.acell(f"{SHEET_COLUMNS['status']}{row}").value
        except Exception as e:
            raise StoreError(f"读取第 {row} 行状态失败: {e}") from e
        return normalize_status(value)

    def get_row(self, row: int) -> Optional[OrderRecord]:
        ws = self.worksheet
        try:
            values = ws.row_values(row)
        except Exception as e:
            raise StoreError(f"读取第 {row} 行失败: {e}") from e
        if not values:
            return None
        return OrderRecord.from_row(values)

    def append(self, record: OrderRecord) -> int:
        ws = self.worksheet
        try:
            ws.append_row(
                record.to_row(),
                value_input_option="RAW",
                insert_data_option="INSERT_ROWS",
                table_range=f"A1:{SHEET_COLUMNS['metadata_json']}1",
            )
        except Exception as e:
            raise StoreError(f"追加订单行失败: {e}") from e

        row = self.find_row(record.session_id)
        if row is None:
            raise StoreError(f"追加后未找到订单行: {record.session_id}")
        return row

    def update(
        self,
        row: int,
        status: Optional[str] = None,
        error: Optional[str] = None,
        png_url: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        cells = {"updated_at": now_iso()}
        if status is not None:
            cells["status"] = status
        if error is not None:
            cells["error"] = truncate_error(error)
        if png_url is not None:
            cells["png_url"] = png_url
        if metadata is not None:
            cells["metadata_json"] = OrderRecord.dump_metadata(metadata)

        data = [
            {"range": f"{SHEET_COLUMNS[name]}{row}", "values": [[value]]}
            for name, value in cells.items()
        ]
        ws = self.worksheet
        try:
            ws.batch_update(data, value_input_option="RAW")
        except Exception as e:
            raise StoreError(f"更新第 {row} 行失败: {e}") from e

    def list_rows(self) -> list[tuple[int, OrderRecord]]:
        ws = self.worksheet
        try:
            values = ws.get_all_values()
        except Exception as e:
            raise StoreError(f"读取订单表失败: {e}") from e

        rows = []
        for index, cells in enumerate(values[1:], start=2):
            if not cells:
                continue
            rows.append((index, OrderRecord.from_row(cells)))
        return rows


class SqlOrderStore(OrderStore):
    """
    基于 SQLModel 的订单状态存储

    行号 = 插入顺序 + 1（与表格的表头偏移保持一致），便于两种存储互换。
    """

    def __init__(self, engine=None):
        if engine is None:
            from myname_fulfillment.core.database import engine as default_engine
            engine = default_engine
        self.engine = engine
        SQLModel.metadata.create_all(self.engine)

    @classmethod
    def in_memory(cls) -> "SqlOrderStore":
        """内存 SQLite，本地调试和测试使用"""
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        return cls(engine)

    def _ordered(self, session: Session) -> list[OrderRecord]:
        return list(session.exec(select(OrderRecord).order_by(OrderRecord.seq)).all())

    def _record_at(self, session: Session, row: int) -> Optional[OrderRecord]:
        if row < 2:
            return None
        statement = select(OrderRecord).order_by(OrderRecord.seq).offset(row - 2).limit(1)
        return session.exec(statement).first()

    def find_row(self, session_id: str) -> Optional[int]:
        with Session(self.engine) as session:
            for index, record in enumerate(self._ordered(session), start=2):
                if (record.session_id or "").strip() == session_id:
                    return index
        return None

    def get_status(self, row: int) -> str:
        with Session(self.engine) as session:
            record = self._record_at(session, row)
            return normalize_status(record.status if record else "")

    def get_row(self, row: int) -> Optional[OrderRecord]:
        with Session(self.engine) as session:
            record = self._record_at(session, row)
            if record is not None:
                session.expunge(record)
            return record

    def append(self, record: OrderRecord) -> int:
        try:
            with Session(self.engine) as session:
                session.add(
                    OrderRecord(
                        session_id=record.session_id,
                        email=record.email,
                        status=record.status,
                        error=record.error,
                        png_url=record.png_url,
                        metadata_json=record.metadata_json,
                        created_at=record.created_at,
                        updated_at=record.updated_at,
                    )
                )
                session.commit()
                total = session.exec(select(func.count()).select_from(OrderRecord)).one()
        except SQLAlchemyError as e:
            raise StoreError(f"追加订单行失败: {e}") from e
        return total + 1

    def update(
        self,
        row: int,
        status: Optional[str] = None,
        error: Optional[str] = None,
        png_url: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        with Session(self.engine) as session:
            record = self._record_at(session, row)
            if record is None:
                raise StoreError(f"订单行不存在: {row}")
            if status is not None:
                record.status = status
            if error is not None:
                record.error = truncate_error(error)
            if png_url is not None:
                record.png_url = png_url
            if metadata is not None:
                record.metadata_json = OrderRecord.dump_metadata(metadata)
            record.updated_at = now_iso()
            session.add(record)
            session.commit()

    def list_rows(self) -> list[tuple[int, OrderRecord]]:
        with Session(self.engine) as session:
            records = self._ordered(session)
            for record in records:
                session.expunge(record)
        return list(enumerate(records, start=2))


# 全局单例
_order_store: Optional[OrderStore] = None


def get_order_store() -> OrderStore:
    """获取订单状态存储单例（按 STATE_BACKEND 选择实现）"""
    global _order_store
    if _order_store is None:
        settings = get_settings()
        if settings.state_backend == "database":
            _order_store = SqlOrderStore()
        else:
            _order_store = SheetsOrderStore()
    return _order_store


__all__ = [
    "OrderStore",
    "SheetsOrderStore",
    "SqlOrderStore",
    "SHEET_HEADER",
    "get_order_store",
]

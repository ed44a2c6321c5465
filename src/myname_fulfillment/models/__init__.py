"""
数据模型模块
"""
from .order_record import OrderRecord, OrderStatus, SHEET_COLUMNS, SHEET_HEADER

__all__ = [
    "OrderRecord",
    "OrderStatus",
    "SHEET_COLUMNS",
    "SHEET_HEADER",
]

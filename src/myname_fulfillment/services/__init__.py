"""
服务模块
"""
from .state_store import OrderStore, SheetsOrderStore, SqlOrderStore, get_order_store
from .fulfillment_service import FulfillmentService, get_fulfillment_service
from .worker_service import WorkerService, get_worker_service

__all__ = [
    "OrderStore",
    "SheetsOrderStore",
    "SqlOrderStore",
    "get_order_store",
    "FulfillmentService",
    "get_fulfillment_service",
    "WorkerService",
    "get_worker_service",
]

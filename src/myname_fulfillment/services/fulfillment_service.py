"""
订单履约服务 - Webhook 入口的幂等写表 + 同步生成交付

状态流转: queued → processing → delivered / failed
"""
from dataclasses import dataclass
from typing import Any, Optional

from myname_fulfillment.core import get_settings, get_logger
from myname_fulfillment.core.exceptions import EmailError
from myname_fulfillment.models.order_record import OrderRecord, OrderStatus, seconds_since, truncate_error
from myname_fulfillment.services.blob_service import BlobStorageService, get_blob_service
from myname_fulfillment.services.email_service import EmailService, get_email_service
from myname_fulfillment.services.render_service import NameImageRenderer, get_renderer
from myname_fulfillment.services.state_store import OrderStore, get_order_store
from myname_fulfillment.services.stripe_service import CHECKOUT_COMPLETED, extract_checkout

logger = get_logger(__name__)


@dataclass
class IntakeResult:
    """
    一次事件处理的结果

    outcome: ignored / skipped / duplicate / queued / delivered / failed
    """

    outcome: str
    session_id: str = ""
    status: str = ""
    png_url: str = ""
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome != "failed"

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"received": True}
        if self.outcome == "ignored":
            body["ignored"] = True
        elif self.outcome == "skipped":
            body["skipped"] = True
        elif self.outcome == "duplicate":
            body.update({"duplicate": True, "status": self.status})
        elif self.outcome == "queued":
            body.update({"queued": True, "sessionId": self.session_id})
        elif self.outcome == "delivered":
            body.update({"delivered": True, "pngUrl": self.png_url})
        elif self.outcome == "failed":
            body.update({"delivered": False, "error": self.error})
        return body


def names_from_metadata(metadata: dict[str, Any]) -> tuple[str, str]:
    """从 checkout metadata 中取中文名和英文名（英文名兼容旧字段 name）"""
    chinese_name = str(metadata.get("chinese_name") or "").strip()
    english_name = str(metadata.get("english_name") or metadata.get("name") or "").strip()
    return chinese_name, english_name


class FulfillmentService:
    """
    履约服务

    inline 模式下 webhook 内直接渲染并上传；deferred 模式只写入 queued，
    由 worker 通过远程渲染服务完成。
    """

    def __init__(
        self,
        store: Optional[OrderStore] = None,
        renderer: Optional[NameImageRenderer] = None,
        blob: Optional[BlobStorageService] = None,
        email: Optional[EmailService] = None,
        mode: Optional[str] = None,
    ):
        self.store = store or get_order_store()
        self.renderer = renderer or get_renderer()
        self.blob = blob or get_blob_service()
        self.email = email or get_email_service()
        settings = get_settings()
        self.mode = mode or settings.fulfillment_mode
        self.processing_stale_seconds = settings.processing_stale_seconds

    @property
    def deferred(self) -> bool:
        return self.mode == "deferred"

    def is_stale_processing(self, row: int) -> bool:
        """processing 行长时间未更新（上一次运行中断）"""
        record = self.store.get_row(row)
        age = seconds_since(record.updated_at) if record else None
        return age is not None and age >= self.processing_stale_seconds

    def handle_event(self, event: dict[str, Any]) -> IntakeResult:
        """
        处理已验签的 Stripe 事件

        只处理 checkout.session.completed；其余事件直接确认。

        Raises:
            StoreError: 状态表不可用（调用方返回 5xx 让 Stripe 重试）
        """
        event_type = event.get("type")
        if event_type != CHECKOUT_COMPLETED:
            logger.info(f"忽略事件: {event_type}")
            return IntakeResult(outcome="ignored")

        session = (event.get("data") or {}).get("object") or {}
        order = extract_checkout(session)
        if not order.session_id:
            logger.warning("checkout.session.completed 缺少 session id，跳过")
            return IntakeResult(outcome="skipped")

        initial_status = OrderStatus.QUEUED if self.deferred else OrderStatus.PROCESSING

        # 幂等：已交付或正在处理的订单不重复生成
        row = self.store.find_row(order.session_id)
        if row is not None:
            status = self.store.get_status(row)
            stale = status == OrderStatus.PROCESSING.value and self.is_stale_processing(row)
            if stale:
                logger.warning(f"processing 状态已超时，重新处理: session_id={order.session_id}, row={row}")
            elif status in (OrderStatus.DELIVERED.value, OrderStatus.PROCESSING.value) or (
                self.deferred and status == OrderStatus.QUEUED.value
            ):
                logger.info(f"重复事件: session_id={order.session_id}, status={status}")
                return IntakeResult(outcome="duplicate", session_id=order.session_id, status=status)

            logger.info(f"重新处理订单: session_id={order.session_id}, 原状态={status or '空'}")
            self.store.update(
                row,
                status=initial_status.value,
                error="",
                png_url="",
                metadata=order.metadata,
            )
        else:
            row = self.store.append(
                OrderRecord(
                    session_id=order.session_id,
                    email=order.email,
                    status=initial_status.value,
                    metadata_json=OrderRecord.dump_metadata(order.metadata),
                )
            )
            logger.info(f"新订单已写入: session_id={order.session_id}, row={row}, status={initial_status.value}")

        if self.deferred:
            return IntakeResult(
                outcome="queued",
                session_id=order.session_id,
                status=OrderStatus.QUEUED.value,
            )

        return self.fulfill(row, order.session_id, order.email, order.metadata)

    def render_and_upload(self, session_id: str, metadata: dict[str, Any]) -> str:
        """渲染名字图片并上传，返回公开 URL"""
        chinese_name, english_name = names_from_metadata(metadata)
        png = self.renderer.render(chinese_name, english_name, session_id)
        return self.blob.put(self.blob.order_key(session_id), png, content_type="image/png")

    def fulfill(
        self,
        row: int,
        session_id: str,
        email: str,
        metadata: dict[str, Any],
    ) -> IntakeResult:
        """
        渲染 → 上传 → 发信 → delivered

        任何一步失败都记为 failed，不向上抛出
        """
        try:
            png_url = self.render_and_upload(session_id, metadata)
        except Exception as e:
            logger.error(f"图片生成/上传失败: session_id={session_id}: {e}", exc_info=True)
            return self.mark_failed(row, session_id, e)

        try:
            self.email.send_delivery_email(email, png_url, session_id)
        except EmailError as e:
            logger.error(f"交付邮件发送失败: session_id={session_id}: {e}")
            return self.mark_failed(row, session_id, e, png_url=png_url)

        try:
            self.store.update(row, status=OrderStatus.DELIVERED.value, error="", png_url=png_url)
        except Exception as e:
            logger.error(f"写入 delivered 状态失败: session_id={session_id}: {e}", exc_info=True)
            return self.mark_failed(row, session_id, e, png_url=png_url)

        logger.info(f"订单已交付: session_id={session_id}, png_url={png_url}")
        return IntakeResult(
            outcome="delivered",
            session_id=session_id,
            status=OrderStatus.DELIVERED.value,
            png_url=png_url,
        )

    def mark_failed(
        self,
        row: int,
        session_id: str,
        error: BaseException,
        png_url: Optional[str] = None,
    ) -> IntakeResult:
        """将订单标记为 failed 并记录错误；写表失败只记录日志"""
        message = truncate_error(str(error) or type(error).__name__)
        try:
            self.store.update(row, status=OrderStatus.FAILED.value, error=message, png_url=png_url)
        except Exception:
            logger.error(f"更新订单失败状态时发生异常: session_id={session_id}", exc_info=True)
        return IntakeResult(
            outcome="failed",
            session_id=session_id,
            status=OrderStatus.FAILED.value,
            error=message,
        )

    def get_order(self, session_id: str) -> Optional[OrderRecord]:
        """按 session_id 查询订单"""
        return self.store.get(session_id)


# 全局单例
_fulfillment_service: Optional[FulfillmentService] = None


def get_fulfillment_service() -> FulfillmentService:
    """获取履约服务单例"""
    global _fulfillment_service
    if _fulfillment_service is None:
        _fulfillment_service = FulfillmentService()
    return _fulfillment_service

"""
定时 Worker - 处理 queued 订单

queued → processing → delivered（写入 png_url）或 failed（写入 error）
"""
from dataclasses import dataclass, field
from typing import Any, Optional

from myname_fulfillment.core import get_settings, get_logger
from myname_fulfillment.models.order_record import OrderStatus, truncate_error
from myname_fulfillment.services.email_service import EmailService, get_email_service
from myname_fulfillment.services.render_service import RemoteRenderer, get_remote_renderer
from myname_fulfillment.services.state_store import OrderStore, get_order_store

logger = get_logger(__name__)


@dataclass
class WorkerJob:
    """一条待处理订单"""

    row: int
    session_id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"rowIndex": self.row, "sessionId": self.session_id, "email": self.email}


@dataclass
class WorkerReport:
    """一次 Worker 运行的结果"""

    processed: int = 0
    failed: int = 0
    dry_run: bool = False
    would_process: list[WorkerJob] = field(default_factory=list)
    results: list[dict[str, Any]] = field(default_factory=list)
    renderer_used: bool = False
    renderer_url_safe: str = ""

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "ok": True,
            "rendererUsed": self.renderer_used,
            "rendererUrlSafe": self.renderer_url_safe,
        }
        if self.dry_run:
            body.update({"dryRun": True, "wouldProcess": [job.to_dict() for job in self.would_process]})
        else:
            body.update({"processed": self.processed, "failed": self.failed, "results": self.results})
        return body


class WorkerService:
    """批量处理 queued 订单"""

    def __init__(
        self,
        store: Optional[OrderStore] = None,
        renderer: Optional[RemoteRenderer] = None,
        email: Optional[EmailService] = None,
    ):
        settings = get_settings()
        self.store = store or get_order_store()
        self.renderer = renderer or get_remote_renderer()
        self.email = email or get_email_service()
        self.default_limit = settings.worker_default_limit
        self.max_limit = settings.worker_max_limit

    def clamp_limit(self, limit: Optional[int]) -> int:
        """批量大小限制在 [1, max_limit]"""
        if limit is None:
            limit = self.default_limit
        return max(1, min(self.max_limit, int(limit)))

    def pick_jobs(self, limit: int) -> list[WorkerJob]:
        """按表格顺序取前 limit 个 queued 订单"""
        jobs = [
            WorkerJob(
                row=row,
                session_id=record.session_id,
                email=record.email,
                metadata=record.metadata_dict,
            )
            for row, record in self.store.list_by_status(OrderStatus.QUEUED.value)
        ]
        return jobs[:limit]

    def run(self, limit: Optional[int] = None, dry_run: bool = False) -> WorkerReport:
        """
        执行一次批处理

        单个订单失败不会中断批次；只有读表失败会向上抛出。
        """
        limit = self.clamp_limit(limit)
        report = WorkerReport(
            dry_run=dry_run,
            renderer_used=self.renderer.configured,
            renderer_url_safe=self.renderer.safe_url,
        )

        logger.info(
            f"[worker] start limit={limit}, dry_run={dry_run}, "
            f"renderer={report.renderer_url_safe or '-'}, has_auth={bool(self.renderer.auth)}"
        )

        jobs = self.pick_jobs(limit)
        if dry_run:
            report.would_process = jobs
            return report

        for job in jobs:
            result = self.process(job)
            report.results.append(result)
            if result["ok"]:
                report.processed += 1
            else:
                report.failed += 1

        logger.info(f"[worker] done processed={report.processed}, failed={report.failed}")
        return report

    def process(self, job: WorkerJob) -> dict[str, Any]:
        """处理单个订单，返回结果字典"""
        png_url = None
        try:
            # 开始处理时清空旧的错误和 URL
            self.store.update(job.row, status=OrderStatus.PROCESSING.value, error="", png_url="")

            png_url = self.renderer.render(job.session_id, job.email, job.metadata)
            self.email.send_delivery_email(job.email, png_url, job.session_id)

            self.store.update(job.row, status=OrderStatus.DELIVERED.value, error="", png_url=png_url)
            logger.info(f"[worker] delivered session_id={job.session_id}, row={job.row}")
            return {"sessionId": job.session_id, "rowIndex": job.row, "ok": True, "pngUrl": png_url}

        except Exception as e:
            message = truncate_error(str(e) or "unknown_error")
            try:
                self.store.update(job.row, status=OrderStatus.FAILED.value, error=message, png_url=png_url)
            except Exception as sheet_error:
                logger.error(
                    f"[worker] sheet update failed session_id={job.session_id}, row={job.row}: {sheet_error}"
                )
            logger.error(f"[worker] job failed session_id={job.session_id}, row={job.row}: {message}")
            return {"sessionId": job.session_id, "rowIndex": job.row, "ok": False, "error": message}


# 全局单例
_worker_service: Optional[WorkerService] = None


def get_worker_service() -> WorkerService:
    """获取 Worker 服务单例"""
    global _worker_service
    if _worker_service is None:
        _worker_service = WorkerService()
    return _worker_service

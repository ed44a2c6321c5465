"""
定时 Worker 测试
"""
from conftest import FakeEmail, FakeRemoteRenderer
from myname_fulfillment.core.exceptions import RenderError, StoreError
from myname_fulfillment.models.order_record import OrderRecord
from myname_fulfillment.services.worker_service import WorkerService


def _seed(store, *items):
    for session_id, status in items:
        store.append(
            OrderRecord(
                session_id=session_id,
                email=f"{session_id}@example.com",
                status=status,
                metadata_json='{"english_name": "Li Lei"}',
            )
        )


def _worker(store, renderer=None, email=None):
    worker = WorkerService(store=store, renderer=renderer or FakeRemoteRenderer(), email=email or FakeEmail())
    worker.default_limit = 3
    worker.max_limit = 10
    return worker


def test_clamp_limit() -> None:
    worker = WorkerService(store=object(), renderer=FakeRemoteRenderer(), email=FakeEmail())
    worker.default_limit = 3
    worker.max_limit = 10

    assert worker.clamp_limit(None) == 3
    assert worker.clamp_limit(0) == 1
    assert worker.clamp_limit(-5) == 1
    assert worker.clamp_limit(50) == 10


def test_processes_only_queued_rows_in_order(store, remote_renderer) -> None:
    _seed(store, ("cs_1", "queued"), ("cs_2", "delivered"), ("cs_3", "failed"), ("cs_4", "queued"))
    email = FakeEmail()

    report = _worker(store, remote_renderer, email).run()

    assert report.processed == 2
    assert report.failed == 0
    assert [call[0] for call in remote_renderer.calls] == ["cs_1", "cs_4"]
    assert remote_renderer.calls[0][2] == {"english_name": "Li Lei"}
    assert store.get("cs_1").status == "delivered"
    assert store.get("cs_1").png_url == "https://blob.example.com/orders/cs_1.png"
    assert store.get("cs_3").status == "failed"
    assert [sent[0] for sent in email.sent] == ["cs_1@example.com", "cs_4@example.com"]


def test_batch_limit(store, remote_renderer) -> None:
    _seed(store, *[(f"cs_{i}", "queued") for i in range(5)])

    report = _worker(store, remote_renderer).run(limit=2)

    assert report.processed == 2
    assert len(store.list_by_status("queued")) == 3


def test_dry_run_does_not_mutate(store, remote_renderer) -> None:
    _seed(store, ("cs_1", "queued"))

    report = _worker(store, remote_renderer).run(dry_run=True)

    body = report.to_response()
    assert body["dryRun"] is True
    assert body["wouldProcess"] == [{"rowIndex": 2, "sessionId": "cs_1", "email": "cs_1@example.com"}]
    assert remote_renderer.calls == []
    assert store.get("cs_1").status == "queued"


def test_render_failure_marks_failed_and_continues(store) -> None:
    _seed(store, ("cs_1", "queued"), ("cs_2", "queued"))

    class FlakyRenderer(FakeRemoteRenderer):
        def render(self, session_id, email, metadata):
            if session_id == "cs_1":
                raise RenderError("Renderer timeout (15s)")
            return super().render(session_id, email, metadata)

    report = _worker(store, FlakyRenderer()).run()

    assert report.processed == 1
    assert report.failed == 1
    assert report.results[0] == {"sessionId": "cs_1", "rowIndex": 2, "ok": False, "error": "Renderer timeout (15s)"}
    failed = store.get("cs_1")
    assert failed.status == "failed"
    assert failed.error == "Renderer timeout (15s)"
    assert failed.png_url == ""
    assert store.get("cs_2").status == "delivered"


def test_failure_while_recording_failure_does_not_stop_batch(store) -> None:
    _seed(store, ("cs_1", "queued"), ("cs_2", "queued"))

    class FailingUpdateStore:
        """第一行的所有写入都失败"""

        def __init__(self, inner):
            self.inner = inner

        def list_by_status(self, status):
            return self.inner.list_by_status(status)

        def update(self, row, **kwargs):
            if row == 2:
                raise StoreError("quota exceeded")
            return self.inner.update(row, **kwargs)

    report = _worker(FailingUpdateStore(store)).run()

    assert report.failed == 1
    assert report.processed == 1
    assert report.results[0]["error"] == "quota exceeded"


def test_no_queued_rows(store) -> None:
    report = _worker(store).run()

    body = report.to_response()
    assert body["processed"] == 0
    assert body["failed"] == 0
    assert body["rendererUsed"] is True
    assert body["rendererUrlSafe"] == "https://renderer.example.com/render"

"""
测试配置
"""
import hashlib
import hmac
import json
import os
import sys
import time

import pytest

# 添加 src 目录到 Python 路径
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

# 设置测试环境变量（必须在导入 myname_fulfillment 之前）
TEST_WEBHOOK_SECRET = "whsec_test_secret"
os.environ["STRIPE_WEBHOOK_SECRET"] = TEST_WEBHOOK_SECRET
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STATE_BACKEND"] = "database"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FULFILLMENT_MODE"] = "inline"
os.environ["CRON_SECRET"] = ""
os.environ["RENDER_URL"] = ""
os.environ["RENDER_AUTH"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["BLOB_READ_WRITE_TOKEN"] = "blob-test-token"

from myname_fulfillment.core.exceptions import StoreError  # noqa: E402
from myname_fulfillment.services.state_store import SqlOrderStore  # noqa: E402


def sign_payload(payload: str, secret: str = TEST_WEBHOOK_SECRET, timestamp: int = None) -> str:
    """按 Stripe 的方式生成 Stripe-Signature 请求头"""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_event(
    session_id: str = "cs_test_123",
    email: str = "buyer@example.com",
    metadata: dict = None,
    event_type: str = "checkout.session.completed",
) -> dict:
    """构造 checkout.session.completed 事件"""
    return {
        "id": "evt_test_1",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "customer_details": {"email": email},
                "customer_email": None,
                "metadata": {"chinese_name": "李雷", "english_name": "Li Lei"} if metadata is None else metadata,
            }
        },
    }


def event_body(event: dict) -> str:
    return json.dumps(event, ensure_ascii=False)


class FakeRenderer:
    """本地渲染器替身"""

    def __init__(self, error: Exception = None):
        self.error = error
        self.calls = []

    def render(self, chinese_name, english_name, session_id=""):
        self.calls.append((chinese_name, english_name, session_id))
        if self.error:
            raise self.error
        return b"\x89PNG fake"


class FakeBlob:
    """Blob 存储替身"""

    def __init__(self, error: Exception = None):
        self.error = error
        self.uploads = []

    def order_key(self, session_id):
        return f"orders/{session_id}.png"

    def put(self, pathname, data, content_type="image/png"):
        if self.error:
            raise self.error
        self.uploads.append((pathname, data, content_type))
        return f"https://blob.example.com/{pathname}"


class FakeEmail:
    """邮件服务替身"""

    def __init__(self, error: Exception = None, enabled: bool = True):
        self.error = error
        self.enabled = enabled
        self.sent = []

    def send_delivery_email(self, to, png_url, session_id):
        if self.error:
            raise self.error
        if not self.enabled or not to:
            return False
        self.sent.append((to, png_url, session_id))
        return True


class FakeRemoteRenderer:
    """远程渲染服务替身"""

    def __init__(self, error: Exception = None):
        self.error = error
        self.calls = []
        self.auth = "render-secret"
        self.configured = True
        self.safe_url = "https://renderer.example.com/render"

    def render(self, session_id, email, metadata):
        self.calls.append((session_id, email, metadata))
        if self.error:
            raise self.error
        return f"https://blob.example.com/orders/{session_id}.png"


class FakeResponse:
    """requests.Response 替身"""

    def __init__(self, status_code: int = 200, payload=None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text or (json.dumps(payload) if payload is not None else "")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self):
        import requests

        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture
def store():
    """内存订单存储"""
    return SqlOrderStore.in_memory()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def blob():
    return FakeBlob()


@pytest.fixture
def email():
    return FakeEmail()


@pytest.fixture
def remote_renderer():
    return FakeRemoteRenderer()


class FlakyStore(SqlOrderStore):
    """写入指定状态时失败的内存存储"""

    failing_statuses: set = set()

    def update(self, row, status=None, error=None, png_url=None, metadata=None):
        if status in self.failing_statuses:
            raise StoreError("sheet down")
        return super().update(row, status=status, error=error, png_url=png_url, metadata=metadata)

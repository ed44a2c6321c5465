"""
订单状态存储测试
"""
import pytest

from myname_fulfillment.core.exceptions import StoreError
from myname_fulfillment.models.order_record import OrderRecord, OrderStatus
from myname_fulfillment.services.state_store import SheetsOrderStore


class FakeCell:
    def __init__(self, value):
        self.value = value


class FakeWorksheet:
    """只实现 SheetsOrderStore 用到的 gspread Worksheet 方法"""

    def __init__(self, rows=None):
        self.rows = [list(r) for r in (rows or [["session_id", "email", "status"]])]
        self.batch_calls = []

    def _ensure(self, row):
        while len(self.rows) < row:
            self.rows.append([])

    def col_values(self, col):
        return [r[col - 1] if len(r) >= col else "" for r in self.rows]

    def row_values(self, row):
        return list(self.rows[row - 1]) if row <= len(self.rows) else []

    def acell(self, label):
        col = ord(label[0]) - ord("A")
        row = int(label[1:])
        cells = self.row_values(row)
        return FakeCell(cells[col] if col < len(cells) else None)

    def append_row(self, values, value_input_option=None, insert_data_option=None, table_range=None):
        self.rows.append(list(values))

    def batch_update(self, data, value_input_option=None):
        self.batch_calls.append(data)
        for item in data:
            label = item["range"]
            col = ord(label[0]) - ord("A")
            row = int(label[1:])
            self._ensure(row)
            cells = self.rows[row - 1]
            while len(cells) <= col:
                cells.append("")
            cells[col] = item["values"][0][0]

    def get_all_values(self):
        return [list(r) for r in self.rows]


class BrokenWorksheet(FakeWorksheet):
    def col_values(self, col):
        raise RuntimeError("quota exceeded")


def _record(session_id, status=OrderStatus.QUEUED.value, email="a@example.com"):
    return OrderRecord(session_id=session_id, email=email, status=status)


class TestSqlOrderStore:
    """SQLModel 存储"""

    def test_append_and_find(self, store):
        row = store.append(_record("cs_1"))
        assert row == 2
        assert store.append(_record("cs_2")) == 3

        assert store.find_row("cs_1") == 2
        assert store.find_row("cs_2") == 3
        assert store.find_row("cs_missing") is None

    def test_get_status_and_record(self, store):
        row = store.append(_record("cs_1", status=OrderStatus.PROCESSING.value))

        assert store.get_status(row) == "processing"
        record = store.get("cs_1")
        assert record.email == "a@example.com"
        assert record.created_at

    def test_update_only_given_cells(self, store):
        row = store.append(_record("cs_1"))
        store.update(row, status=OrderStatus.FAILED.value, error="boom")
        store.update(row, png_url="https://x/y.png")

        record = store.get_row(row)
        assert record.status == "failed"
        assert record.error == "boom"
        assert record.png_url == "https://x/y.png"
        assert record.email == "a@example.com"

    def test_update_truncates_error(self, store):
        row = store.append(_record("cs_1"))
        store.update(row, error="x" * 2000)
        assert len(store.get_row(row).error) == 500

    def test_update_missing_row_raises(self, store):
        with pytest.raises(StoreError):
            store.update(99, status="failed")

    def test_duplicate_session_rejected(self, store):
        store.append(_record("cs_1"))
        with pytest.raises(StoreError):
            store.append(_record("cs_1"))

    def test_list_by_status_keeps_order(self, store):
        store.append(_record("cs_1", status="queued"))
        store.append(_record("cs_2", status="delivered"))
        store.append(_record("cs_3", status="QUEUED "))

        queued = store.list_by_status("queued")
        assert [(row, r.session_id) for row, r in queued] == [(2, "cs_1"), (4, "cs_3")]


class TestSheetsOrderStore:
    """Google Sheets 存储（gspread Worksheet 替身）"""

    def test_find_row_skips_header_and_trims(self):
        ws = FakeWorksheet([["session_id"], ["cs_a"], ["  cs_b  "]])
        store = SheetsOrderStore(worksheet=ws)

        assert store.find_row("cs_b") == 3
        assert store.find_row("session_id") is None

    def test_append_writes_full_row(self):
        ws = FakeWorksheet()
        store = SheetsOrderStore(worksheet=ws)

        row = store.append(
            OrderRecord(
                session_id="cs_1",
                email="a@example.com",
                status="processing",
                metadata_json='{"english_name": "Li"}',
            )
        )

        assert row == 2
        assert ws.rows[1][0] == "cs_1"
        assert ws.rows[1][2] == "processing"
        assert ws.rows[1][7] == '{"english_name": "Li"}'

    def test_update_batches_cells(self):
        ws = FakeWorksheet([["session_id"], ["cs_1", "a@example.com", "queued", "t0", "t0", "", ""]])
        store = SheetsOrderStore(worksheet=ws)

        store.update(2, status="delivered", error="", png_url="https://x/cs_1.png")

        assert len(ws.batch_calls) == 1
        ranges = {item["range"] for item in ws.batch_calls[0]}
        assert ranges == {"C2", "E2", "F2", "G2"}
        assert store.get_status(2) == "delivered"
        assert ws.rows[1][6] == "https://x/cs_1.png"
        assert ws.rows[1][4] != "t0"

    def test_short_rows_are_padded(self):
        ws = FakeWorksheet([["session_id"], ["cs_1", "a@example.com", "Queued"]])
        store = SheetsOrderStore(worksheet=ws)

        record = store.get("cs_1")
        assert record.status == "queued"
        assert record.png_url == ""
        assert record.metadata_dict == {}

    def test_api_failure_becomes_store_error(self):
        store = SheetsOrderStore(worksheet=BrokenWorksheet())

        with pytest.raises(StoreError, match="quota exceeded"):
            store.find_row("cs_1")

    def test_missing_credentials_raise_configuration_error(self, monkeypatch):
        from myname_fulfillment.core import get_settings
        from myname_fulfillment.core.exceptions import ConfigurationError

        monkeypatch.setattr(get_settings(), "google_service_account_json", "")
        store = SheetsOrderStore()

        with pytest.raises(ConfigurationError, match="GOOGLE_SERVICE_ACCOUNT_JSON"):
            store.find_row("cs_1")

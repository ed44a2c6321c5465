"""
订单记录模型测试
"""
from myname_fulfillment.models.order_record import (
    OrderRecord,
    normalize_status,
    now_iso,
    seconds_since,
    truncate_error,
)


def test_from_row_pads_missing_cells() -> None:
    record = OrderRecord.from_row([" cs_1 ", "a@example.com"])

    assert record.session_id == "cs_1"
    assert record.status == ""
    assert record.error == ""
    assert record.metadata_json == "{}"


def test_row_roundtrip_keeps_column_order() -> None:
    record = OrderRecord(
        session_id="cs_1",
        email="a@example.com",
        status="delivered",
        created_at="2026-01-01T00:00:00.000Z",
        updated_at="2026-01-01T00:00:01.000Z",
        error="",
        png_url="https://x/cs_1.png",
        metadata_json="{}",
    )

    row = record.to_row()
    assert row[0] == "cs_1"
    assert row[2] == "delivered"
    assert row[6] == "https://x/cs_1.png"
    assert OrderRecord.from_row(row).is_terminal


def test_metadata_dict_tolerates_bad_json() -> None:
    assert OrderRecord(session_id="cs_1", metadata_json="not json").metadata_dict == {}
    assert OrderRecord(session_id="cs_1", metadata_json="[1, 2]").metadata_dict == {}


def test_dump_metadata_keeps_unicode() -> None:
    assert OrderRecord.dump_metadata({"chinese_name": "李雷"}) == '{"chinese_name": "李雷"}'
    assert OrderRecord.dump_metadata(None) == "{}"


def test_status_and_error_helpers() -> None:
    assert normalize_status(" Delivered ") == "delivered"
    assert normalize_status(None) == ""
    assert truncate_error("e" * 600) == "e" * 500
    assert now_iso().endswith("Z")


def test_seconds_since_parses_sheet_timestamps() -> None:
    assert seconds_since("2020-01-01T00:00:00.000Z") > 3600
    assert 0 <= seconds_since(now_iso()) < 60
    assert seconds_since("") is None
    assert seconds_since("not a date") is None

"""Test CSV, JSON and summary exports."""

import csv
import json
from datetime import date, datetime, timedelta

import pytest

from exporters import CSVExporter, JSONExporter, SummaryGenerator
from models import (
    BatchOutcome,
    BatchState,
    BatchStatistics,
    Invoice,
    InvoiceStatus,
    ItemOutcome,
)
from processors import InMemoryInvoiceStore


def _read_csv(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


@pytest.fixture
def processed(b2c_invoice, b2b_invoice):
    issued = b2c_invoice.model_copy(
        update={
            "status": InvoiceStatus.SUCCESS,
            "invoice_number": "AB00000001",
            "random_number": "1234",
            "create_time": "2024-03-05 10:30:00",
        }
    )
    failed = b2b_invoice.model_copy(update={"status": InvoiceStatus.FAILED, "error": "商品總金額錯誤"})
    empty = Invoice(merchant_order_no="ORDER004")
    return [issued, failed, empty]


def test_csv_normalized(tmp_path, processed):
    """Test normalized export writes an invoice file and an item file."""
    files = CSVExporter(tmp_path, "normalized").export(processed, "batch")

    invoices = _read_csv(files["invoices"])
    items = _read_csv(files["items"])

    assert files["invoices"].name.startswith("batch_")
    assert [row["merchant_order_no"] for row in invoices] == ["ORDER001", "ORDER002", "ORDER004"]
    assert invoices[0]["total_amt"] == "263"
    assert invoices[0]["invoice_number"] == "AB00000001"
    assert invoices[1]["status"] == "failed"
    assert invoices[1]["error"] == "商品總金額錯誤"
    assert len(items) == 3
    assert items[0]["merchant_order_no"] == "ORDER001"
    assert items[0]["amount"] == "200"
    assert items[2]["line_number"] == "1"


def test_csv_denormalized(tmp_path, processed):
    """Test denormalized export repeats invoice fields per item."""
    files = CSVExporter(tmp_path, "denormalized").export(processed)

    rows = _read_csv(files["invoices"])

    assert list(files) == ["invoices"]
    assert len(rows) == 4
    assert [row["name"] for row in rows[:2]] == ["筆記本", "原子筆"]
    assert rows[0]["merchant_order_no"] == rows[1]["merchant_order_no"] == "ORDER001"
    assert rows[3]["merchant_order_no"] == "ORDER004"
    assert rows[3]["name"] == ""


def test_csv_rejects_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        CSVExporter(tmp_path, "wide")


def test_csv_empty_export(tmp_path):
    assert CSVExporter(tmp_path).export([]) == {}


def test_json_file_name():
    assert JSONExporter.file_name(date(2024, 3, 5)) == "invoices-2024-03-05.json"


def test_json_strips_lifecycle_fields_and_reloads(tmp_path, processed):
    """Test the JSON export can be loaded again as a fresh queue."""
    path = JSONExporter(tmp_path).export(processed, tmp_path / "queue.json")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert len(data) == 3
    for entry in data:
        assert not {"status", "invoice_number", "random_number", "create_time", "error"} & set(entry)
    assert "carrier_type" not in data[0]

    store = InMemoryInvoiceStore.load_json(path)
    assert [invoice.status for invoice in store] == [InvoiceStatus.PENDING] * 3
    assert store.get("ORDER001").items[0].unit_price == 100


def test_json_empty_export(tmp_path):
    assert JSONExporter(tmp_path).export([]) is None


def test_summary_report(tmp_path, processed):
    started = datetime(2024, 3, 5, 10, 0, 0)
    outcome = BatchOutcome(
        batch_id="abc123",
        state=BatchState.COMPLETED,
        statistics=BatchStatistics(
            total=3, processed=3, successful=1, failed=1, skipped=1, percentage=100
        ),
        started_at=started,
        completed_at=started + timedelta(seconds=12),
        items=[
            ItemOutcome(merchant_order_no="ORDER001", status="success", invoice_number="AB00000001"),
            ItemOutcome(merchant_order_no="ORDER002", status="failed", error="商品總金額錯誤"),
            ItemOutcome(merchant_order_no="ORDER004", status="skipped"),
        ],
    )

    path = SummaryGenerator(tmp_path).generate_summary(outcome, processed, vendor_name="ezPay")
    content = path.read_text(encoding="utf-8")

    assert path.name.startswith("BATCH_SUMMARY_")
    assert "**Batch:** abc123 (completed)" in content
    assert "**Vendor:** ezPay" in content
    assert "- **Successful:** 1 (33.3%)" in content
    assert "- **Duration:** 12.0s" in content
    assert "| failed | 1 |" in content
    assert "NT$263" in content
    assert "| ORDER002 | 商品總金額錯誤 |" in content
    assert "failed. Review the vendor messages" in content


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

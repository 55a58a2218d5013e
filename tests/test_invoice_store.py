"""Test the in-memory invoice store."""

import json
import random
import re

import pytest

from models import Invoice, InvoiceStatus, InvoiceValidationError
from processors import InMemoryInvoiceStore


def _invoice(order_no: str = "") -> Invoice:
    return Invoice.model_validate(
        {"merchant_order_no": order_no, "items": [{"name": "Item", "price": 100}]}
    )


def test_generated_order_numbers_use_prefix():
    store = InMemoryInvoiceStore(order_no_prefix="LAZYINVOICE888", rng=random.Random(7))

    stored = store.add(_invoice())

    assert re.fullmatch(r"LAZYINVOICE888[0-9A-Z]{6}", stored.merchant_order_no)
    assert stored.merchant_order_no in store


def test_duplicate_order_numbers_get_suffixes():
    store = InMemoryInvoiceStore([_invoice("A001"), _invoice("A001"), _invoice("A001")])

    assert [invoice.merchant_order_no for invoice in store] == ["A001", "A001_1", "A001_2"]


def test_update_replaces_fields_and_keeps_order():
    store = InMemoryInvoiceStore([_invoice("A001"), _invoice("A002")])

    updated = store.update("A001", status=InvoiceStatus.FAILED, error="boom")

    assert updated.status == InvoiceStatus.FAILED
    assert store.get("A001").error == "boom"
    assert [invoice.merchant_order_no for invoice in store] == ["A001", "A002"]


def test_update_unknown_order_raises():
    store = InMemoryInvoiceStore()

    with pytest.raises(KeyError):
        store.update("missing", status=InvoiceStatus.FAILED)


def test_snapshot_is_independent_of_later_adds():
    store = InMemoryInvoiceStore([_invoice("A001")])

    snapshot = store.snapshot()
    store.add(_invoice("A002"))

    assert len(snapshot) == 1
    assert len(store) == 2


def test_load_json_list(tmp_path):
    path = tmp_path / "invoices.json"
    path.write_text(
        json.dumps(
            [
                {"merchant_order_no": "A001", "items": [{"name": "Pen", "count": 2, "price": "NT$1,000"}]},
                {"items": [{"name": "Paper", "price": 50}]},
            ]
        ),
        encoding="utf-8",
    )

    store = InMemoryInvoiceStore.load_json(path, order_no_prefix="TEST")

    invoices = store.snapshot()
    assert len(invoices) == 2
    assert invoices[0].items[0].unit_price == 1000
    assert invoices[1].merchant_order_no.startswith("TEST")


def test_load_json_wrapped(tmp_path):
    path = tmp_path / "invoices.json"
    path.write_text(json.dumps({"invoices": [{"merchant_order_no": "A001"}]}), encoding="utf-8")

    store = InMemoryInvoiceStore.load_json(path)

    assert store.get("A001") is not None


def test_load_json_tolerates_unrounded_amounts(tmp_path):
    """Test caller-computed amounts never reject the queue file."""
    path = tmp_path / "invoices.json"
    path.write_text(
        json.dumps(
            [
                {
                    "merchant_order_no": "A001",
                    "items": [{"name": "a", "count": 1, "price": 250, "amt": 262.5}],
                    "tax_amt": 12.5,
                }
            ]
        ),
        encoding="utf-8",
    )

    store = InMemoryInvoiceStore.load_json(path)

    assert store.get("A001").recalculate().total_amt == 263


def test_load_json_invalid_entry(tmp_path):
    path = tmp_path / "invoices.json"
    path.write_text(json.dumps([{"tax_type": "7"}]), encoding="utf-8")

    with pytest.raises(InvoiceValidationError, match="Invoice #1"):
        InMemoryInvoiceStore.load_json(path)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

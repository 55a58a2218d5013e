"""Test the canonical invoice model and amount derivation."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from models import CarrierSelection, Invoice, InvoiceStatus, Item, ItemTaxType, TaxType


def _invoice(**fields):
    data = {
        "merchant_order_no": "ORDER001",
        "items": [
            {"name": "A", "count": 2, "price": 100},
            {"name": "B", "count": 1, "price": 50},
        ],
    }
    data.update(fields)
    return Invoice.model_validate(data)


def test_recalculate_standard_tax():
    """250 at 5%: tax round(12.5) = 13, total 263."""
    invoice = _invoice().recalculate()

    assert invoice.amt == 250
    assert invoice.sales_amount == 250
    assert invoice.tax_amt == 13
    assert invoice.total_amt == 263
    assert [item.amount for item in invoice.items] == [200, 50]


def test_recalculate_discards_caller_amounts():
    invoice = _invoice(amt=1, tax_amt=1, total_amt=2).recalculate()

    assert invoice.total_amt == 263


def test_recalculate_returns_copy():
    original = _invoice()
    original.recalculate()

    assert original.total_amt == 0


def test_recalculate_zero_rated_and_exempt():
    zero = _invoice(tax_type="2").recalculate()
    free = _invoice(tax_type=3).recalculate()

    assert zero.zero_tax_sales_amount == 250
    assert zero.tax_amt == 0
    assert zero.total_amt == 250
    assert free.free_tax_sales_amount == 250
    assert free.total_amt == 250


def test_recalculate_special_rate_uses_invoice_rate():
    invoice = _invoice(tax_type="4", tax_rate=10).recalculate()

    assert invoice.tax_type == TaxType.SPECIAL
    assert invoice.tax_amt == 25
    assert invoice.total_amt == 275


def test_recalculate_mixed():
    invoice = Invoice.model_validate(
        {
            "tax_type": "9",
            "items": [
                {"name": "Taxed", "count": 1, "price": 1000, "tax_type": "1"},
                {"name": "Zero", "count": 1, "price": 300, "tax_type": "2_1"},
                {"name": "Free", "count": 1, "price": 200, "tax_type": "3"},
            ],
        }
    ).recalculate()

    assert invoice.sales_amount == 1000
    assert invoice.zero_tax_sales_amount == 300
    assert invoice.free_tax_sales_amount == 200
    assert invoice.tax_amt == 50
    assert invoice.total_amt == 1550


def test_item_aliases_and_price_parsing():
    item = Item.model_validate(
        {"name": "X", "count": 3, "price": "NT$1,200", "tax_type": "2_2"}
    )

    assert item.quantity == 3
    assert item.unit_price == Decimal("1200")
    assert item.item_tax_type == ItemTaxType.ZERO_RATED_COMPOSITE
    assert item.item_tax_type.is_zero_rated
    assert item.item_tax_type.wire_value == "2"


def test_item_quantity_must_be_positive():
    with pytest.raises(ValidationError):
        Item.model_validate({"name": "X", "count": 0, "price": 1})


def test_status_alias_and_date_parsing():
    invoice = _invoice(_status="success", invoice_date="2024/03/05")

    assert invoice.status == InvoiceStatus.SUCCESS
    assert invoice.invoice_date == date(2024, 3, 5)


def test_donate_carrier_becomes_love_code():
    invoice = _invoice(carrier_type="donate", carrier_num="919")

    assert invoice.love_code == "919"
    assert invoice.carrier_type is None
    assert invoice.carrier_num == ""
    assert invoice.carrier_selection() == CarrierSelection.DONATION


def test_carrier_and_love_code_are_exclusive():
    with pytest.raises(ValidationError, match="mutually exclusive"):
        _invoice(carrier_type="0", carrier_num="/ABC+123", love_code="919")


def test_carrier_selection():
    assert _invoice().carrier_selection() == CarrierSelection.PRINT
    assert _invoice(carrier_type="print").carrier_selection() == CarrierSelection.PRINT
    assert (
        _invoice(carrier_type="0", carrier_num="/ABC+123").carrier_selection()
        == CarrierSelection.CARRIER
    )
    assert (
        _invoice(category="B2B", buyer_ubn="12345678", carrier_type="0").carrier_selection()
        == CarrierSelection.PRINT
    )


def test_validate_for_submission():
    assert _invoice().validate_for_submission() == []

    problems = Invoice(category="B2B").validate_for_submission()

    assert "At least one item is required" in problems
    assert "B2B invoices require buyer_ubn" in problems


def test_enum_members_accepted_and_dump_round_trips():
    """Test enum members, not only their raw values, validate."""
    item = Item(name="Export", count=1, price=300, item_tax_type=ItemTaxType.ZERO_RATED)
    invoice = Invoice(
        merchant_order_no="ORDER009",
        tax_type=TaxType.MIXED,
        items=[item, Item(name="Taxed", count=1, price=100, item_tax_type=ItemTaxType.TAXABLE)],
    )

    reloaded = Invoice.model_validate(invoice.model_dump())
    from_json = Invoice.model_validate_json(invoice.model_dump_json())

    assert item.item_tax_type == ItemTaxType.ZERO_RATED
    assert invoice.tax_type == TaxType.MIXED
    assert reloaded == invoice
    assert from_json.tax_type == TaxType.MIXED
    assert from_json.items[0].item_tax_type == ItemTaxType.ZERO_RATED


def test_caller_amounts_are_lenient():
    """Test unrounded or junk derived amounts do not reject the invoice."""
    invoice = Invoice.model_validate(
        {
            "items": [{"name": "a", "count": 1, "price": 250, "amt": 262.5}],
            "tax_amt": 12.5,
            "total_amt": "n/a",
        }
    )

    assert invoice.items[0].amount == 263
    assert invoice.tax_amt == 13
    assert invoice.total_amt == 0

    recalculated = invoice.recalculate()
    assert recalculated.items[0].amount == 250
    assert recalculated.tax_amt == 13
    assert recalculated.total_amt == 263


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""Test the SmilePay adapter and its XML response parsing."""

from datetime import date

import pytest

from adapters.smilepay import parse_xml_response
from models import EncryptionError, Invoice, ParseError, VendorType
from tests.conftest import CREDENTIALS, make_adapter
from utils.crypto import js_string_hash

CREDENTIAL = CREDENTIALS[VendorType.SMILEPAY]

SUCCESS_XML = """<?xml version="1.0" encoding="utf-8"?>
<SmilePayEinvoice>
  <Status>0</Status>
  <Desc>成功</Desc>
  <Grvc>SEI1000034</Grvc>
  <InvoiceNumber>AB12345678</InvoiceNumber>
  <RandomNumber>1234</RandomNumber>
  <InvoiceDate>2024/03/05</InvoiceDate>
  <InvoiceTime>10:30:00</InvoiceTime>
</SmilePayEinvoice>"""

FAILURE_XML = """<?xml version="1.0" encoding="utf-8"?>
<SmilePayEinvoice><Status>-10066</Status><Desc>Dcvc 驗證錯誤</Desc></SmilePayEinvoice>"""


@pytest.fixture
def adapter(gateway):
    return make_adapter(VendorType.SMILEPAY, gateway)


def test_parse_xml_response():
    fields = parse_xml_response(SUCCESS_XML)

    assert fields["Status"] == "0"
    assert fields["Desc"] == "成功"
    assert fields["InvoiceNumber"] == "AB12345678"
    assert "CancelTime" not in fields


def test_parse_xml_recovers_from_unclosed_tags():
    fields = parse_xml_response("<SmilePayEinvoice><Status>0</Status><Desc>ok")

    assert fields["Status"] == "0"


@pytest.mark.parametrize("body", ["", "   ", "not xml at all"])
def test_parse_xml_rejects_garbage(body):
    with pytest.raises(ParseError):
        parse_xml_response(body)


def test_transform_tax_inclusive_prices(adapter, b2c_invoice):
    params = adapter.transform(b2c_invoice.recalculate())

    assert params["InvoiceDate"] == "2024/03/05"
    assert params["InvoiceTime"] == "10:30:00"
    assert params["Intype"] == "07"
    assert params["UnitPrice"] == "105|53"
    assert params["Amount"] == "210|53"
    assert params["AllAmount"] == 263
    assert params["Description"] == "筆記本|原子筆"
    assert params["DonateMark"] == "0"
    assert params["orderid"] == "ORDER001"


def test_transform_tax_exempt_prices_unchanged(adapter, b2c_invoice):
    invoice = Invoice.model_validate({**b2c_invoice.model_dump(), "tax_type": "3"})

    params = adapter.transform(invoice.recalculate())

    assert params["UnitPrice"] == "100|50"
    assert params["AllAmount"] == 250


def test_transform_carriers(adapter, b2c_invoice):
    mobile = adapter.transform(
        b2c_invoice.model_copy(update={"carrier_type": "3J0002", "carrier_num": "/ABC+123"})
    )
    member = adapter.transform(
        b2c_invoice.model_copy(update={"carrier_type": "EJ0113", "carrier_num": "x"})
    )

    assert mobile["CarrierID"] == "/ABC+123"
    assert mobile["CarrierID2"] == "SMPAY_" + js_string_hash("/ABC+123")[:8]
    assert member["CarrierID"] == ""
    assert member["CarrierID2"] == ""


def test_transform_donation(adapter, donation_invoice):
    params = adapter.transform(donation_invoice.recalculate())

    assert params["DonateMark"] == "1"
    assert params["LoveKey"] == "919"
    assert "CarrierType" not in params


def test_transform_b2b(adapter, b2b_invoice):
    params = adapter.transform(b2b_invoice.recalculate())

    assert params["Buyer_id"] == "12345678"
    assert params["UnitTAX"] == "Y"
    assert params["DonateMark"] == "0"


def test_sign_round_trip(adapter, b2c_invoice):
    params = adapter.transform(b2c_invoice.recalculate())

    body = adapter.encrypt(params, CREDENTIAL)

    assert body["Grvc"] == "SEI1000034"
    assert len(body["Dcvc"]) == 64
    assert body["Dcvc"] == body["Dcvc"].upper()
    assert adapter.decrypt(body, CREDENTIAL) == params


def test_tampered_body_fails_verification(adapter, b2c_invoice):
    body = adapter.encrypt(adapter.transform(b2c_invoice.recalculate()), CREDENTIAL)
    body["AllAmount"] = 1

    with pytest.raises(EncryptionError):
        adapter.decrypt(body, CREDENTIAL)


async def test_create_success(gateway, adapter, b2c_invoice):
    gateway.responder = lambda request: SUCCESS_XML

    result = await adapter.create(b2c_invoice)

    assert result.success
    assert result.invoice_number == "AB12345678"
    assert result.random_number == "1234"
    assert result.create_time == "2024/03/05 10:30:00"


async def test_create_time_falls_back_to_date(gateway, adapter, b2c_invoice):
    gateway.responder = lambda request: (
        "<SmilePayEinvoice><Status>0</Status><InvoiceNumber>AB12345678</InvoiceNumber>"
        "<InvoiceDate>2024/03/05</InvoiceDate></SmilePayEinvoice>"
    )

    result = await adapter.create(b2c_invoice)

    assert result.create_time == "2024/03/05"


async def test_create_failure_surfaces_desc(gateway, adapter, b2c_invoice):
    gateway.responder = lambda request: FAILURE_XML

    result = await adapter.create(b2c_invoice)

    assert not result.success
    assert result.error == "Dcvc 驗證錯誤"
    assert result.error_type == "vendor_rejection"


async def test_create_unparseable_response(gateway, adapter, b2c_invoice):
    gateway.responder = lambda request: "<Root><Desc>no status</Desc></Root>"

    result = await adapter.create(b2c_invoice)

    assert result.error_type == "parse"


async def test_void(gateway, adapter):
    gateway.responder = lambda request: (
        "<SmilePayEinvoice><Status>0</Status><InvoiceNumber>AB12345678</InvoiceNumber>"
        "<CancelTime>2024/03/06 09:00:00</CancelTime></SmilePayEinvoice>"
    )

    result = await adapter.void("AB12345678", "wrong buyer", invoice_date=date(2024, 3, 1))

    assert result.success
    assert result.cancel_time == "2024/03/06 09:00:00"
    sent = gateway.requests[0].data
    assert sent["types"] == "Cancel"
    assert sent["InvoiceDate"] == "2024/03/01"
    assert sent["CancelReason"] == "wrong buyer"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

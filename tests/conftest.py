"""Shared fixtures: a scripted gateway, vendor credentials and sample invoices."""

import inspect
import json
from datetime import datetime

import pytest

from adapters.factory import ADAPTER_CLASSES
from models import Invoice, PlatformConfig, VendorType
from processors.relay_client import Gateway

FIXED_NOW = datetime(2024, 3, 5, 10, 30, 0)
FIXED_TIMESTAMP = 1709605800

CREDENTIALS = {
    VendorType.EZPAY: {
        "merchant_id": "MS12345678",
        "hash_key": "abcdefghijklmnopqrstuvwxyz123456",
        "hash_iv": "1234567890abcdef",
    },
    VendorType.ECPAY: {
        "merchant_id": "2000132",
        "hash_key": "ejCk326UnaZWKisg",
        "hash_iv": "q9jcZX8Ib9LM8wYk",
    },
    VendorType.OPAY: {
        "merchant_id": "2000132",
        "hash_key": "ejCk326UnaZWKisg",
        "hash_iv": "q9jcZX8Ib9LM8wYk",
    },
    VendorType.SMILEPAY: {
        "grvc": "SEI1000034",
        "verify_key": "9D73935693EE0237FABA6AB744E48661",
    },
    VendorType.AMEGO: {
        "ubn": "12345678",
        "app_key": "sHeq7t8G1wiQvhAuIM27",
    },
}


class FakeGateway(Gateway):
    """Gateway that records requests and answers from a responder callable."""

    def __init__(self, responder=None, timeout: float = 5):
        super().__init__(timeout=timeout)
        self.responder = responder or (lambda request: {})
        self.requests = []

    async def _send(self, request):
        self.requests.append(request)
        result = self.responder(request)
        if inspect.isawaitable(result):
            result = await result
        return result


def make_adapter(vendor: VendorType, gateway: Gateway, credential=None):
    """Adapter for ``vendor`` with test credentials and a frozen clock."""
    platform_config = PlatformConfig(
        provider=vendor,
        test=CREDENTIALS[vendor] if credential is None else credential,
    )
    adapter = ADAPTER_CLASSES[vendor](platform_config, gateway)
    adapter.timestamp = lambda: FIXED_TIMESTAMP
    adapter.now = lambda: FIXED_NOW
    return adapter


def ezpay_success(invoice_number: str = "AB00000001") -> dict:
    return {
        "Status": "SUCCESS",
        "Message": "發票開立成功",
        "Result": json.dumps(
            {
                "InvoiceNumber": invoice_number,
                "RandomNum": "1234",
                "CreateTime": "2024-03-05 10:30:00",
            }
        ),
    }


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def b2c_invoice():
    """Two items, 5% tax: amt 250, tax 13, total 263."""
    return Invoice.model_validate(
        {
            "merchant_order_no": "ORDER001",
            "category": "B2C",
            "buyer_name": "王小明",
            "buyer_email": "buyer@example.com",
            "items": [
                {"name": "筆記本", "count": 2, "unit": "本", "price": 100},
                {"name": "原子筆", "count": 1, "unit": "支", "price": 50},
            ],
        }
    )


@pytest.fixture
def b2b_invoice():
    return Invoice.model_validate(
        {
            "merchant_order_no": "ORDER002",
            "category": "B2B",
            "buyer_name": "範例股份有限公司",
            "buyer_ubn": "12345678",
            "buyer_email": "ap@example.com",
            "items": [{"name": "顧問服務", "count": 1, "unit": "式", "price": 10000}],
        }
    )


@pytest.fixture
def donation_invoice(b2c_invoice):
    """B2C donation with a stale print flag and carrier number left behind."""
    return Invoice.model_validate(
        {
            **b2c_invoice.model_dump(exclude={"carrier_type", "carrier_num", "love_code"}),
            "merchant_order_no": "ORDER003",
            "print_flag": "Y",
            "carrier_type": "donate",
            "carrier_num": "919",
        }
    )

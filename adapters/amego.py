"""Amego adapter: MD5-signed JSON form posts."""

import json
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from adapters.base import BaseAdapter
from models.batch_result import NormalizedResult, VoidResult
from models.credentials import Credential
from models.errors import EncryptionError, ParseError, VendorRejection
from models.invoice import Category, CarrierSelection, Invoice, ItemTaxType, TaxType
from models.vendor import VendorType
from utils.amounts import js_number, prorate, to_decimal
from utils.crypto import compact_json, md5_hex

logger = logging.getLogger(__name__)

ANONYMOUS_BUYER = "0000000000"
ZERO_TAX_REASON = 72
DEFAULT_CLEARANCE_MARK = 1


def _code(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class AmegoAdapter(BaseAdapter):
    """
    Adapter for the Amego e-invoice API.

    The body is ``{invoice, data, time, sign}`` with ``data`` the compact JSON
    payload and ``sign = md5(data + time + app_key)``. B2C prices are sent tax
    inclusive, so taxable lines are re-priced by proration over the
    tax-inclusive total.
    """

    vendor = VendorType.AMEGO
    required_fields = ("ubn", "app_key")

    def transform(self, invoice: Invoice) -> dict:
        tax_type = invoice.tax_type
        b2b = invoice.is_b2b and bool(invoice.buyer_ubn)
        rate = to_decimal(invoice.tax_rate)

        result = {
            "OrderId": invoice.merchant_order_no,
            "BuyerIdentifier": invoice.buyer_ubn if b2b else ANONYMOUS_BUYER,
            "BuyerName": invoice.buyer_name,
        }
        if invoice.buyer_address:
            result["BuyerAddress"] = invoice.buyer_address
        if invoice.buyer_email:
            result["BuyerEmailAddress"] = invoice.buyer_email
        if invoice.buyer_phone:
            result["BuyerTelephoneNumber"] = invoice.buyer_phone

        result["TaxType"] = int(tax_type.value)
        if rate != 5:
            result["TaxRate"] = js_number(rate / 100)
        if invoice.clearance_mark:
            result["CustomsClearanceMark"] = int(invoice.clearance_mark)
        if tax_type == TaxType.SPECIAL:
            result["TrackApiCode"] = "OX"
        if tax_type == TaxType.ZERO_RATED:
            result.setdefault("CustomsClearanceMark", DEFAULT_CLEARANCE_MARK)
            result["ZeroTaxRateReason"] = ZERO_TAX_REASON
            result["TaxRate"] = "0"

        if not invoice.is_b2b:
            selection = invoice.carrier_selection()
            if selection == CarrierSelection.DONATION:
                result["NPOBAN"] = invoice.love_code
            elif selection == CarrierSelection.CARRIER:
                result["CarrierType"] = invoice.carrier_type
                if invoice.carrier_num:
                    result["CarrierId1"] = invoice.carrier_num
                    result["CarrierId2"] = invoice.carrier_num2 or invoice.carrier_num

        result["ProductItem"] = self._product_items(invoice, b2b)
        result.update(self._amounts(invoice, b2b))
        result["TotalAmount"] = invoice.total_amt

        if tax_type == TaxType.TAXABLE or tax_type == TaxType.SPECIAL:
            result["TaxRate"] = str(js_number(rate / 100))
        elif tax_type == TaxType.TAX_EXEMPT:
            result["TaxRate"] = "0"

        if invoice.comment:
            result["MainRemark"] = invoice.comment
        if invoice.invoice_date:
            result["InvoiceDate"] = invoice.invoice_date.strftime("%Y/%m/%d")

        result["DetailVat"] = 0 if b2b else 1
        return result

    def _product_items(self, invoice: Invoice, b2b: bool) -> list[dict]:
        """
        Build ProductItem lines.

        B2C lines are tax inclusive: a taxable invoice spreads ``total_amt``
        over all lines, a mixed invoice spreads the taxed total over its
        taxable lines only. Shares are not reconciled against the total.
        """
        items = invoice.items
        shares: dict[int, int] = {}

        if not b2b and invoice.tax_type == TaxType.TAXABLE:
            allocated = prorate([item.amount for item in items], invoice.total_amt)
            shares = dict(enumerate(allocated))
        elif not b2b and invoice.tax_type == TaxType.MIXED:
            taxed = [
                index
                for index, item in enumerate(items)
                if item.effective_tax_type == ItemTaxType.TAXABLE
            ]
            allocated = prorate(
                [items[index].amount for index in taxed],
                invoice.sales_amount + invoice.tax_amt,
            )
            shares = dict(zip(taxed, allocated))

        details = []
        for index, item in enumerate(items):
            unit_price: Decimal = item.unit_price
            amount = item.amount
            if index in shares:
                amount = shares[index]
                unit_price = Decimal(amount) / Decimal(item.quantity)

            if invoice.tax_type == TaxType.MIXED:
                line_tax = int(item.effective_tax_type.wire_value)
            else:
                line_tax = int(invoice.tax_type.value)

            details.append(
                {
                    "Description": item.name,
                    "Quantity": item.quantity,
                    "Unit": item.unit,
                    "UnitPrice": js_number(unit_price),
                    "Amount": js_number(amount),
                    "TaxType": line_tax,
                }
            )
        return details

    def _amounts(self, invoice: Invoice, b2b: bool) -> dict:
        tax_type = invoice.tax_type
        if tax_type == TaxType.ZERO_RATED:
            return {
                "SalesAmount": 0,
                "FreeTaxSalesAmount": 0,
                "ZeroTaxSalesAmount": invoice.total_amt,
                "TaxAmount": 0,
            }
        if tax_type == TaxType.TAX_EXEMPT:
            return {
                "SalesAmount": 0,
                "FreeTaxSalesAmount": invoice.total_amt,
                "ZeroTaxSalesAmount": 0,
                "TaxAmount": 0,
            }
        if tax_type == TaxType.SPECIAL:
            return {
                "SalesAmount": invoice.amt,
                "TaxAmount": invoice.tax_amt,
                "FreeTaxSalesAmount": 0,
                "ZeroTaxSalesAmount": 0,
            }
        if tax_type == TaxType.MIXED:
            return {
                "SalesAmount": invoice.sales_amount
                + (0 if b2b else invoice.tax_amt),
                "FreeTaxSalesAmount": invoice.free_tax_sales_amount,
                "ZeroTaxSalesAmount": invoice.zero_tax_sales_amount,
                "TaxAmount": invoice.tax_amt if b2b else 0,
            }
        if b2b:
            return {
                "SalesAmount": invoice.amt,
                "TaxAmount": invoice.tax_amt,
                "FreeTaxSalesAmount": 0,
                "ZeroTaxSalesAmount": 0,
            }
        return {
            "SalesAmount": invoice.total_amt,
            "TaxAmount": 0,
            "FreeTaxSalesAmount": 0,
            "ZeroTaxSalesAmount": 0,
        }

    def sign(self, data: str, timestamp: int, app_key: str) -> str:
        """md5(data + time + app_key), lower-case hex."""
        return md5_hex(f"{data}{timestamp}{app_key}")

    def encrypt(self, payload: Any, credential: Credential) -> dict:
        data = compact_json(payload)
        timestamp = self.timestamp()
        return {
            "invoice": credential["ubn"],
            "data": data,
            "time": timestamp,
            "sign": self.sign(data, timestamp, credential["app_key"]),
        }

    def decrypt(self, body: Any, credential: Credential) -> Any:
        """
        Verify a signed body and return its decoded ``data``.

        Raises:
            EncryptionError: The signature does not match
        """
        if isinstance(body, str):
            return self._load_json(body)
        if not isinstance(body, dict) or "sign" not in body:
            return body

        expected = self.sign(body["data"], body["time"], credential["app_key"])
        if expected != body["sign"]:
            raise EncryptionError("Amego signature mismatch")
        return self._load_json(body["data"])

    @staticmethod
    def _load_json(text: str) -> Any:
        try:
            return json.loads(text)
        except ValueError as e:
            raise ParseError(f"Invalid Amego response: {e}") from e

    def unwrap_response(self, response: Any, credential: Credential) -> Any:
        if isinstance(response, str):
            return self._load_json(response)
        return response

    def build_void_payload(
        self,
        invoice_number: str,
        reason: str,
        credential: Credential,
        invoice_date: Optional[date],
        category: Category,
    ) -> dict:
        return self.encrypt(
            [{"CancelInvoiceNumber": invoice_number, "CancelReason": reason}],
            credential,
        )

    def parse_response(self, response: Any) -> NormalizedResult:
        if not isinstance(response, dict):
            raise ParseError(f"Unexpected Amego response: {str(response)[:200]}")

        if _code(response.get("code")) != 0 and response.get("status") != "success":
            raise VendorRejection(
                response.get("msg")
                or response.get("message")
                or "Amego rejected the invoice",
                code=response.get("code"),
            )

        def first(*names: str) -> str:
            for name in names:
                if response.get(name):
                    return str(response[name])
            return ""

        return NormalizedResult(
            success=True,
            invoice_number=first("invoice_number", "InvoiceNumber", "InvoiceNo"),
            random_number=first("random_num", "RandomNumber", "RandomNum"),
            create_time=first("create_time", "InvoiceDate"),
            raw=response,
        )

    def parse_void_response(self, response: Any) -> VoidResult:
        if not isinstance(response, dict):
            raise ParseError(f"Unexpected Amego response: {str(response)[:200]}")
        if _code(response.get("code")) != 0:
            raise VendorRejection(
                response.get("msg") or "Amego rejected the void request",
                code=response.get("code"),
            )
        return VoidResult(
            success=True,
            invoice_number=str(response.get("invoice_number") or ""),
            raw=response,
        )

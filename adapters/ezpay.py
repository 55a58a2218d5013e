"""ezPay adapter: AES-256 encrypted query strings, hex transport."""

import json
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional
from urllib.parse import parse_qsl

from adapters.base import BaseAdapter
from models.batch_result import NormalizedResult, VoidResult
from models.credentials import Credential
from models.errors import EncryptionError, ParseError, VendorRejection
from models.invoice import Category, CarrierSelection, Invoice, TaxType
from models.vendor import VendorType
from utils.amounts import js_number
from utils.crypto import (
    IV_LENGTH,
    aes_cbc_decrypt,
    aes_cbc_encrypt,
    hex_decode,
    normalize_key,
    percent_encode,
)

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
DEFAULT_UNIT = "個"
PLATFORM_CARRIER = "2"


def _text(value: Any) -> str:
    """Render a payload value the way a browser form would."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(js_number(value))
    return str(value)


class EzpayAdapter(BaseAdapter):
    """Adapter for the ezPay e-invoice API."""

    vendor = VendorType.EZPAY
    required_fields = ("merchant_id", "hash_key", "hash_iv")

    def transform(self, invoice: Invoice) -> dict:
        items = invoice.items
        data = {
            "RespondType": "JSON",
            "Version": "1.5",
            "TimeStamp": self.timestamp(),
            "MerchantOrderNo": invoice.merchant_order_no,
            "Status": "1",
            "Category": invoice.category.value,
            "BuyerName": invoice.buyer_name,
            "PrintFlag": invoice.print_flag or "Y",
            "TaxType": invoice.tax_type.value,
            "TaxRate": js_number(invoice.tax_rate),
            "Amt": invoice.amt,
            "TaxAmt": invoice.tax_amt,
            "TotalAmt": invoice.total_amt,
            "ItemName": "|".join(item.name for item in items),
            "ItemCount": "|".join(str(item.quantity) for item in items),
            "ItemUnit": "|".join(item.unit or DEFAULT_UNIT for item in items),
            "ItemPrice": "|".join(_text(item.unit_price) for item in items),
            "ItemAmt": "|".join(str(item.amount) for item in items),
            "ItemTaxType": "|".join(
                item.effective_tax_type.wire_value for item in items
            ),
            "BuyerEmail": invoice.buyer_email,
        }

        selection = invoice.carrier_selection()
        if selection == CarrierSelection.DONATION:
            data["LoveCode"] = invoice.love_code
            data["PrintFlag"] = "N"
        elif selection == CarrierSelection.CARRIER:
            data["CarrierType"] = invoice.carrier_type
            if invoice.carrier_num:
                data["CarrierNum"] = invoice.carrier_num
            data["PrintFlag"] = "N"
            if invoice.carrier_type == PLATFORM_CARRIER and invoice.kiosk_print_flag == "1":
                data["KioskPrintFlag"] = "1"
        elif invoice.is_b2b:
            data["PrintFlag"] = "Y"
        elif data["PrintFlag"] == "N" and invoice.buyer_email:
            # Paperless B2C without a carrier lands in the buyer's ezPay carrier
            data["CarrierType"] = PLATFORM_CARRIER
            data["CarrierNum"] = invoice.buyer_email

        if invoice.is_b2b:
            for key, value in (
                ("BuyerUBN", invoice.buyer_ubn),
                ("BuyerAddress", invoice.buyer_address),
                ("BuyerEmail", invoice.buyer_email),
                ("BuyerPhone", invoice.buyer_phone),
            ):
                if value:
                    data[key] = value
        else:
            if invoice.buyer_phone:
                data["BuyerPhone"] = invoice.buyer_phone
            if invoice.buyer_address:
                data["BuyerAddress"] = invoice.buyer_address

        if invoice.tax_type == TaxType.ZERO_RATED:
            data["TaxRate"] = 0
            if invoice.clearance_mark:
                data["CustomsClearance"] = invoice.clearance_mark
        elif invoice.tax_type == TaxType.TAX_EXEMPT:
            data["TaxRate"] = 0
        elif invoice.tax_type == TaxType.MIXED:
            data["AmtSales"] = invoice.sales_amount
            data["AmtZero"] = invoice.zero_tax_sales_amount
            data["AmtFree"] = invoice.free_tax_sales_amount

        return data

    def encrypt(
        self, payload: dict, credential: Credential, sort_keys: bool = True
    ) -> dict:
        """
        Encrypt a payload into the ``{MerchantID_, PostData_}`` form body.

        Args:
            payload: Plain ezPay fields
            credential: merchant_id, hash_key, hash_iv
            sort_keys: Issue requests are key-sorted, void requests are not

        Returns:
            Form body for the ezPay endpoint
        """
        keys = sorted(payload) if sort_keys else list(payload)
        query = "&".join(f"{key}={percent_encode(_text(payload[key]))}" for key in keys)
        ciphertext = aes_cbc_encrypt(
            query.encode("utf-8"),
            normalize_key(credential["hash_key"], KEY_LENGTH),
            normalize_key(credential["hash_iv"], IV_LENGTH),
        )
        return {"MerchantID_": credential["merchant_id"], "PostData_": ciphertext.hex()}

    def decrypt(self, body: Any, credential: Credential) -> Any:
        """Recover the plain fields from a ``PostData_`` hex string or form body."""
        if isinstance(body, dict):
            if "PostData_" not in body:
                return body
            body = body["PostData_"]

        plaintext = aes_cbc_decrypt(
            hex_decode(body),
            normalize_key(credential["hash_key"], KEY_LENGTH),
            normalize_key(credential["hash_iv"], IV_LENGTH),
        )
        try:
            text = plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncryptionError(f"ezPay payload is not UTF-8: {e}") from e

        if text.startswith("{"):
            try:
                return json.loads(text)
            except ValueError as e:
                raise ParseError(f"ezPay payload is not valid JSON: {e}") from e
        return dict(parse_qsl(text, keep_blank_values=True))

    def build_void_payload(
        self,
        invoice_number: str,
        reason: str,
        credential: Credential,
        invoice_date: Optional[date],
        category: Category,
    ) -> dict:
        payload = {
            "RespondType": "JSON",
            "Version": "1.0",
            "TimeStamp": self.timestamp(),
            "InvoiceNumber": invoice_number,
            "InvalidReason": reason,
        }
        return self.encrypt(payload, credential, sort_keys=False)

    def _check_status(self, response: Any, default_error: str) -> dict:
        if not isinstance(response, dict):
            raise ParseError(f"Unexpected ezPay response: {str(response)[:200]}")
        if response.get("Status") != "SUCCESS":
            raise VendorRejection(
                response.get("Message") or default_error, code=response.get("Status")
            )

        result = response.get("Result") or {}
        if isinstance(result, str):
            try:
                result = json.loads(result)
            except ValueError as e:
                raise ParseError(f"ezPay Result is not valid JSON: {e}") from e
        if not isinstance(result, dict):
            raise ParseError("ezPay Result has an unexpected shape")
        return result

    def parse_response(self, response: Any) -> NormalizedResult:
        result = self._check_status(response, "ezPay rejected the invoice")
        return NormalizedResult(
            success=True,
            invoice_number=str(result.get("InvoiceNumber") or ""),
            random_number=str(result.get("RandomNum") or ""),
            create_time=str(result.get("CreateTime") or ""),
            raw=response,
        )

    def parse_void_response(self, response: Any) -> VoidResult:
        result = self._check_status(response, "ezPay rejected the void request")
        return VoidResult(
            success=True,
            invoice_number=str(result.get("InvoiceNumber") or ""),
            cancel_time=str(result.get("CreateTime") or ""),
            raw=response,
        )

"""ECPay adapter: JSON, percent-encoded, AES-128 encrypted, base64 transport."""

import json
import logging
from datetime import date
from typing import Any, Optional

from adapters.base import BaseAdapter
from models.batch_result import NormalizedResult, VoidResult
from models.credentials import Credential
from models.errors import EncryptionError, ParseError, VendorRejection
from models.invoice import Category, CarrierSelection, Invoice, TaxType
from models.vendor import VendorType
from utils.amounts import floor_int
from utils.crypto import (
    IV_LENGTH,
    aes_cbc_decrypt,
    aes_cbc_encrypt,
    b64decode,
    b64encode,
    compact_json,
    normalize_key,
    percent_decode,
    percent_encode,
)

logger = logging.getLogger(__name__)

KEY_LENGTH = 16
REVISION = "3.0.0"
DEFAULT_UNIT = "個"
DEFAULT_CLEARANCE_MARK = "2"

# ECPay's B2C API has no special-rate type; anything unknown is sent as taxable
TAX_TYPE_MAP = {
    TaxType.TAXABLE: "1",
    TaxType.ZERO_RATED: "2",
    TaxType.TAX_EXEMPT: "3",
    TaxType.MIXED: "9",
}


def _as_int(value: Any) -> Optional[int]:
    """Vendor codes arrive as int or numeric string."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class EcpayAdapter(BaseAdapter):
    """
    Adapter for the ECPay e-invoice API.

    Requests are wrapped in ``{MerchantID, RqHeader, Data}`` where ``Data`` is
    ``base64(AES-128-CBC(percent_encode(json)))``. Responses carry an outer
    ``TransCode`` and, when it is 1, an encrypted ``Data`` holding ``RtnCode``.
    """

    vendor = VendorType.ECPAY
    required_fields = ("merchant_id", "hash_key", "hash_iv")
    revision: Optional[str] = REVISION

    # Response field name variants, tried in order
    invoice_number_fields = ("InvoiceNo", "InvoiceNumber", "invoiceNumber")
    random_number_fields = ("RandomNumber", "randomNumber")
    create_time_fields = ("InvoiceDate", "createTime")

    def transform(self, invoice: Invoice) -> dict:
        items = []
        items_total = 0
        for seq, item in enumerate(invoice.items, start=1):
            amount = floor_int(item.amount)
            items_total += amount
            items.append(
                {
                    "ItemSeq": seq,
                    "ItemName": item.name,
                    "ItemCount": item.quantity,
                    "ItemWord": item.unit or DEFAULT_UNIT,
                    "ItemPrice": floor_int(item.unit_price),
                    "ItemAmount": amount,
                    "ItemTaxType": item.effective_tax_type.wire_value,
                }
            )

        selection = invoice.carrier_selection()
        if invoice.is_b2b:
            print_flag = "1"
        elif selection != CarrierSelection.PRINT:
            print_flag = "0"
        else:
            print_flag = "1" if invoice.print_flag == "Y" else "0"

        data = {
            "MerchantID": "",
            "RelateNumber": invoice.merchant_order_no,
            "Print": print_flag,
            "Donation": "0",
            "TaxType": TAX_TYPE_MAP.get(invoice.tax_type, "1"),
            "SalesAmount": items_total,
            "InvType": "08" if invoice.tax_type == TaxType.MIXED else "07",
            "Items": items,
        }

        if print_flag == "1":
            data["CustomerName"] = invoice.buyer_name
            data["CustomerAddr"] = invoice.buyer_address
        elif not invoice.is_b2b and invoice.buyer_name:
            data["CustomerName"] = invoice.buyer_name

        if invoice.buyer_email:
            data["CustomerEmail"] = invoice.buyer_email
        if invoice.buyer_phone:
            data["CustomerPhone"] = invoice.buyer_phone.replace("-", "").replace(" ", "")

        if selection == CarrierSelection.DONATION:
            data["Donation"] = "1"
            data["LoveCode"] = invoice.love_code
        elif selection == CarrierSelection.CARRIER:
            data["CarrierType"] = invoice.carrier_type
            if invoice.carrier_type == "1":
                data["CarrierNum"] = ""
            elif invoice.carrier_type in ("4", "5"):
                data["CarrierNum"] = invoice.carrier_num
                data["CarrierNum2"] = invoice.carrier_num2 or invoice.carrier_num
            elif invoice.carrier_num:
                data["CarrierNum"] = invoice.carrier_num

        if invoice.tax_type == TaxType.MIXED:
            data["SalesAmount"] = invoice.sales_amount
            data["FreeTaxSalesAmount"] = invoice.free_tax_sales_amount
            data["ZeroTaxSalesAmount"] = invoice.zero_tax_sales_amount

        if invoice.tax_type in (TaxType.ZERO_RATED, TaxType.MIXED):
            data["ClearanceMark"] = invoice.clearance_mark or DEFAULT_CLEARANCE_MARK

        if invoice.is_b2b and invoice.buyer_ubn:
            data["CustomerIdentifier"] = invoice.buyer_ubn

        return data

    # Cipher

    def seal(
        self, payload: Any, credential: Credential, revision: Optional[str] = None
    ) -> dict:
        """Encrypt ``payload`` into the request envelope."""
        plaintext = percent_encode(compact_json(payload))
        ciphertext = aes_cbc_encrypt(
            plaintext.encode("utf-8"),
            normalize_key(credential["hash_key"], KEY_LENGTH),
            normalize_key(credential["hash_iv"], IV_LENGTH),
        )
        header = {"Timestamp": self.timestamp()}
        if revision:
            header["Revision"] = revision
        return {
            "MerchantID": credential["merchant_id"],
            "RqHeader": header,
            "Data": b64encode(ciphertext),
        }

    def encrypt(self, payload: dict, credential: Credential) -> dict:
        payload = dict(payload)
        payload["MerchantID"] = credential["merchant_id"]
        return self.seal(payload, credential, self.revision)

    def decrypt(self, body: Any, credential: Credential) -> Any:
        """Decrypt an envelope's ``Data`` (or a bare base64 string) to its JSON value."""
        if isinstance(body, dict):
            body = body.get("Data")
        if not isinstance(body, str):
            return body

        plaintext = aes_cbc_decrypt(
            b64decode(body),
            normalize_key(credential["hash_key"], KEY_LENGTH),
            normalize_key(credential["hash_iv"], IV_LENGTH),
        )
        try:
            return json.loads(percent_decode(plaintext.decode("utf-8")))
        except (UnicodeDecodeError, ValueError) as e:
            raise EncryptionError(
                f"{self.display_name} payload could not be decoded: {e}"
            ) from e

    def unwrap_response(self, response: Any, credential: Credential) -> Any:
        if (
            isinstance(response, dict)
            and _as_int(response.get("TransCode")) == 1
            and isinstance(response.get("Data"), str)
            and response["Data"]
        ):
            return {**response, "Data": self.decrypt(response["Data"], credential)}
        return response

    # Void

    def build_void_payload(
        self,
        invoice_number: str,
        reason: str,
        credential: Credential,
        invoice_date: Optional[date],
        category: Category,
    ) -> dict:
        payload = {
            "MerchantID": credential["merchant_id"],
            "InvoiceNo": invoice_number,
            "InvoiceDate": invoice_date.isoformat(),
            "Reason": reason,
        }
        return self.seal(payload, credential)

    # Responses

    def _business_data(
        self, response: Any, default_error: str, require_data: bool = False
    ) -> dict:
        """Check the outer and nested codes and return the decrypted Data object."""
        if not isinstance(response, dict):
            raise ParseError(
                f"Unexpected {self.display_name} response: {str(response)[:200]}"
            )

        trans_code = _as_int(response.get("TransCode"))
        if "TransCode" in response and trans_code != 1:
            raise VendorRejection(
                response.get("TransMsg") or f"{self.display_name} API error",
                code=response.get("TransCode"),
            )

        data = response.get("Data")
        if data is None:
            if require_data:
                raise ParseError(f"{self.display_name} response is missing Data")
            data = response
        if not isinstance(data, dict):
            raise ParseError(f"{self.display_name} Data has an unexpected shape")

        if "RtnCode" in data and _as_int(data.get("RtnCode")) != 1:
            raise VendorRejection(
                data.get("RtnMsg") or default_error, code=_as_int(data.get("RtnCode"))
            )
        return data

    @staticmethod
    def _first(data: dict, names: tuple[str, ...]) -> str:
        for name in names:
            value = data.get(name)
            if value:
                return str(value)
        return ""

    def parse_response(self, response: Any) -> NormalizedResult:
        data = self._business_data(
            response, f"{self.display_name} rejected the invoice"
        )
        return NormalizedResult(
            success=True,
            invoice_number=self._first(data, self.invoice_number_fields),
            random_number=self._first(data, self.random_number_fields),
            create_time=self._first(data, self.create_time_fields),
            raw=data,
        )

    def parse_void_response(self, response: Any) -> VoidResult:
        data = self._business_data(
            response,
            f"{self.display_name} rejected the void request",
            require_data=True,
        )
        if "RtnCode" not in data:
            raise ParseError(f"{self.display_name} void response has no RtnCode")
        return VoidResult(
            success=True,
            invoice_number=self._first(data, ("InvoiceNo", "InvoiceNumber")),
            raw=data,
        )

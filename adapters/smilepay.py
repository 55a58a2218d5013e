"""SmilePay adapter: SHA-256 signed form fields, XML responses."""

import logging
import re
from datetime import date
from typing import Any, Optional

from lxml import etree

from adapters.base import BaseAdapter
from models.batch_result import NormalizedResult, VoidResult
from models.credentials import Credential
from models.errors import EncryptionError, ParseError, VendorRejection
from models.invoice import Category, CarrierSelection, Invoice, TaxType
from models.vendor import VendorType
from utils.amounts import floor_int, round_half_up, to_decimal
from utils.crypto import compact_json, js_string_hash, sha256_upper

logger = logging.getLogger(__name__)

MEMBER_CARRIER = "EJ0113"
CARRIER_ID_PREFIX = "SMPAY_"

RESPONSE_FIELDS = (
    "Status",
    "Desc",
    "InvoiceNumber",
    "RandomNumber",
    "InvoiceDate",
    "InvoiceTime",
    "Inv_no",
    "Random_no",
    "CancelTime",
)

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")


def parse_xml_response(text: str) -> dict:
    """
    Read the known fields out of a SmilePay XML reply.

    The parser recovers from malformed markup; a document with no root
    element at all is a ParseError.

    Args:
        text: Raw response body

    Returns:
        Dict of the fields present, as text
    """
    body = _XML_DECLARATION.sub("", text or "", count=1).strip()
    if not body:
        raise ParseError("Empty SmilePay response")

    parser = etree.XMLParser(recover=True)
    try:
        root = etree.fromstring(body.encode("utf-8"), parser)
    except etree.XMLSyntaxError as e:
        raise ParseError(f"SmilePay XML could not be parsed: {e}") from e
    if root is None:
        raise ParseError("SmilePay XML could not be parsed")

    result = {}
    for name in RESPONSE_FIELDS:
        element = root if root.tag == name else root.find(f".//{name}")
        if element is not None:
            result[name] = (element.text or "").strip()
    return result


def _issue_time(data: dict) -> str:
    """``InvoiceDate InvoiceTime`` when both are present, else the date alone."""
    invoice_date = data.get("InvoiceDate") or ""
    invoice_time = data.get("InvoiceTime") or ""
    if invoice_date and invoice_time:
        return f"{invoice_date} {invoice_time}"
    return invoice_date


class SmilepayAdapter(BaseAdapter):
    """Adapter for the SmilePay e-invoice API."""

    vendor = VendorType.SMILEPAY
    required_fields = ("grvc", "verify_key")

    def transform(self, invoice: Invoice) -> dict:
        issued = self.now()
        invoice_date = invoice.invoice_date or issued.date()

        params = {
            "InvoiceDate": invoice_date.strftime("%Y/%m/%d"),
            "InvoiceTime": issued.strftime("%H:%M:%S"),
            "Intype": "08" if invoice.tax_type == TaxType.SPECIAL else "07",
            "TaxType": invoice.tax_type.value,
        }

        if invoice.is_b2b:
            params["Buyer_id"] = invoice.buyer_ubn
            params["CompanyName"] = invoice.buyer_name
            params["DonateMark"] = "0"
            params["UnitTAX"] = "Y"
        else:
            if invoice.buyer_name:
                params["Name"] = invoice.buyer_name

            selection = invoice.carrier_selection()
            if selection == CarrierSelection.DONATION:
                params["DonateMark"] = "1"
                params["LoveKey"] = invoice.love_code
            elif selection == CarrierSelection.CARRIER:
                params["DonateMark"] = "0"
                params["CarrierType"] = invoice.carrier_type
                if invoice.carrier_type == MEMBER_CARRIER:
                    params["CarrierID"] = ""
                    params["CarrierID2"] = ""
                elif invoice.carrier_num:
                    params["CarrierID"] = invoice.carrier_num
                    params["CarrierID2"] = invoice.carrier_num2 or (
                        CARRIER_ID_PREFIX + js_string_hash(invoice.carrier_num)[:8]
                    )
            else:
                params["DonateMark"] = "0"

        if invoice.buyer_phone:
            params["Phone"] = invoice.buyer_phone
        if invoice.buyer_email:
            params["Email"] = invoice.buyer_email
        if invoice.buyer_address:
            params["Address"] = invoice.buyer_address

        self._add_items(params, invoice)

        if invoice.tax_type == TaxType.MIXED:
            params["SalesAmount"] = invoice.sales_amount
            params["FreeTaxSalesAmount"] = invoice.free_tax_sales_amount

        if invoice.tax_type == TaxType.ZERO_RATED and invoice.clearance_mark:
            params["CustomsClearanceMark"] = invoice.clearance_mark

        if invoice.merchant_order_no:
            params["orderid"] = invoice.merchant_order_no

        return params

    def _add_items(self, params: dict, invoice: Invoice) -> None:
        """Items go out as ``|``-joined columns with tax-inclusive unit prices."""
        if invoice.tax_type in (TaxType.TAXABLE, TaxType.SPECIAL):
            multiplier = 1 + to_decimal(invoice.tax_rate) / 100
        else:
            multiplier = to_decimal(1)

        names, quantities, units, prices, amounts = [], [], [], [], []
        total = 0
        for item in invoice.items:
            unit_price = round_half_up(floor_int(item.unit_price) * multiplier)
            amount = item.quantity * unit_price
            names.append(item.name)
            quantities.append(str(item.quantity))
            units.append(item.unit)
            prices.append(str(unit_price))
            amounts.append(str(amount))
            total += amount

        params["Description"] = "|".join(names)
        params["Quantity"] = "|".join(quantities)
        params["Unit"] = "|".join(units)
        params["UnitPrice"] = "|".join(prices)
        params["Amount"] = "|".join(amounts)
        params["AllAmount"] = total

    def sign(self, params: dict, verify_key: str) -> str:
        """Dcvc: upper-case SHA-256 of the compact JSON of the fields plus the key."""
        return sha256_upper(compact_json(params) + verify_key)

    def encrypt(self, payload: dict, credential: Credential) -> dict:
        return {
            "Grvc": credential["grvc"],
            "Verify_key": credential["verify_key"],
            **payload,
            "Dcvc": self.sign(payload, credential["verify_key"]),
        }

    def decrypt(self, body: Any, credential: Credential) -> Any:
        """
        Verify a signed form body and return its fields, or parse an XML reply.

        Raises:
            EncryptionError: The Dcvc does not match the fields
        """
        if isinstance(body, str):
            return parse_xml_response(body)
        if not isinstance(body, dict) or "Dcvc" not in body:
            return body

        params = {
            key: value
            for key, value in body.items()
            if key not in ("Grvc", "Verify_key", "Dcvc")
        }
        if self.sign(params, credential["verify_key"]) != body["Dcvc"]:
            raise EncryptionError("SmilePay Dcvc signature mismatch")
        return params

    def unwrap_response(self, response: Any, credential: Credential) -> Any:
        if isinstance(response, str):
            return parse_xml_response(response)
        return response

    def build_void_payload(
        self,
        invoice_number: str,
        reason: str,
        credential: Credential,
        invoice_date: Optional[date],
        category: Category,
    ) -> dict:
        return {
            "Grvc": credential["grvc"],
            "Verify_key": credential["verify_key"],
            "InvoiceNumber": invoice_number,
            "InvoiceDate": invoice_date.strftime("%Y/%m/%d"),
            "types": "Cancel",
            "CancelReason": reason,
        }

    def _check_status(self, response: Any, default_error: str) -> dict:
        if isinstance(response, str):
            response = parse_xml_response(response)
        if not isinstance(response, dict):
            raise ParseError(f"Unexpected SmilePay response: {str(response)[:200]}")
        if "Status" not in response:
            raise ParseError("SmilePay response has no <Status> element")
        if str(response["Status"]).strip() != "0":
            raise VendorRejection(
                response.get("Desc") or default_error, code=response.get("Status")
            )
        return response

    def parse_response(self, response: Any) -> NormalizedResult:
        data = self._check_status(response, "SmilePay rejected the invoice")
        return NormalizedResult(
            success=True,
            invoice_number=data.get("InvoiceNumber") or data.get("Inv_no") or "",
            random_number=data.get("RandomNumber") or data.get("Random_no") or "",
            create_time=_issue_time(data),
            raw=data,
        )

    def parse_void_response(self, response: Any) -> VoidResult:
        data = self._check_status(response, "SmilePay rejected the void request")
        return VoidResult(
            success=True,
            invoice_number=data.get("InvoiceNumber") or data.get("Inv_no") or "",
            cancel_time=data.get("CancelTime") or "",
            raw=data,
        )

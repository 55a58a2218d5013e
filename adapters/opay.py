"""O'Pay adapter: ECPay-style cipher plus B2B customer maintenance."""

import json
import logging
from datetime import date
from typing import Any, Optional

from adapters.ecpay import EcpayAdapter
from models.batch_result import MaintenanceResult
from models.credentials import Credential, Mode
from models.errors import (
    EncryptionError,
    InvoiceValidationError,
    NetworkError,
    OperationAborted,
    ParseError,
    VendorRejection,
)
from models.invoice import Category, CarrierSelection, Invoice, TaxType
from models.vendor import Action, VendorType
from utils.amounts import floor_int, js_number, tax_on
from utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_UNIT = "件"
DEFAULT_CLEARANCE_MARK = "2"

# Customer maintenance return codes
CUSTOMER_NOT_FOUND = 6160050
CUSTOMER_ALREADY_EXISTS = 6160052

PLATFORM_CARRIER = "1"
CITIZEN_CARRIER = "2"
CREDIT_CARD_CARRIER = "8"
TWO_NUMBER_CARRIERS = ("4", "5", "6", "7")


class OpayAdapter(EcpayAdapter):
    """
    Adapter for the O'Pay e-invoice API.

    Shares ECPay's envelope and cipher (without the ``Revision`` header). B2B
    invoices are preceded by a customer upsert: Update, falling back to Add
    when the customer does not exist yet.
    """

    vendor = VendorType.OPAY
    revision = None

    invoice_number_fields = ("InvoiceNumber", "InvoiceNo", "invoiceNumber")

    def validate_invoice(self, invoice: Invoice) -> None:
        if invoice.is_b2b and invoice.tax_type == TaxType.MIXED:
            raise InvoiceValidationError(
                "O'Pay B2B API does not support mixed tax (TaxType=9)"
            )
        # A malformed citizen certificate falls back to the platform carrier
        if (
            invoice.carrier_selection() == CarrierSelection.CARRIER
            and invoice.carrier_type == CITIZEN_CARRIER
        ):
            return
        super().validate_invoice(invoice)

    def transform(self, invoice: Invoice) -> dict:
        b2b = invoice.is_b2b
        taxable = invoice.tax_type in (TaxType.TAXABLE, TaxType.SPECIAL)

        items = []
        sales_amount = 0
        for seq, item in enumerate(invoice.items, start=1):
            sales_amount += floor_int(item.unit_price * item.quantity)
            entry = {
                "ItemSeq": seq,
                "ItemName": item.name,
                "ItemCount": item.quantity,
                "ItemWord": item.unit or DEFAULT_UNIT,
                "ItemPrice": js_number(item.unit_price),
                "ItemAmount": item.amount,
            }
            if b2b:
                entry["ItemTax"] = tax_on(item.amount, invoice.tax_rate) if taxable else 0
            elif invoice.tax_type == TaxType.MIXED:
                entry["ItemTaxType"] = item.effective_tax_type.wire_value
            items.append(entry)

        data = {
            "MerchantID": "",
            "RelateNumber": invoice.merchant_order_no,
            "TaxType": invoice.tax_type.value,
            "SalesAmount": sales_amount,
            "InvType": "08" if invoice.tax_type == TaxType.SPECIAL else "07",
            "Items": items,
        }

        if invoice.tax_type == TaxType.SPECIAL:
            data["TaxRate"] = js_number(invoice.tax_rate / 100)

        if b2b:
            self._add_b2b_fields(data, invoice)
        else:
            self._add_b2c_fields(data, invoice)

        return data

    def _add_b2b_fields(self, data: dict, invoice: Invoice) -> None:
        data["TaxAmount"] = invoice.tax_amt
        data["TotalAmount"] = invoice.total_amt
        data["CustomerIdentifier"] = invoice.buyer_ubn
        data["CustomerName"] = invoice.buyer_name
        data["Print"] = "1"

        if invoice.buyer_email:
            data["CustomerEmail"] = invoice.buyer_email
        if invoice.buyer_phone:
            data["CustomerTelephoneNumber"] = invoice.buyer_phone
        if invoice.buyer_address:
            data["CustomerAddress"] = invoice.buyer_address
        if invoice.comment:
            data["InvoiceRemark"] = invoice.comment

        if invoice.tax_type == TaxType.ZERO_RATED:
            data["ClearanceMark"] = invoice.clearance_mark or DEFAULT_CLEARANCE_MARK
        elif invoice.clearance_mark:
            data["ClearanceMark"] = invoice.clearance_mark

    def _add_b2c_fields(self, data: dict, invoice: Invoice) -> None:
        selection = invoice.carrier_selection()
        if selection == CarrierSelection.DONATION:
            data["Donation"] = "1"
            data["LoveCode"] = invoice.love_code
            data["Print"] = "0"
        else:
            data["Donation"] = "0"
            if selection == CarrierSelection.CARRIER:
                data["Print"] = "0"
            else:
                data["Print"] = "1" if invoice.print_flag == "Y" else "0"

        if invoice.buyer_ubn:
            data["CustomerIdentifier"] = invoice.buyer_ubn
            data["CustomerName"] = invoice.buyer_name
        elif data["Print"] == "1" and invoice.buyer_name:
            data["CustomerName"] = invoice.buyer_name
            if invoice.buyer_address:
                data["CustomerAddr"] = invoice.buyer_address

        if invoice.buyer_email:
            data["CustomerEmail"] = invoice.buyer_email
        elif invoice.buyer_phone:
            data["CustomerPhone"] = invoice.buyer_phone

        if selection == CarrierSelection.CARRIER:
            data.update(self._carrier_fields(invoice))

        if invoice.tax_type == TaxType.ZERO_RATED and invoice.clearance_mark:
            data["ClearanceMark"] = invoice.clearance_mark

        data["vat"] = "1"

    def _carrier_fields(self, invoice: Invoice) -> dict:
        carrier_type = invoice.carrier_type
        number = invoice.carrier_num

        if carrier_type == PLATFORM_CARRIER:
            return {"CarrierType": PLATFORM_CARRIER, "CarrierNum": ""}

        if carrier_type == CITIZEN_CARRIER:
            if not self.carriers.validate_carrier(CITIZEN_CARRIER, number):
                logger.debug(
                    f"Invalid citizen certificate on {invoice.merchant_order_no}, "
                    "using the O'Pay carrier instead"
                )
                return {"CarrierType": PLATFORM_CARRIER, "CarrierNum": ""}
            return {"CarrierType": CITIZEN_CARRIER, "CarrierNum": number}

        if carrier_type in TWO_NUMBER_CARRIERS:
            return {
                "CarrierType": carrier_type,
                "CarrierNum": number,
                "CarrierNum2": invoice.carrier_num2 or number,
            }

        if carrier_type == CREDIT_CARD_CARRIER:
            return {
                "CarrierType": CREDIT_CARD_CARRIER,
                "CarrierNum": number,
                "CarrierNum2": invoice.carrier_num2
                or self._credit_card_display_code(invoice.total_amt),
            }

        return {"CarrierType": carrier_type, "CarrierNum": number}

    def _credit_card_display_code(self, total_amt: int) -> str:
        """ROC date (yyyMMdd) followed by the invoice total padded to 10 digits."""
        today = self.today()
        roc_year = today.year - 1911
        return f"{roc_year:03d}{today.month:02d}{today.day:02d}{total_amt:010d}"

    # Customer maintenance

    def build_customer_payload(
        self, invoice: Invoice, credential: Credential, action: str
    ) -> dict:
        payload = {
            "MerchantID": credential["merchant_id"],
            "Action": action,
            "Identifier": invoice.buyer_ubn,
            "type": "1",
            "CompanyName": invoice.buyer_name,
            "TradingSlang": "123",
            "ExchangeMode": "0",
            "EmailAddress": invoice.buyer_email,
        }
        if invoice.buyer_phone:
            payload["TelephoneNumber"] = invoice.buyer_phone
        if invoice.buyer_address:
            payload["Address"] = invoice.buyer_address
        return payload

    async def _maintain(
        self,
        invoice: Invoice,
        credential: Credential,
        mode: Mode,
        action: str,
        cancel: Optional[CancellationToken],
    ) -> MaintenanceResult:
        body = self.seal(self.build_customer_payload(invoice, credential, action), credential)
        try:
            response = await self.call_gateway(
                Action.MAINTAIN_CUSTOMER, Category.B2B.value, body, mode, cancel
            )
            response = self.unwrap_response(response, credential)
            data = self._business_data(response, f"Customer {action} failed")
        except OperationAborted:
            raise
        except VendorRejection as e:
            return MaintenanceResult(
                success=False, action=action, code=e.code, message=str(e)
            )
        except (NetworkError, ParseError, EncryptionError) as e:
            return MaintenanceResult(success=False, action=action, message=str(e))

        return MaintenanceResult(
            success=True, action=action, code=1, message=data.get("RtnMsg") or ""
        )

    async def maintain_customer(
        self,
        invoice: Invoice,
        credential: Credential,
        mode: Mode,
        cancel: Optional[CancellationToken] = None,
    ) -> MaintenanceResult:
        """
        Upsert the B2B buyer in O'Pay's customer list.

        Update first; on "customer not found" try Add, and treat "already
        exists" on Add as success.

        Args:
            invoice: B2B invoice whose buyer is registered
            credential: O'Pay credential set
            mode: test or production
            cancel: Cancellation context

        Returns:
            MaintenanceResult of the last call made
        """
        update = await self._maintain(invoice, credential, mode, "Update", cancel)
        if update.success or update.code != CUSTOMER_NOT_FOUND:
            return update

        add = await self._maintain(invoice, credential, mode, "Add", cancel)
        if add.code == CUSTOMER_ALREADY_EXISTS:
            return add.model_copy(update={"success": True})
        return add

    async def before_create(
        self,
        invoice: Invoice,
        credential: Credential,
        mode: Mode,
        cancel: Optional[CancellationToken],
    ) -> None:
        if not invoice.is_b2b:
            return
        result = await self.maintain_customer(invoice, credential, mode, cancel)
        if not result.success:
            logger.warning(
                f"O'Pay customer {result.action} failed for {invoice.buyer_ubn}: "
                f"{result.message}; issuing the invoice anyway"
            )

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
            "InvoiceDate": invoice_date.isoformat(),
            "Reason": reason,
            "invoiceType": category.value,
        }
        if category == Category.B2B:
            payload["InvoiceNumber"] = invoice_number
        else:
            payload["InvoiceNo"] = invoice_number
        return self.seal(payload, credential)

    def unwrap_response(self, response: Any, credential: Credential) -> Any:
        try:
            return super().unwrap_response(response, credential)
        except EncryptionError:
            # Some O'Pay endpoints answer with plain JSON in Data
            try:
                return {**response, "Data": json.loads(response["Data"])}
            except ValueError:
                raise ParseError("O'Pay Data is neither encrypted nor JSON")

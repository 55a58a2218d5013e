"""Base adapter class for vendor-specific invoice submission."""

import logging
import time
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Optional

from adapters.carriers import CarrierCatalogue
from models.batch_result import NormalizedResult, VoidResult
from models.credentials import Credential, Mode, PlatformConfig, require_fields
from models.errors import (
    EInvoiceError,
    InvoiceValidationError,
    OperationAborted,
    VendorRejection,
)
from models.invoice import Category, CarrierSelection, Invoice
from models.vendor import VENDOR_DISPLAY_NAMES, Action, VendorType
from processors.relay_client import Gateway, RelayRequest
from utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class BaseAdapter(ABC):
    """
    Abstract base class for vendor adapters.

    A vendor adapter turns a canonical :class:`Invoice` into the vendor's wire
    body (``transform`` then ``encrypt``), sends it through a gateway, and turns
    the reply into a :class:`NormalizedResult` (``decrypt`` then
    ``parse_response``). ``create`` and ``void`` never raise: every failure is
    reported as ``success=False``.
    """

    vendor: VendorType = VendorType.UNKNOWN
    required_fields: tuple[str, ...] = ()

    def __init__(self, platform_config: PlatformConfig, gateway: Gateway):
        """
        Initialize the adapter.

        Args:
            platform_config: Credentials for this vendor
            gateway: Relay or direct gateway used for vendor calls
        """
        self.platform_config = platform_config
        self.gateway = gateway
        self.carriers = CarrierCatalogue(self.vendor)

    @property
    def display_name(self) -> str:
        return VENDOR_DISPLAY_NAMES.get(self.vendor, self.vendor.value)

    def timestamp(self) -> int:
        """Unix time in seconds, as sent to the vendor."""
        return int(time.time())

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()

    # Vendor hooks

    @abstractmethod
    def transform(self, invoice: Invoice) -> dict:
        """
        Map a recalculated canonical invoice to the vendor's field names.

        Args:
            invoice: Invoice with amounts already derived from its items

        Returns:
            Plain vendor payload, before encryption or signing
        """
        pass

    @abstractmethod
    def encrypt(self, payload: Any, credential: Credential) -> dict:
        """Wrap a plain payload into the encrypted or signed wire body."""
        pass

    @abstractmethod
    def decrypt(self, body: Any, credential: Credential) -> Any:
        """Inverse of :meth:`encrypt`: recover the plain payload from a wire body."""
        pass

    @abstractmethod
    def build_void_payload(
        self,
        invoice_number: str,
        reason: str,
        credential: Credential,
        invoice_date: Optional[date],
        category: Category,
    ) -> dict:
        """Wire body of a void request."""
        pass

    @abstractmethod
    def parse_response(self, response: Any) -> NormalizedResult:
        """
        Interpret a create response.

        Raises:
            VendorRejection: The vendor reported a business failure
            ParseError: The response shape is not understood
        """
        pass

    def parse_void_response(self, response: Any) -> VoidResult:
        """Interpret a void response. Defaults to the create parser."""
        result = self.parse_response(response)
        return VoidResult(**result.model_dump(exclude={"raw"}))

    def unwrap_response(self, response: Any, credential: Credential) -> Any:
        """Decrypt the vendor response when it carries an encrypted envelope."""
        return response

    def validate_invoice(self, invoice: Invoice) -> None:
        """
        Vendor-specific checks run before transformation.

        Raises:
            InvoiceValidationError: If the vendor cannot accept the invoice
        """
        if invoice.carrier_selection() == CarrierSelection.CARRIER:
            if not self.carriers.is_known(invoice.carrier_type):
                raise InvoiceValidationError(
                    f"{self.display_name} does not support carrier type "
                    f"'{invoice.carrier_type}'"
                )
            number = self.carriers.format_carrier_number(
                invoice.carrier_type, invoice.carrier_num
            )
            if not self.carriers.validate_carrier(invoice.carrier_type, number):
                raise InvoiceValidationError(
                    f"Invalid carrier number for type '{invoice.carrier_type}'"
                )
        elif invoice.carrier_selection() == CarrierSelection.DONATION:
            if not self.carriers.validate_carrier("donate", invoice.love_code):
                raise InvoiceValidationError(
                    f"Invalid donation code: {invoice.love_code!r}"
                )

    async def before_create(
        self,
        invoice: Invoice,
        credential: Credential,
        mode: Mode,
        cancel: Optional[CancellationToken],
    ) -> None:
        """Prerequisite vendor calls made before the invoice is issued."""
        return None

    # Shared plumbing

    def get_credential(self, mode: Mode) -> Credential:
        """
        Select and check the credential set for ``mode``.

        Raises:
            ConfigurationError: Credential set absent, or a field missing or a placeholder
        """
        credential = self.platform_config.credential_for(mode)
        return require_fields(
            credential, self.required_fields, f"{self.display_name} {Mode(mode).value}"
        )

    def normalize_carrier(self, invoice: Invoice) -> Invoice:
        """Apply the vendor's carrier number formatting."""
        if invoice.carrier_selection() != CarrierSelection.CARRIER:
            return invoice
        return invoice.model_copy(
            update={
                "carrier_num": self.carriers.format_carrier_number(
                    invoice.carrier_type, invoice.carrier_num
                )
            }
        )

    async def call_gateway(
        self,
        action: Action,
        invoice_type: str,
        body: dict,
        mode: Mode,
        cancel: Optional[CancellationToken] = None,
    ) -> Any:
        """Send a wire body through the gateway and return the vendor response."""
        request = RelayRequest(
            platform=self.vendor,
            test_mode=Mode(mode).is_test,
            action=action,
            invoice_type=invoice_type,
            data=body,
        )
        logger.debug(f"{self.display_name} {action.value} ({invoice_type}) -> gateway")
        return await self.gateway.send(request, cancel=cancel)

    # Operations

    async def create(
        self,
        invoice: Invoice,
        mode: Mode = Mode.TEST,
        cancel: Optional[CancellationToken] = None,
    ) -> NormalizedResult:
        """
        Issue an invoice with the vendor.

        Args:
            invoice: Canonical invoice; its amounts are recomputed from items
            mode: Credential set to use
            cancel: Cancellation context of the calling batch

        Returns:
            NormalizedResult, never raises
        """
        mode = Mode(mode)
        order_no = invoice.merchant_order_no
        try:
            credential = self.get_credential(mode)

            invoice = invoice.recalculate()
            problems = invoice.validate_for_submission()
            if problems:
                raise InvoiceValidationError("; ".join(problems))
            self.validate_invoice(invoice)
            invoice = self.normalize_carrier(invoice)

            payload = self.transform(invoice)
            body = self.encrypt(payload, credential)

            await self.before_create(invoice, credential, mode, cancel)

            response = await self.call_gateway(
                Action.CREATE, invoice.category.value, body, mode, cancel
            )
            response = self.unwrap_response(response, credential)
            result = self.parse_response(response)

            logger.info(
                f"{self.display_name} issued {result.invoice_number or '(no number)'} "
                f"for {order_no}"
            )
            return result

        except OperationAborted as e:
            logger.info(f"{self.display_name} create aborted for {order_no}")
            return NormalizedResult.failure(str(e), e.error_type, aborted=True)
        except VendorRejection as e:
            logger.warning(f"{self.display_name} rejected {order_no}: {e}")
            return NormalizedResult.failure(str(e), e.error_type)
        except EInvoiceError as e:
            logger.warning(f"{self.display_name} create failed for {order_no}: {e}")
            return NormalizedResult.failure(str(e), e.error_type)
        except Exception as e:
            logger.error(
                f"Unexpected error creating {order_no} with {self.display_name}: {e}",
                exc_info=True,
            )
            return NormalizedResult.failure(f"Unexpected error: {e}", "unexpected")

    async def void(
        self,
        invoice_number: str,
        reason: str,
        mode: Mode = Mode.TEST,
        *,
        invoice_date: Optional[date] = None,
        category: Category = Category.B2C,
        cancel: Optional[CancellationToken] = None,
    ) -> VoidResult:
        """
        Invalidate a previously issued invoice.

        Args:
            invoice_number: Vendor invoice number
            reason: Void reason shown to the tax authority
            mode: Credential set to use
            invoice_date: Issue date, required by some vendors (defaults to today)
            category: B2B or B2C, selects the endpoint for some vendors
            cancel: Cancellation context

        Returns:
            VoidResult, never raises
        """
        mode = Mode(mode)
        category = Category(category)
        try:
            if not invoice_number or not reason:
                raise InvoiceValidationError("invoice_number and reason are required")
            credential = self.get_credential(mode)

            body = self.build_void_payload(
                invoice_number, reason, credential, invoice_date or self.today(), category
            )
            response = await self.call_gateway(
                Action.VOID, category.value, body, mode, cancel
            )
            response = self.unwrap_response(response, credential)
            result = self.parse_void_response(response)
            if not result.invoice_number:
                result.invoice_number = invoice_number

            logger.info(f"{self.display_name} voided {invoice_number}")
            return result

        except OperationAborted as e:
            return VoidResult(
                success=False, error=str(e), error_type=e.error_type, aborted=True
            )
        except EInvoiceError as e:
            logger.warning(f"{self.display_name} void failed for {invoice_number}: {e}")
            return VoidResult(success=False, error=str(e), error_type=e.error_type)
        except Exception as e:
            logger.error(
                f"Unexpected error voiding {invoice_number} with {self.display_name}: {e}",
                exc_info=True,
            )
            return VoidResult(
                success=False, error=f"Unexpected error: {e}", error_type="unexpected"
            )

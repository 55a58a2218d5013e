"""Canonical invoice models and amount derivation."""

from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from utils.amounts import round_half_up, tax_on, to_decimal


class Category(str, Enum):
    """Invoice category."""

    B2B = "B2B"
    B2C = "B2C"


class TaxType(str, Enum):
    """Invoice-level tax treatment."""

    TAXABLE = "1"
    ZERO_RATED = "2"
    TAX_EXEMPT = "3"
    SPECIAL = "4"
    MIXED = "9"


class ItemTaxType(str, Enum):
    """Per-item tax treatment, only meaningful on mixed invoices."""

    TAXABLE = "1"
    ZERO_RATED = "2"
    ZERO_RATED_NON_COMPOSITE = "2_1"
    ZERO_RATED_COMPOSITE = "2_2"
    TAX_EXEMPT = "3"

    @property
    def is_zero_rated(self) -> bool:
        return self.value.startswith("2")

    @property
    def wire_value(self) -> str:
        """Vendor APIs only know 1/2/3."""
        return self.value[0]


class InvoiceStatus(str, Enum):
    """Lifecycle status of an invoice in the store."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    VOIDED = "voided"


class CarrierSelection(str, Enum):
    """How a B2C invoice is delivered."""

    PRINT = "print"
    DONATION = "donation"
    CARRIER = "carrier"


DONATE_CARRIER = "donate"

DERIVED_AMOUNT_FIELDS = (
    "amt",
    "sales_amount",
    "zero_tax_sales_amount",
    "free_tax_sales_amount",
    "tax_amt",
    "total_amt",
)


def _enum_value(v):
    """Raw value of an enum member; ``str()`` of a str-Enum is its qualified name."""
    if isinstance(v, Enum):
        return v.value
    return str(v)


def _loose_amount(v, default=None):
    """
    Coerce a caller-supplied amount to int.

    Derived amounts are recomputed by ``Invoice.recalculate()``, so values that
    are not whole numbers are rounded and unparseable ones fall back to
    ``default`` instead of rejecting the invoice.
    """
    if v is None or v == "":
        return default
    try:
        return round_half_up(v)
    except (ArithmeticError, ValueError, TypeError):
        return default


class Item(BaseModel):
    """A single line item on an invoice."""

    model_config = {"populate_by_name": True}

    name: str
    quantity: int = Field(
        default=1, ge=1, validation_alias=AliasChoices("quantity", "count")
    )
    unit: str = ""
    unit_price: Decimal = Field(
        default=Decimal("0"), ge=0, validation_alias=AliasChoices("unit_price", "price")
    )
    amount: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("amount", "amt")
    )
    item_tax_type: Optional[ItemTaxType] = Field(
        default=None, validation_alias=AliasChoices("item_tax_type", "tax_type")
    )

    @field_validator("unit_price", mode="before")
    @classmethod
    def parse_price(cls, v):
        """Strip currency formatting and convert to Decimal."""
        if v is None or v == "":
            return Decimal("0")
        if isinstance(v, (int, float, Decimal)):
            return Decimal(str(v))
        if isinstance(v, str):
            v = v.replace("NT$", "").replace("$", "").replace(",", "").strip()
            try:
                return Decimal(v)
            except (InvalidOperation, ValueError):
                raise ValueError(f"Invalid unit price: {v!r}")
        return v

    @field_validator("item_tax_type", mode="before")
    @classmethod
    def parse_item_tax_type(cls, v):
        if v is None or v == "":
            return None
        return _enum_value(v)

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v):
        return _loose_amount(v)

    def computed_amount(self) -> int:
        """round(quantity x unit_price)."""
        return round_half_up(self.quantity * self.unit_price)

    @property
    def effective_tax_type(self) -> ItemTaxType:
        return self.item_tax_type or ItemTaxType.TAXABLE


class Invoice(BaseModel):
    """Canonical invoice as held by the invoice store."""

    model_config = {"populate_by_name": True, "validate_assignment": False}

    merchant_order_no: str = ""
    category: Category = Category.B2C

    # Buyer
    buyer_name: str = ""
    buyer_ubn: str = ""
    buyer_email: str = ""
    buyer_phone: str = ""
    buyer_address: str = ""

    items: list[Item] = Field(default_factory=list)

    # Tax
    tax_type: TaxType = TaxType.TAXABLE
    tax_rate: Decimal = Decimal("5")
    clearance_mark: str = Field(
        default="", validation_alias=AliasChoices("clearance_mark", "customs_clearance")
    )

    # Derived amounts, always recomputed before submission
    amt: int = 0
    sales_amount: int = 0
    zero_tax_sales_amount: int = 0
    free_tax_sales_amount: int = 0
    tax_amt: int = 0
    total_amt: int = 0

    # Delivery
    print_flag: str = "Y"
    carrier_type: Optional[str] = None
    carrier_num: str = ""
    carrier_num2: str = ""
    love_code: str = ""
    kiosk_print_flag: str = ""

    comment: str = ""
    invoice_date: Optional[date] = None

    # Lifecycle, written by the orchestrator only
    status: InvoiceStatus = Field(
        default=InvoiceStatus.PENDING, validation_alias=AliasChoices("status", "_status")
    )
    invoice_number: str = ""
    random_number: str = ""
    create_time: str = ""
    error: str = ""

    @field_validator("tax_type", mode="before")
    @classmethod
    def parse_tax_type(cls, v):
        if v is None or v == "":
            return TaxType.TAXABLE
        return _enum_value(v)

    @field_validator(*DERIVED_AMOUNT_FIELDS, mode="before")
    @classmethod
    def parse_derived_amount(cls, v):
        return _loose_amount(v, default=0)

    @field_validator("tax_rate", mode="before")
    @classmethod
    def parse_tax_rate(cls, v):
        if v is None or v == "":
            return Decimal("5")
        return Decimal(str(v))

    @field_validator("clearance_mark", mode="before")
    @classmethod
    def parse_clearance(cls, v):
        return "" if v is None else str(v)

    @field_validator("invoice_date", mode="before")
    @classmethod
    def parse_date(cls, v):
        """Parse various date formats."""
        if v is None or v == "" or isinstance(v, date):
            return v or None
        if isinstance(v, str):
            from dateutil.parser import parse

            try:
                return parse(v).date()
            except (ValueError, OverflowError):
                raise ValueError(f"Invalid invoice date: {v!r}")
        return v

    @model_validator(mode="after")
    def normalize_carrier(self):
        """Fold the ``donate`` pseudo-carrier into ``love_code``."""
        if self.carrier_type == DONATE_CARRIER:
            if self.love_code and self.carrier_num and self.love_code != self.carrier_num:
                raise ValueError("Conflicting donation codes")
            self.love_code = self.love_code or self.carrier_num
            self.carrier_type = None
            self.carrier_num = ""
        if self.carrier_type == "" or self.carrier_type == "print":
            self.carrier_type = None
        if self.carrier_type and self.love_code:
            raise ValueError("carrier_type and love_code are mutually exclusive")
        return self

    @property
    def is_b2b(self) -> bool:
        return self.category == Category.B2B

    def carrier_selection(self) -> CarrierSelection:
        """Resolve the single delivery route. B2B invoices are always printed."""
        if self.is_b2b:
            return CarrierSelection.PRINT
        if self.love_code:
            return CarrierSelection.DONATION
        if self.carrier_type:
            return CarrierSelection.CARRIER
        return CarrierSelection.PRINT

    def recalculate(self) -> "Invoice":
        """
        Return a copy with item and invoice amounts derived from ``items``.

        Caller-supplied amounts are discarded.
        """
        items = [
            item.model_copy(update={"amount": item.computed_amount()})
            for item in self.items
        ]

        amt = 0
        sales = zero = free = tax = 0
        rate = to_decimal(self.tax_rate)

        for item in items:
            amt += item.amount
            if self.tax_type == TaxType.MIXED:
                item_type = item.effective_tax_type
                if item_type == ItemTaxType.TAXABLE:
                    sales += item.amount
                    tax += tax_on(item.amount, rate)
                elif item_type.is_zero_rated:
                    zero += item.amount
                else:
                    free += item.amount

        if self.tax_type in (TaxType.TAXABLE, TaxType.SPECIAL):
            sales = amt
            tax = tax_on(amt, rate)
        elif self.tax_type == TaxType.ZERO_RATED:
            zero = amt
        elif self.tax_type == TaxType.TAX_EXEMPT:
            free = amt

        return self.model_copy(
            update={
                "items": items,
                "amt": amt,
                "sales_amount": sales,
                "zero_tax_sales_amount": zero,
                "free_tax_sales_amount": free,
                "tax_amt": tax,
                "total_amt": amt + tax,
            }
        )

    def validate_for_submission(self) -> list[str]:
        """Return a list of problems that make the invoice unsubmittable."""
        errors = []
        if not self.items:
            errors.append("At least one item is required")
        for index, item in enumerate(self.items, start=1):
            if not item.name.strip():
                errors.append(f"Item {index}: name is required")
        if self.is_b2b and not self.buyer_ubn:
            errors.append("B2B invoices require buyer_ubn")
        return errors

"""Per-vendor carrier catalogues, validation and number formatting."""

import re
from dataclasses import dataclass
from typing import Optional, Pattern

from models.invoice import DONATE_CARRIER, Category
from models.vendor import VendorType

PRINT = "print"

MOBILE_BARCODE = re.compile(r"^/[A-Z0-9+.\-]{7}$")
CITIZEN_CERTIFICATE = re.compile(r"^[A-Z]{2}[0-9]{14}$")
DONATION_CODE = re.compile(r"^[0-9]{3,7}$")
CARD_16_DIGITS = re.compile(r"^[0-9]{16}$")
AT_LEAST_8 = re.compile(r"^.{8,}$")


@dataclass(frozen=True)
class CarrierOption:
    """One selectable delivery route."""

    value: str
    label: str
    pattern: Optional[Pattern] = None
    # Free-form routes (vendor member carriers) need no number check
    accepts_any: bool = False
    # Number normalisation: upper, slash, strip or digits
    format: Optional[str] = None


_PRINT_OPTION = CarrierOption(PRINT, "Print invoice", accepts_any=True)
_DONATE_OPTION = CarrierOption(DONATE_CARRIER, "Donate (love code)", DONATION_CODE, format="digits")


def _mobile(value: str) -> CarrierOption:
    return CarrierOption(value, "Mobile barcode", MOBILE_BARCODE, format="slash")


def _citizen(value: str) -> CarrierOption:
    return CarrierOption(value, "Citizen digital certificate", CITIZEN_CERTIFICATE, format="upper")


CARRIER_CATALOGUES: dict[VendorType, list[CarrierOption]] = {
    VendorType.EZPAY: [
        _PRINT_OPTION,
        _DONATE_OPTION,
        _mobile("0"),
        _citizen("1"),
        CarrierOption("2", "ezPay e-invoice carrier", accepts_any=True),
    ],
    VendorType.ECPAY: [
        _PRINT_OPTION,
        _DONATE_OPTION,
        _mobile("3"),
        _citizen("2"),
        CarrierOption("1", "ECPay member carrier", accepts_any=True),
        CarrierOption("4", "EasyCard", AT_LEAST_8, format="strip"),
        CarrierOption("5", "iPASS", AT_LEAST_8, format="strip"),
    ],
    VendorType.OPAY: [
        _PRINT_OPTION,
        _DONATE_OPTION,
        _mobile("3"),
        _citizen("2"),
        CarrierOption("1", "O'Pay member carrier", accepts_any=True),
        CarrierOption("4", "EasyCard", CARD_16_DIGITS, format="strip"),
        CarrierOption("5", "icash", accepts_any=True),
        CarrierOption("6", "iPASS", CARD_16_DIGITS, format="strip"),
        CarrierOption("7", "Debit card", CARD_16_DIGITS, format="strip"),
        CarrierOption("8", "Credit card", CARD_16_DIGITS, format="strip"),
    ],
    VendorType.SMILEPAY: [
        _PRINT_OPTION,
        _DONATE_OPTION,
        _mobile("3J0002"),
        _citizen("CQ0001"),
        CarrierOption("EJ0113", "SmilePay member carrier", accepts_any=True),
    ],
    VendorType.AMEGO: [
        _PRINT_OPTION,
        _DONATE_OPTION,
        _mobile("3J0002"),
        _citizen("CQ0001"),
        CarrierOption("amego", "Amego member carrier", accepts_any=True),
    ],
}


class CarrierCatalogue:
    """Carrier options and number rules for a single vendor."""

    def __init__(self, vendor: VendorType):
        self.vendor = vendor
        self._options = {option.value: option for option in CARRIER_CATALOGUES[vendor]}

    def carrier_options(self, category: Category = Category.B2C) -> list[CarrierOption]:
        """B2B invoices are printed, so their only option is print."""
        if Category(category) == Category.B2B:
            return [_PRINT_OPTION]
        return list(self._options.values())

    def describe_carrier(self, code: str) -> str:
        option = self._options.get(code)
        return option.label if option else ""

    def is_known(self, code: str) -> bool:
        return code in self._options

    def validate_carrier(self, carrier_type: str, number: str) -> bool:
        """
        Check a carrier number against the vendor's rule for ``carrier_type``.

        Args:
            carrier_type: Vendor carrier code, ``donate`` or ``print``
            number: Carrier number or donation code

        Returns:
            True if the number is acceptable for the carrier
        """
        option = self._options.get(carrier_type)
        if option is None:
            return False
        if option.accepts_any:
            return True
        return bool(number) and bool(option.pattern.match(number))

    def format_carrier_number(self, carrier_type: str, number: str) -> str:
        """Normalise a user-typed carrier number for the vendor."""
        if not number:
            return ""
        option = self._options.get(carrier_type)
        style = option.format if option else None
        if style == "upper":
            return number.upper()
        if style == "slash":
            return number if number.startswith("/") else f"/{number}"
        if style == "strip":
            return re.sub(r"[-\s]", "", number)
        if style == "digits":
            return re.sub(r"\D", "", number)
        return number

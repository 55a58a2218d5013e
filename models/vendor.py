"""Vendor identifiers and the vendor endpoint table."""

from enum import Enum
from pathlib import Path
from typing import Optional


class VendorType(str, Enum):
    """Enumeration of supported e-invoice vendors."""

    EZPAY = "ezpay"
    ECPAY = "ecpay"
    OPAY = "opay"
    SMILEPAY = "smilepay"
    AMEGO = "amego"
    UNKNOWN = "unknown"


class Action(str, Enum):
    """Relay action names."""

    CREATE = "create"
    VOID = "void"
    MAINTAIN_CUSTOMER = "maintain_customer"


VENDOR_DISPLAY_NAMES: dict[VendorType, str] = {
    VendorType.EZPAY: "ezPay",
    VendorType.ECPAY: "ECPay",
    VendorType.OPAY: "O'Pay",
    VendorType.SMILEPAY: "SmilePay",
    VendorType.AMEGO: "Amego",
}


# (create, void) per environment. Customer maintenance only exists for O'Pay.
VENDOR_ENDPOINTS: dict[VendorType, dict[str, dict[Action, str]]] = {
    VendorType.EZPAY: {
        "test": {
            Action.CREATE: "https://cinv.ezpay.com.tw/Api/invoice_issue",
            Action.VOID: "https://cinv.ezpay.com.tw/Api/invoice_invalid",
        },
        "prod": {
            Action.CREATE: "https://inv.ezpay.com.tw/Api/invoice_issue",
            Action.VOID: "https://inv.ezpay.com.tw/Api/invoice_invalid",
        },
    },
    VendorType.ECPAY: {
        "test": {
            Action.CREATE: "https://einvoice-stage.ecpay.com.tw/B2CInvoice/Issue",
            Action.VOID: "https://einvoice-stage.ecpay.com.tw/B2CInvoice/Invalid",
        },
        "prod": {
            Action.CREATE: "https://einvoice.ecpay.com.tw/B2CInvoice/Issue",
            Action.VOID: "https://einvoice.ecpay.com.tw/B2CInvoice/Invalid",
        },
    },
    VendorType.OPAY: {
        "test": {
            Action.CREATE: "https://einvoice-stage.opay.tw/B2CInvoice/Issue",
            Action.VOID: "https://einvoice-stage.opay.tw/B2CInvoice/Invalid",
            Action.MAINTAIN_CUSTOMER: "https://einvoice-stage.opay.tw/B2BInvoice/MaintainMerchantCustomerData",
        },
        "prod": {
            Action.CREATE: "https://einvoice.opay.tw/B2CInvoice/Issue",
            Action.VOID: "https://einvoice.opay.tw/B2CInvoice/Invalid",
            Action.MAINTAIN_CUSTOMER: "https://einvoice.opay.tw/B2BInvoice/MaintainMerchantCustomerData",
        },
    },
    VendorType.SMILEPAY: {
        "test": {
            Action.CREATE: "https://ssl.smse.com.tw/api_test/SPEinvoice_Storage.asp",
            Action.VOID: "https://ssl.smse.com.tw/api_test/SPEinvoice_Storage_Modify.asp",
        },
        "prod": {
            Action.CREATE: "https://ssl.smse.com.tw/api/SPEinvoice_Storage.asp",
            Action.VOID: "https://ssl.smse.com.tw/api/SPEinvoice_Storage_Modify.asp",
        },
    },
    VendorType.AMEGO: {
        "test": {
            Action.CREATE: "https://invoice-api.amego.tw/json/f0401",
            Action.VOID: "https://invoice-api.amego.tw/json/f0501",
        },
        "prod": {
            Action.CREATE: "https://invoice-api.amego.tw/json/f0401",
            Action.VOID: "https://invoice-api.amego.tw/json/f0501",
        },
    },
}

# Vendors whose B2B calls live under /B2BInvoice/ instead of /B2CInvoice/
B2B_REWRITE_VENDORS = frozenset({VendorType.ECPAY, VendorType.OPAY})

# Vendors that take a JSON request body; the rest are form-encoded
JSON_BODY_VENDORS = frozenset({VendorType.ECPAY, VendorType.OPAY})


def resolve_endpoint(
    vendor: VendorType,
    test_mode: bool,
    action: Action = Action.CREATE,
    invoice_type: str = "B2C",
) -> Optional[str]:
    """
    Resolve the vendor URL for an action.

    Args:
        vendor: Target vendor
        test_mode: Use the staging environment
        action: create, void or maintain_customer
        invoice_type: "B2B" or "B2C"

    Returns:
        Endpoint URL, or None if the vendor does not support the action
    """
    env = "test" if test_mode else "prod"
    url = VENDOR_ENDPOINTS.get(vendor, {}).get(env, {}).get(Action(action))
    if not url:
        return None

    if (
        action != Action.MAINTAIN_CUSTOMER
        and invoice_type == "B2B"
        and vendor in B2B_REWRITE_VENDORS
    ):
        url = url.replace("/B2CInvoice/", "/B2BInvoice/")

    return url


def detect_vendor_from_filename(filename: str) -> VendorType:
    """
    Detect vendor from a file name such as ``ecpay_invoices.json``.

    Args:
        filename: File name or path

    Returns:
        VendorType, or UNKNOWN if no vendor name appears in it
    """
    lower = Path(filename).name.lower()
    for vendor in (
        VendorType.EZPAY,
        VendorType.ECPAY,
        VendorType.SMILEPAY,
        VendorType.AMEGO,
        VendorType.OPAY,
    ):
        if vendor.value in lower:
            return vendor
    return VendorType.UNKNOWN

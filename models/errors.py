"""Error taxonomy for invoice submission."""

from typing import Optional


class EInvoiceError(Exception):
    """Base class for all invoice submission errors."""

    error_type = "error"


class ConfigurationError(EInvoiceError):
    """Missing or placeholder credentials. Raised before any network I/O."""

    error_type = "configuration"


class EncryptionError(EInvoiceError):
    """Cipher or signature generation/verification failed."""

    error_type = "encryption"


class NetworkError(EInvoiceError):
    """Timeout, connection failure or relay fault."""

    error_type = "network"


class OperationAborted(NetworkError):
    """The in-flight call was cancelled by an explicit abort."""

    error_type = "aborted"

    def __init__(self, message: str = "Operation aborted"):
        super().__init__(message)


class VendorRejection(EInvoiceError):
    """Well-formed vendor response carrying a business failure code."""

    error_type = "vendor_rejection"

    def __init__(self, message: str, code: Optional[object] = None):
        super().__init__(message)
        self.code = code


class ParseError(EInvoiceError):
    """Malformed or unexpected vendor response."""

    error_type = "parse"


class InvoiceValidationError(EInvoiceError):
    """Canonical invoice violates an invariant or a vendor restriction."""

    error_type = "validation"


class BatchError(EInvoiceError):
    """Queue-level fault (empty queue, illegal state transition)."""

    error_type = "batch"

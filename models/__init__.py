"""Data models for e-invoice submission."""

from models.batch_result import (
    BatchEvent,
    BatchFinished,
    BatchOutcome,
    BatchPaused,
    BatchProgress,
    BatchStarted,
    BatchState,
    BatchStatistics,
    ItemOutcome,
    ItemProcessing,
    MaintenanceResult,
    NormalizedResult,
    VoidResult,
)
from models.credentials import Mode, PlatformConfig, is_placeholder
from models.errors import (
    BatchError,
    ConfigurationError,
    EInvoiceError,
    EncryptionError,
    InvoiceValidationError,
    NetworkError,
    OperationAborted,
    ParseError,
    VendorRejection,
)
from models.invoice import (
    Category,
    CarrierSelection,
    Invoice,
    InvoiceStatus,
    Item,
    ItemTaxType,
    TaxType,
)
from models.vendor import Action, VendorType

__all__ = [
    "Action",
    "BatchError",
    "BatchEvent",
    "BatchFinished",
    "BatchOutcome",
    "BatchPaused",
    "BatchProgress",
    "BatchStarted",
    "BatchState",
    "BatchStatistics",
    "CarrierSelection",
    "Category",
    "ConfigurationError",
    "EInvoiceError",
    "EncryptionError",
    "Invoice",
    "InvoiceStatus",
    "InvoiceValidationError",
    "Item",
    "ItemOutcome",
    "ItemProcessing",
    "ItemTaxType",
    "MaintenanceResult",
    "Mode",
    "NetworkError",
    "NormalizedResult",
    "OperationAborted",
    "ParseError",
    "PlatformConfig",
    "TaxType",
    "VendorRejection",
    "VendorType",
    "VoidResult",
    "is_placeholder",
]

"""Gateways, invoice store and batch orchestration."""

from processors.batch_orchestrator import BatchOrchestrator
from processors.invoice_store import InMemoryInvoiceStore
from processors.relay_client import (
    DirectGateway,
    Gateway,
    RelayClient,
    RelayRequest,
    build_gateway,
)

__all__ = [
    "BatchOrchestrator",
    "DirectGateway",
    "Gateway",
    "InMemoryInvoiceStore",
    "RelayClient",
    "RelayRequest",
    "build_gateway",
]

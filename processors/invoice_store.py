"""Minimal in-memory invoice store used by the batch orchestrator."""

import json
import logging
import random
import string
from pathlib import Path
from typing import Iterable, Iterator, Optional

from pydantic import ValidationError

from config import Config
from models.errors import InvoiceValidationError
from models.invoice import Invoice

logger = logging.getLogger(__name__)

ORDER_NO_ALPHABET = string.digits + string.ascii_uppercase
ORDER_NO_RANDOM_LENGTH = 6


class InMemoryInvoiceStore:
    """
    Ordered collection of invoices keyed by merchant order number.

    Only the orchestrator writes lifecycle fields; everything else reads
    snapshots.
    """

    def __init__(
        self,
        invoices: Optional[Iterable[Invoice]] = None,
        order_no_prefix: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ):
        self.order_no_prefix = order_no_prefix or Config.ORDER_NO_PREFIX
        self._rng = rng or random.Random()
        self._invoices: dict[str, Invoice] = {}
        for invoice in invoices or []:
            self.add(invoice)

    def __len__(self) -> int:
        return len(self._invoices)

    def __iter__(self) -> Iterator[Invoice]:
        return iter(list(self._invoices.values()))

    def __contains__(self, order_no: str) -> bool:
        return order_no in self._invoices

    def generate_order_no(self) -> str:
        """Prefix followed by six random characters from [0-9A-Z]."""
        suffix = "".join(
            self._rng.choice(ORDER_NO_ALPHABET) for _ in range(ORDER_NO_RANDOM_LENGTH)
        )
        return f"{self.order_no_prefix}{suffix}"

    def unique_order_no(self, base: str) -> str:
        """Return ``base``, or ``base_1``, ``base_2``... if it is taken."""
        if base not in self._invoices:
            return base
        counter = 1
        while f"{base}_{counter}" in self._invoices:
            counter += 1
        return f"{base}_{counter}"

    def add(self, invoice: Invoice) -> Invoice:
        """
        Add an invoice, assigning or de-duplicating its order number.

        Args:
            invoice: Invoice to store

        Returns:
            The stored invoice (with its final order number)
        """
        order_no = invoice.merchant_order_no or self.generate_order_no()
        unique = self.unique_order_no(order_no)
        if unique != order_no and invoice.merchant_order_no:
            logger.warning(f"Duplicate order number {order_no}, stored as {unique}")
        stored = invoice.model_copy(update={"merchant_order_no": unique})
        self._invoices[unique] = stored
        return stored

    def get(self, order_no: str) -> Optional[Invoice]:
        return self._invoices.get(order_no)

    def update(self, order_no: str, **fields) -> Invoice:
        """
        Replace fields on a stored invoice.

        Raises:
            KeyError: If no invoice has this order number
        """
        current = self._invoices[order_no]
        updated = current.model_copy(update=fields)
        self._invoices[order_no] = updated
        return updated

    def snapshot(self) -> list[Invoice]:
        """Point-in-time copy of the queue, in insertion order."""
        return list(self._invoices.values())

    @classmethod
    def load_json(cls, path: Path, **kwargs) -> "InMemoryInvoiceStore":
        """
        Build a store from a JSON file holding a list of invoices.

        Accepts either a bare list or ``{"invoices": [...]}``.

        Raises:
            InvoiceValidationError: If an entry is not a valid invoice
        """
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("invoices", [])

        invoices = []
        for index, entry in enumerate(data, start=1):
            try:
                invoices.append(Invoice.model_validate(entry))
            except ValidationError as e:
                raise InvoiceValidationError(f"Invoice #{index} in {path}: {e}") from e

        logger.info(f"Loaded {len(invoices)} invoices from {path}")
        return cls(invoices, **kwargs)

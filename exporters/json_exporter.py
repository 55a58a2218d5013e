"""JSON export of the invoice queue, reloadable as a fresh queue."""

import json
from datetime import date
from pathlib import Path
from typing import Optional

from config import Config
from models import Invoice
from utils import get_logger

logger = get_logger(__name__)

# Lifecycle fields owned by the orchestrator
LIFECYCLE_FIELDS = {"status", "invoice_number", "random_number", "create_time", "error"}


class JSONExporter:
    """Export invoices as a JSON list without their lifecycle fields."""

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = Path(output_dir or Config.OUTPUT_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def clean_invoice(invoice: Invoice) -> dict:
        """Serialize one invoice, dropping lifecycle fields and unset values."""
        return invoice.model_dump(mode="json", exclude=LIFECYCLE_FIELDS, exclude_none=True)

    @staticmethod
    def file_name(on: Optional[date] = None) -> str:
        """``invoices-YYYY-MM-DD.json`` for ``on`` (today by default)."""
        return f"invoices-{(on or date.today()).isoformat()}.json"

    def export(self, invoices: list[Invoice], output_file: Optional[Path] = None) -> Optional[Path]:
        """
        Write invoices to JSON.

        Args:
            invoices: Invoices to export
            output_file: Optional custom output path

        Returns:
            Path to the written file, or None when there is nothing to export
        """
        if not invoices:
            logger.warning("No invoices to export")
            return None

        output_file = Path(output_file or self.output_dir / self.file_name())
        data = [self.clean_invoice(invoice) for invoice in invoices]

        logger.info(f"Writing {len(data)} invoices to {output_file}")
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        return output_file

"""CSV export of the invoice queue."""

import csv
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import Config
from models import Invoice
from utils import get_logger

logger = get_logger(__name__)

INVOICE_HEADERS = [
    "merchant_order_no",
    "category",
    "buyer_name",
    "buyer_ubn",
    "buyer_email",
    "tax_type",
    "tax_rate",
    "sales_amount",
    "zero_tax_sales_amount",
    "free_tax_sales_amount",
    "tax_amt",
    "total_amt",
    "carrier_type",
    "carrier_num",
    "love_code",
    "invoice_date",
    "status",
    "invoice_number",
    "random_number",
    "create_time",
    "error",
]

ITEM_HEADERS = [
    "line_number",
    "name",
    "quantity",
    "unit",
    "unit_price",
    "amount",
    "item_tax_type",
]


class CSVExporter:
    """Export invoices and their items to CSV."""

    def __init__(
        self,
        output_dir: Optional[Path] = None,
        format_type: Optional[str] = None,
    ):
        """
        Initialize CSV exporter.

        Args:
            output_dir: Directory for output files (defaults to Config.OUTPUT_DIR)
            format_type: "normalized" or "denormalized" (defaults to Config.CSV_FORMAT)
        """
        self.output_dir = Path(output_dir or Config.OUTPUT_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.format_type = format_type or Config.CSV_FORMAT
        if self.format_type not in ("normalized", "denormalized"):
            raise ValueError(f"Unknown CSV format: {self.format_type}")
        logger.info(f"Initialized CSVExporter: format={self.format_type}")

    def export(
        self, invoices: list[Invoice], filename_prefix: str = "invoices"
    ) -> dict[str, Path]:
        """
        Export invoices to CSV.

        Amounts are written as derived by ``Invoice.recalculate()``.

        Args:
            invoices: Invoices to export
            filename_prefix: Prefix for output filenames

        Returns:
            Dictionary mapping file type to output path
        """
        if not invoices:
            logger.warning("No invoices to export")
            return {}

        invoices = [invoice.recalculate() for invoice in invoices]
        if self.format_type == "normalized":
            return self._export_normalized(invoices, filename_prefix)
        return self._export_denormalized(invoices, filename_prefix)

    @staticmethod
    def _invoice_row(invoice: Invoice) -> dict:
        return {
            "merchant_order_no": invoice.merchant_order_no,
            "category": invoice.category.value,
            "buyer_name": invoice.buyer_name,
            "buyer_ubn": invoice.buyer_ubn,
            "buyer_email": invoice.buyer_email,
            "tax_type": invoice.tax_type.value,
            "tax_rate": str(invoice.tax_rate),
            "sales_amount": invoice.sales_amount,
            "zero_tax_sales_amount": invoice.zero_tax_sales_amount,
            "free_tax_sales_amount": invoice.free_tax_sales_amount,
            "tax_amt": invoice.tax_amt,
            "total_amt": invoice.total_amt,
            "carrier_type": invoice.carrier_type or "",
            "carrier_num": invoice.carrier_num,
            "love_code": invoice.love_code,
            "invoice_date": (
                invoice.invoice_date.strftime(Config.DATE_FORMAT)
                if invoice.invoice_date
                else ""
            ),
            "status": invoice.status.value,
            "invoice_number": invoice.invoice_number,
            "random_number": invoice.random_number,
            "create_time": invoice.create_time,
            "error": invoice.error,
        }

    @staticmethod
    def _item_rows(invoice: Invoice) -> list[dict]:
        return [
            {
                "line_number": line_num,
                "name": item.name,
                "quantity": item.quantity,
                "unit": item.unit,
                "unit_price": str(item.unit_price),
                "amount": item.computed_amount(),
                "item_tax_type": item.item_tax_type.value if item.item_tax_type else "",
            }
            for line_num, item in enumerate(invoice.items, start=1)
        ]

    def _export_normalized(
        self, invoices: list[Invoice], filename_prefix: str
    ) -> dict[str, Path]:
        """
        Export in normalized format (separate invoice and item files).

        Returns:
            Dictionary with 'invoices' and 'items' file paths
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        invoice_file = self.output_dir / f"{filename_prefix}_{timestamp}.csv"
        items_file = self.output_dir / f"{filename_prefix}_items_{timestamp}.csv"

        logger.info(f"Writing {len(invoices)} invoices to {invoice_file}")
        with open(invoice_file, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=INVOICE_HEADERS)
            writer.writeheader()
            for invoice in invoices:
                writer.writerow(self._invoice_row(invoice))

        total_items = sum(len(inv.items) for inv in invoices)
        logger.info(f"Writing {total_items} items to {items_file}")
        with open(items_file, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=["merchant_order_no", *ITEM_HEADERS])
            writer.writeheader()
            for invoice in invoices:
                for row in self._item_rows(invoice):
                    writer.writerow({"merchant_order_no": invoice.merchant_order_no, **row})

        logger.info("Normalized export complete")
        return {"invoices": invoice_file, "items": items_file}

    def _export_denormalized(
        self, invoices: list[Invoice], filename_prefix: str
    ) -> dict[str, Path]:
        """
        Export in denormalized format (one row per item, invoice fields repeated).

        Returns:
            Dictionary with 'invoices' file path
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_file = self.output_dir / f"{filename_prefix}_{timestamp}.csv"

        total_rows = sum(len(inv.items) or 1 for inv in invoices)
        logger.info(f"Writing {total_rows} rows to {output_file}")

        with open(output_file, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=INVOICE_HEADERS + ITEM_HEADERS)
            writer.writeheader()

            for invoice in invoices:
                base_row = self._invoice_row(invoice)
                item_rows = self._item_rows(invoice)
                if not item_rows:
                    writer.writerow({**base_row, **{key: "" for key in ITEM_HEADERS}})
                for row in item_rows:
                    writer.writerow({**base_row, **row})

        logger.info("Denormalized export complete")
        return {"invoices": output_file}

"""Generate markdown summary reports for batch submission runs."""

from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Optional

from models import Invoice
from models.batch_result import BatchOutcome, BatchState
from models.invoice import InvoiceStatus


class SummaryGenerator:
    """Generate markdown summary reports for batch runs."""

    def __init__(self, output_dir: Path):
        """
        Initialize summary generator.

        Args:
            output_dir: Directory to save summary file
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def generate_summary(
        self,
        outcome: BatchOutcome,
        invoices: list[Invoice],
        vendor_name: str = "",
        output_file: Optional[Path] = None,
    ) -> Path:
        """
        Generate a batch summary.

        Args:
            outcome: Terminal result of the batch
            invoices: Invoice queue after the batch
            vendor_name: Display name of the vendor used
            output_file: Optional custom output path

        Returns:
            Path to generated summary file
        """
        if output_file is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            output_file = self.output_dir / f"BATCH_SUMMARY_{timestamp}.md"

        stats = self._calculate_statistics(outcome, invoices, vendor_name)
        content = self._generate_markdown(stats)

        with open(output_file, "w", encoding="utf-8") as f:
            f.write(content)

        return output_file

    def _calculate_statistics(
        self, outcome: BatchOutcome, invoices: list[Invoice], vendor_name: str
    ) -> dict:
        counters = outcome.statistics
        issued = [inv for inv in invoices if inv.status == InvoiceStatus.SUCCESS]

        stats = {
            "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "batch_id": outcome.batch_id,
            "state": outcome.state.value,
            "vendor": vendor_name or "-",
            "total": counters.total,
            "processed": counters.processed,
            "successful": counters.successful,
            "failed": counters.failed,
            "skipped": counters.skipped,
            "aborted": counters.aborted,
            "remaining": counters.remaining,
            "success_rate": counters.success_rate,
            "duration": outcome.duration_seconds,
            "status_breakdown": Counter(inv.status.value for inv in invoices),
            "failed_items": outcome.get_failed_items(),
            "issued_amount": sum(inv.recalculate().total_amt for inv in issued),
            "issued_count": len(issued),
        }
        stats["recommendations"] = self._generate_recommendations(stats)
        return stats

    def _generate_recommendations(self, stats: dict) -> list[str]:
        """Generate follow-up hints from the batch counters."""
        recommendations = []

        if stats["processed"] and stats["failed"] / stats["processed"] > 0.1:
            recommendations.append(
                f"⚠️ {stats['failed']} of {stats['processed']} invoices failed. "
                "Review the vendor messages below and resubmit."
            )
        if stats["state"] == BatchState.ABORTED.value and stats["remaining"]:
            recommendations.append(
                f"⏹️ Batch aborted with {stats['remaining']} invoices not processed. "
                "Start a new batch to continue; issued invoices are skipped."
            )
        if stats["state"] == BatchState.PAUSED.value:
            recommendations.append("⏸️ Batch is paused. Resume to process the remaining invoices.")

        if not recommendations:
            recommendations.append("✅ Batch completed without failures.")

        return recommendations

    def _generate_markdown(self, stats: dict) -> str:
        md = []

        md.append("# Batch Submission Summary Report")
        md.append("")
        md.append(f"**Generated:** {stats['timestamp']}")
        md.append(f"**Batch:** {stats['batch_id']} ({stats['state']})")
        md.append(f"**Vendor:** {stats['vendor']}")
        md.append("")
        md.append("---")
        md.append("")

        md.append("## 📊 Overall Performance")
        md.append("")
        md.append(f"- **Total Invoices:** {stats['total']}")
        md.append(f"- **Processed:** {stats['processed']}")
        md.append(f"- **Successful:** {stats['successful']} ({stats['success_rate']:.1f}%)")
        md.append(f"- **Failed:** {stats['failed']}")
        md.append(f"- **Skipped:** {stats['skipped']}")
        md.append(f"- **Aborted:** {stats['aborted']}")
        if stats["duration"] is not None:
            md.append(f"- **Duration:** {stats['duration']:.1f}s")
        md.append("")

        md.append("## 📋 Status Breakdown")
        md.append("")
        md.append("| Status | Count |")
        md.append("|--------|-------|")
        for status, count in sorted(stats["status_breakdown"].items()):
            md.append(f"| {status} | {count} |")
        md.append("")

        md.append("## 💰 Issued Invoices")
        md.append("")
        md.append(f"- **Issued:** {stats['issued_count']}")
        md.append(f"- **Total Amount:** NT${stats['issued_amount']:,}")
        md.append("")

        if stats["failed_items"]:
            md.append("## ❌ Failed Invoices")
            md.append("")
            md.append("| Order No | Error |")
            md.append("|----------|-------|")
            for item in stats["failed_items"]:
                error = (item.error or "").replace("|", "\\|")
                md.append(f"| {item.merchant_order_no} | {error} |")
            md.append("")

        md.append("## 💡 Recommendations")
        md.append("")
        for rec in stats["recommendations"]:
            md.append(f"- {rec}")
        md.append("")

        md.append("---")
        md.append("")
        md.append("*Generated by einvoice batch submitter*")

        return "\n".join(md)

#!/usr/bin/env python3
"""Submit a JSON invoice queue to the configured e-invoice vendor."""

import asyncio
import signal
import sys
from pathlib import Path

from dateutil.parser import parse as parse_date
from tqdm import tqdm

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from adapters import AdapterFactory  # noqa: E402
from config import Config  # noqa: E402
from exporters import CSVExporter, JSONExporter, SummaryGenerator  # noqa: E402
from models import (  # noqa: E402
    BatchError,
    BatchFinished,
    BatchProgress,
    Category,
    ConfigurationError,
    InvoiceValidationError,
    Mode,
    VendorType,
)
from models.vendor import detect_vendor_from_filename  # noqa: E402
from processors import BatchOrchestrator, InMemoryInvoiceStore, build_gateway  # noqa: E402
from utils.logging_config import setup_logging  # noqa: E402


class ProgressBar:
    """Batch event sink that drives a tqdm bar."""

    def __init__(self):
        self.bar = None

    def __call__(self, event):
        if self.bar is None:
            total = getattr(event, "total", None) or event.statistics.total
            self.bar = tqdm(total=total, desc="Submitting invoices", unit="inv")

        if isinstance(event, BatchProgress):
            self.bar.n = event.statistics.processed
            self.bar.set_postfix(
                ok=event.statistics.successful, failed=event.statistics.failed
            )
            self.bar.refresh()
        elif isinstance(event, BatchFinished):
            self.bar.close()
            self.bar = None


def parse_args(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Submit e-invoices in batch")
    parser.add_argument(
        "input", type=Path, nargs="?", help="JSON file with the invoice queue"
    )
    parser.add_argument("--env", "-e", help="Environment name from environments.json")
    parser.add_argument("--credentials", "-c", type=Path, help="Credentials JSON file")
    parser.add_argument(
        "--production",
        action="store_true",
        help="Use production credentials and endpoints",
    )
    parser.add_argument(
        "--direct",
        action="store_true",
        help="Post straight to vendor endpoints instead of the relay",
    )
    parser.add_argument(
        "--void",
        metavar="INVOICE_NUMBER",
        help="Void an issued invoice instead of submitting a queue",
    )
    parser.add_argument("--reason", default="", help="Void reason")
    parser.add_argument(
        "--invoice-date", help="Issue date of the invoice to void (defaults to today)"
    )
    parser.add_argument(
        "--b2b", action="store_true", help="The invoice to void is a B2B invoice"
    )
    parser.add_argument(
        "--csv-format",
        choices=["normalized", "denormalized"],
        help="CSV export layout",
    )
    parser.add_argument(
        "--no-export", action="store_true", help="Skip CSV/JSON/summary exports"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show debug logging on the console"
    )
    args = parser.parse_args(argv)

    if args.void and not args.reason:
        parser.error("--void requires --reason")
    if not args.void and args.input is None:
        parser.error("an invoice queue file is required unless --void is given")
    return args


def load_environment(env_name):
    try:
        return Config.load_environment(env_name)
    except FileNotFoundError:
        if env_name:
            raise
        return None


async def void_issued(adapter, args, mode: Mode) -> int:
    """
    Void one issued invoice by its vendor invoice number.

    Args:
        adapter: Vendor adapter
        args: Parsed arguments (void, reason, invoice_date, b2b)
        mode: Credential set to use

    Returns:
        Process exit code
    """
    try:
        invoice_date = parse_date(args.invoice_date).date() if args.invoice_date else None
    except (ValueError, OverflowError):
        print(f"❌ Invalid invoice date: {args.invoice_date}")
        return 2

    result = await adapter.void(
        args.void,
        args.reason,
        mode,
        invoice_date=invoice_date,
        category=Category.B2B if args.b2b else Category.B2C,
    )
    if result.success:
        print(f"✅ Voided {result.invoice_number or args.void}")
        return 0
    print(f"❌ Void failed: {result.error}")
    return 1


async def submit_queue(adapter, store: InMemoryInvoiceStore, mode: Mode):
    """Run the batch with Ctrl-C bound to abort for the duration of the run."""
    orchestrator = BatchOrchestrator(
        adapter, store, mode=mode, progress_callback=ProgressBar()
    )

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.abort)
        handler_installed = True
    except NotImplementedError:
        handler_installed = False

    try:
        return await orchestrator.start()
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


async def run(args) -> int:
    platform_config = Config.load_platform_config(args.credentials)
    mode = Mode.PRODUCTION if args.production or not Config.TEST_MODE else Mode.TEST
    use_relay = False if args.direct else None

    if args.void:
        async with build_gateway(use_relay=use_relay) as gateway:
            adapter = AdapterFactory(gateway).get_adapter(platform_config)
            return await void_issued(adapter, args, mode)

    store = InMemoryInvoiceStore.load_json(args.input)

    hinted = detect_vendor_from_filename(args.input)
    if hinted not in (VendorType.UNKNOWN, platform_config.provider):
        print(
            f"⚠️  {args.input.name} looks like a {hinted.value} queue, "
            f"but the credentials select {platform_config.provider.value}"
        )

    async with build_gateway(use_relay=use_relay) as gateway:
        adapter = AdapterFactory(gateway).get_adapter(platform_config)
        print(f"Vendor: {adapter.display_name} ({mode.value}), {len(store)} invoices")
        outcome = await submit_queue(adapter, store, mode)

    stats = outcome.statistics
    print()
    print("=" * 80)
    print(f"Batch {outcome.state.value}: {stats.successful} successful, "
          f"{stats.failed} failed, {stats.skipped} skipped of {stats.total}")
    print("=" * 80)

    for item in outcome.get_failed_items():
        print(f"  ❌ {item.merchant_order_no}: {item.error}")

    if not args.no_export:
        invoices = store.snapshot()
        csv_files = CSVExporter(format_type=args.csv_format).export(invoices)
        json_file = JSONExporter().export(invoices)
        summary_file = SummaryGenerator(Config.OUTPUT_DIR).generate_summary(
            outcome, invoices, vendor_name=adapter.display_name
        )
        print()
        for kind, path in csv_files.items():
            print(f"CSV ({kind}): {path}")
        print(f"JSON:      {json_file}")
        print(f"Summary:   {summary_file}")

    return 0 if stats.failed == 0 else 1


def main():
    args = parse_args()

    try:
        env_name = load_environment(args.env)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Error loading environment: {e}")
        sys.exit(2)

    setup_logging(verbose=args.verbose)
    if env_name:
        print(f"Environment: {env_name}")

    try:
        sys.exit(asyncio.run(run(args)))
    except (FileNotFoundError, ConfigurationError, InvoiceValidationError, BatchError) as e:
        print(f"❌ {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()

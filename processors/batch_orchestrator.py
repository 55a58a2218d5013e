"""Sequential batch submission with pause, resume and abort."""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Optional

from dateutil.parser import parse as parse_date

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
    NormalizedResult,
    VoidResult,
)
from models.credentials import Mode
from models.errors import BatchError
from models.invoice import Invoice, InvoiceStatus
from processors.invoice_store import InMemoryInvoiceStore
from utils.amounts import round_half_up
from utils.cancellation import CancellationToken

if TYPE_CHECKING:
    from adapters.base import BaseAdapter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchEvent], None]
CompletionCallback = Callable[[BatchOutcome], None]

FINISHED_STATUSES = (InvoiceStatus.SUCCESS, InvoiceStatus.VOIDED)


class BatchOrchestrator:
    """
    Drive every invoice in the store through one adapter, one at a time.

    State machine: ``idle -> running -> {paused, completed, aborted}`` and
    ``paused -> running`` on :meth:`resume`. Pause takes effect between items.
    Abort also cancels the in-flight vendor call; the interrupted invoice goes
    back to ``pending`` and is not counted as failed.
    """

    def __init__(
        self,
        adapter: "BaseAdapter",
        store: InMemoryInvoiceStore,
        *,
        mode: Mode = Mode.TEST,
        progress_callback: Optional[ProgressCallback] = None,
        completion_callback: Optional[CompletionCallback] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            adapter: Vendor adapter used for every item
            store: Invoice store holding the queue
            mode: Credential set (test or production)
            progress_callback: Receives every batch event
            completion_callback: Receives the terminal BatchOutcome
        """
        self.adapter = adapter
        self.store = store
        self.mode = Mode(mode)
        self.progress_callback = progress_callback
        self.completion_callback = completion_callback

        self.state = BatchState.IDLE
        self.batch_id: Optional[str] = None
        self.statistics = BatchStatistics()
        self._queue: list[str] = []
        self._cursor = 0
        self._items: list[ItemOutcome] = []
        self._token: Optional[CancellationToken] = None
        self._started_at: Optional[datetime] = None

    # Public control

    async def start(self) -> BatchOutcome:
        """
        Snapshot the store and process it from the first item.

        Items already ``success`` or ``voided`` are skipped.

        Returns:
            BatchOutcome, with state ``paused`` if a pause interrupted the run

        Raises:
            BatchError: If a batch is running or the queue is empty
        """
        if self.state in (BatchState.RUNNING, BatchState.PAUSED):
            raise BatchError(f"Cannot start a batch while {self.state.value}")

        queue = self.store.snapshot()
        if not queue:
            raise BatchError("No invoices to process")

        self.batch_id = uuid.uuid4().hex[:12]
        self._queue = [invoice.merchant_order_no for invoice in queue]
        self._cursor = 0
        self._items = []
        self._token = CancellationToken()
        self._started_at = datetime.now()
        self.statistics = BatchStatistics(total=len(queue))

        logger.info(f"Batch {self.batch_id} started with {len(queue)} invoices")
        self._emit(BatchStarted(batch_id=self.batch_id, total=len(queue)))
        return await self._run()

    def pause(self) -> None:
        """Stop before the next item. The in-flight call is allowed to finish."""
        if self.state != BatchState.RUNNING:
            raise BatchError(f"Cannot pause a batch that is {self.state.value}")
        self._token.pause()
        logger.info(f"Batch {self.batch_id} pause requested")

    async def resume(self) -> BatchOutcome:
        """
        Continue a paused batch from the next unprocessed item.

        Raises:
            BatchError: If the batch is not paused
        """
        if self.state != BatchState.PAUSED:
            raise BatchError(f"Cannot resume a batch that is {self.state.value}")
        self._token.clear_pause()
        logger.info(f"Batch {self.batch_id} resumed at item {self._cursor + 1}")
        return await self._run()

    def abort(self) -> None:
        """Stop the batch and cancel the in-flight vendor call, if any."""
        if self.state not in (BatchState.RUNNING, BatchState.PAUSED):
            raise BatchError(f"Cannot abort a batch that is {self.state.value}")
        self._token.abort()
        logger.info(f"Batch {self.batch_id} abort requested")
        if self.state == BatchState.PAUSED:
            self._finish(BatchState.ABORTED)

    async def void_invoice(self, order_no: str, reason: str) -> VoidResult:
        """
        Void an issued invoice and mark it ``voided`` in the store.

        Args:
            order_no: Merchant order number of the issued invoice
            reason: Void reason sent to the vendor

        Returns:
            VoidResult from the adapter

        Raises:
            BatchError: While a batch is running
        """
        if self.state == BatchState.RUNNING:
            raise BatchError("Cannot void while a batch is running")

        invoice = self.store.get(order_no)
        if invoice is None:
            return VoidResult(
                success=False, error=f"Unknown order number: {order_no}", error_type="validation"
            )
        if invoice.status != InvoiceStatus.SUCCESS or not invoice.invoice_number:
            return VoidResult(
                success=False,
                error=f"{order_no} has no issued invoice to void",
                error_type="validation",
            )

        result = await self.adapter.void(
            invoice.invoice_number,
            reason,
            self.mode,
            invoice_date=self._issue_date(invoice),
            category=invoice.category,
        )
        if result.success:
            self.store.update(order_no, status=InvoiceStatus.VOIDED, error="")
            logger.info(f"Voided {invoice.invoice_number} ({order_no})")
        else:
            logger.warning(f"Void failed for {order_no}: {result.error}")
        return result

    # Internals

    @staticmethod
    def _issue_date(invoice: Invoice) -> Optional[date]:
        if invoice.invoice_date:
            return invoice.invoice_date
        if invoice.create_time:
            try:
                return parse_date(invoice.create_time).date()
            except (ValueError, OverflowError):
                logger.debug(f"Unparseable create time {invoice.create_time!r}")
        return None

    def _emit(self, event: BatchEvent) -> None:
        if self.progress_callback:
            self.progress_callback(event)

    def _snapshot_stats(self) -> BatchStatistics:
        return self.statistics.model_copy()

    def _advance(self, index: int, order_no: str, outcome: ItemOutcome) -> None:
        self._items.append(outcome)
        self.statistics.processed += 1
        self.statistics.percentage = round_half_up(
            Decimal(self.statistics.processed) * 100 / self.statistics.total
        )
        self._cursor = index + 1
        self._emit(
            BatchProgress(
                batch_id=self.batch_id,
                index=index,
                merchant_order_no=order_no,
                outcome=outcome.status,
                statistics=self._snapshot_stats(),
            )
        )

    async def _process_item(self, order_no: str) -> NormalizedResult:
        invoice = self.store.get(order_no)
        try:
            return await self.adapter.create(invoice, self.mode, cancel=self._token)
        except Exception as e:
            logger.error(f"Adapter raised for {order_no}: {e}", exc_info=True)
            return NormalizedResult.failure(str(e), "unexpected")

    async def _run(self) -> BatchOutcome:
        self.state = BatchState.RUNNING

        while self._cursor < len(self._queue):
            if self._token.aborted:
                break
            if self._token.paused:
                self.state = BatchState.PAUSED
                logger.info(f"Batch {self.batch_id} paused before item {self._cursor + 1}")
                self._emit(
                    BatchPaused(
                        batch_id=self.batch_id,
                        next_index=self._cursor,
                        statistics=self._snapshot_stats(),
                    )
                )
                return self._outcome()

            index = self._cursor
            order_no = self._queue[index]
            invoice = self.store.get(order_no)

            if invoice is None or invoice.status in FINISHED_STATUSES:
                self.statistics.skipped += 1
                self._advance(index, order_no, ItemOutcome(merchant_order_no=order_no, status="skipped"))
                continue

            self.store.update(order_no, status=InvoiceStatus.PROCESSING, error="")
            self._emit(
                ItemProcessing(
                    batch_id=self.batch_id,
                    index=index,
                    merchant_order_no=order_no,
                    statistics=self._snapshot_stats(),
                )
            )

            result = await self._process_item(order_no)

            if result.aborted:
                self.store.update(order_no, status=InvoiceStatus.PENDING)
                self.statistics.aborted += 1
                break

            if result.success:
                self.store.update(
                    order_no,
                    status=InvoiceStatus.SUCCESS,
                    invoice_number=result.invoice_number,
                    random_number=result.random_number,
                    create_time=result.create_time,
                    error="",
                )
                self.statistics.successful += 1
                outcome = ItemOutcome(
                    merchant_order_no=order_no,
                    status=InvoiceStatus.SUCCESS.value,
                    invoice_number=result.invoice_number,
                )
            else:
                self.store.update(
                    order_no, status=InvoiceStatus.FAILED, error=result.error or ""
                )
                self.statistics.failed += 1
                outcome = ItemOutcome(
                    merchant_order_no=order_no,
                    status=InvoiceStatus.FAILED.value,
                    error=result.error,
                )

            self._advance(index, order_no, outcome)

        final_state = BatchState.ABORTED if self._token.aborted else BatchState.COMPLETED
        return self._finish(final_state)

    def _outcome(self) -> BatchOutcome:
        return BatchOutcome(
            batch_id=self.batch_id,
            state=self.state,
            statistics=self._snapshot_stats(),
            started_at=self._started_at,
            completed_at=datetime.now() if self.state in (BatchState.COMPLETED, BatchState.ABORTED) else None,
            items=list(self._items),
        )

    def _finish(self, state: BatchState) -> BatchOutcome:
        self.state = state
        outcome = self._outcome()
        stats = outcome.statistics
        logger.info(
            f"Batch {self.batch_id} {state.value}: {stats.successful} successful, "
            f"{stats.failed} failed, {stats.skipped} skipped of {stats.total}"
        )
        self._emit(
            BatchFinished(batch_id=self.batch_id, state=state, statistics=stats)
        )
        if self.completion_callback:
            self.completion_callback(outcome)
        return outcome

"""Test the batch orchestrator: ordering, pause/resume, abort and voiding."""

import asyncio
import json

import pytest

from models import (
    BatchError,
    BatchFinished,
    BatchPaused,
    BatchProgress,
    BatchStarted,
    BatchState,
    Invoice,
    InvoiceStatus,
    ItemProcessing,
    VendorType,
)
from processors import BatchOrchestrator, InMemoryInvoiceStore
from tests.conftest import FakeGateway, ezpay_success, make_adapter


def _invoices(count: int) -> list:
    return [
        Invoice.model_validate(
            {
                "merchant_order_no": f"ORD{i:03d}",
                "buyer_email": "buyer@example.com",
                "items": [{"name": f"Item {i}", "count": 1, "price": 100}],
            }
        )
        for i in range(1, count + 1)
    ]


def _numbered_success(gateway: FakeGateway):
    return lambda request: ezpay_success(f"AB{len(gateway.requests):08d}")


@pytest.fixture
def events():
    return []


def _orchestrator(gateway, invoices, events, **kwargs):
    adapter = make_adapter(VendorType.EZPAY, gateway)
    store = InMemoryInvoiceStore(invoices)
    orchestrator = BatchOrchestrator(
        adapter, store, progress_callback=events.append, **kwargs
    )
    return orchestrator, store


async def test_processes_every_item_in_order(events):
    gateway = FakeGateway()
    gateway.responder = _numbered_success(gateway)
    orchestrator, store = _orchestrator(gateway, _invoices(3), events)

    outcome = await orchestrator.start()

    assert outcome.state == BatchState.COMPLETED
    assert outcome.statistics.successful == 3
    assert outcome.statistics.processed == 3
    assert outcome.completed_at is not None
    assert [invoice.invoice_number for invoice in store] == [
        "AB00000001",
        "AB00000002",
        "AB00000003",
    ]
    assert all(invoice.status == InvoiceStatus.SUCCESS for invoice in store)
    assert [item.merchant_order_no for item in outcome.items] == ["ORD001", "ORD002", "ORD003"]


async def test_event_sequence_and_percentages(events):
    gateway = FakeGateway()
    gateway.responder = _numbered_success(gateway)
    orchestrator, _ = _orchestrator(gateway, _invoices(3), events)

    await orchestrator.start()

    assert [type(event) for event in events] == [
        BatchStarted,
        ItemProcessing,
        BatchProgress,
        ItemProcessing,
        BatchProgress,
        ItemProcessing,
        BatchProgress,
        BatchFinished,
    ]
    assert events[0].total == 3
    progress = [event for event in events if isinstance(event, BatchProgress)]
    assert [event.statistics.percentage for event in progress] == [33, 67, 100]
    assert [event.index for event in progress] == [0, 1, 2]
    assert events[-1].state == BatchState.COMPLETED
    assert len({event.batch_id for event in events}) == 1


async def test_failures_do_not_stop_the_batch(events):
    gateway = FakeGateway()

    def responder(request):
        if len(gateway.requests) == 2:
            return {"Status": "KEY10002", "Message": "資料解密錯誤"}
        return ezpay_success()

    gateway.responder = responder
    orchestrator, store = _orchestrator(gateway, _invoices(3), events)

    outcome = await orchestrator.start()

    assert outcome.state == BatchState.COMPLETED
    assert outcome.statistics.successful == 2
    assert outcome.statistics.failed == 1
    failed = store.get("ORD002")
    assert failed.status == InvoiceStatus.FAILED
    assert failed.error == "資料解密錯誤"
    assert [item.merchant_order_no for item in outcome.get_failed_items()] == ["ORD002"]


async def test_already_issued_items_are_skipped(events):
    invoices = _invoices(3)
    invoices[1] = invoices[1].model_copy(
        update={"status": InvoiceStatus.SUCCESS, "invoice_number": "ZZ99999999"}
    )
    gateway = FakeGateway(lambda request: ezpay_success())
    orchestrator, store = _orchestrator(gateway, invoices, events)

    outcome = await orchestrator.start()

    assert len(gateway.requests) == 2
    assert outcome.statistics.skipped == 1
    assert outcome.statistics.processed == 3
    assert store.get("ORD002").invoice_number == "ZZ99999999"
    skipped = [e for e in events if isinstance(e, BatchProgress) and e.outcome == "skipped"]
    assert [e.merchant_order_no for e in skipped] == ["ORD002"]


async def test_pause_then_resume(events):
    gateway = FakeGateway()
    gateway.responder = _numbered_success(gateway)
    orchestrator, store = _orchestrator(gateway, _invoices(5), events)

    def on_event(event):
        events.append(event)
        if isinstance(event, BatchProgress) and event.index == 1:
            orchestrator.pause()

    orchestrator.progress_callback = on_event

    paused = await orchestrator.start()

    assert paused.state == BatchState.PAUSED
    assert orchestrator.state == BatchState.PAUSED
    assert paused.statistics.processed == 2
    assert paused.completed_at is None
    assert len(gateway.requests) == 2
    assert isinstance(events[-1], BatchPaused)
    assert events[-1].next_index == 2
    assert store.get("ORD003").status == InvoiceStatus.PENDING

    finished = await orchestrator.resume()

    assert finished.state == BatchState.COMPLETED
    assert finished.statistics.successful == 5
    assert len(gateway.requests) == 5
    assert all(invoice.status == InvoiceStatus.SUCCESS for invoice in store)


async def test_abort_cancels_in_flight_call(events):
    gateway = FakeGateway()
    orchestrator, store = _orchestrator(gateway, _invoices(5), events)

    async def responder(request):
        if len(gateway.requests) == 3:
            orchestrator.abort()
            await asyncio.sleep(10)
        return ezpay_success()

    gateway.responder = responder

    outcome = await orchestrator.start()

    assert outcome.state == BatchState.ABORTED
    assert outcome.statistics.successful == 2
    assert outcome.statistics.failed == 0
    assert outcome.statistics.aborted == 1
    assert outcome.statistics.processed == 2
    assert len(gateway.requests) == 3
    assert store.get("ORD003").status == InvoiceStatus.PENDING
    assert store.get("ORD004").status == InvoiceStatus.PENDING
    assert events[-1].state == BatchState.ABORTED


async def test_abort_while_paused_finishes_immediately(events):
    gateway = FakeGateway(lambda request: ezpay_success())
    completed = []
    orchestrator, _ = _orchestrator(
        gateway, _invoices(3), events, completion_callback=completed.append
    )

    def on_event(event):
        events.append(event)
        if isinstance(event, BatchProgress) and event.index == 0:
            orchestrator.pause()

    orchestrator.progress_callback = on_event
    await orchestrator.start()

    orchestrator.abort()

    assert orchestrator.state == BatchState.ABORTED
    assert completed[0].state == BatchState.ABORTED
    assert completed[0].statistics.processed == 1
    with pytest.raises(BatchError):
        await orchestrator.resume()


async def test_completion_callback_receives_outcome(events):
    gateway = FakeGateway(lambda request: ezpay_success())
    completed = []
    orchestrator, _ = _orchestrator(
        gateway, _invoices(2), events, completion_callback=completed.append
    )

    outcome = await orchestrator.start()

    assert completed == [outcome]


async def test_empty_store_is_rejected(events):
    orchestrator, _ = _orchestrator(FakeGateway(), [], events)

    with pytest.raises(BatchError, match="No invoices"):
        await orchestrator.start()

    assert events == []
    assert orchestrator.state == BatchState.IDLE


async def test_control_calls_in_wrong_state(events):
    orchestrator, _ = _orchestrator(FakeGateway(), _invoices(1), events)

    with pytest.raises(BatchError):
        orchestrator.pause()
    with pytest.raises(BatchError):
        orchestrator.abort()
    with pytest.raises(BatchError):
        await orchestrator.resume()


async def test_placeholder_credentials_fail_every_item_without_calls(events):
    gateway = FakeGateway()
    adapter = make_adapter(
        VendorType.EZPAY,
        gateway,
        credential={
            "merchant_id": "YOUR_MERCHANT_ID",
            "hash_key": "YOUR_HASH_KEY",
            "hash_iv": "YOUR_HASH_IV",
        },
    )
    store = InMemoryInvoiceStore(_invoices(3))
    orchestrator = BatchOrchestrator(adapter, store, progress_callback=events.append)

    outcome = await orchestrator.start()

    assert gateway.requests == []
    assert outcome.statistics.failed == 3
    assert all(invoice.status == InvoiceStatus.FAILED for invoice in store)


async def test_void_issued_invoice(events):
    gateway = FakeGateway(lambda request: ezpay_success("AB00000001"))
    orchestrator, store = _orchestrator(gateway, _invoices(1), events)
    await orchestrator.start()

    gateway.responder = lambda request: {
        "Status": "SUCCESS",
        "Result": json.dumps({"InvoiceNumber": "AB00000001", "CreateTime": "2024-03-06 09:00:00"}),
    }
    result = await orchestrator.void_invoice("ORD001", "wrong buyer")

    assert result.success
    assert store.get("ORD001").status == InvoiceStatus.VOIDED
    assert gateway.requests[-1].action.value == "void"


async def test_void_rejects_unknown_or_unissued(events):
    orchestrator, _ = _orchestrator(FakeGateway(), _invoices(1), events)

    unknown = await orchestrator.void_invoice("NOPE", "reason")
    unissued = await orchestrator.void_invoice("ORD001", "reason")

    assert unknown.error_type == "validation"
    assert unissued.error_type == "validation"


async def test_restart_after_completion_skips_issued(events):
    gateway = FakeGateway(lambda request: ezpay_success())
    orchestrator, _ = _orchestrator(gateway, _invoices(2), events)
    first = await orchestrator.start()

    second = await orchestrator.start()

    assert second.batch_id != first.batch_id
    assert second.statistics.skipped == 2
    assert len(gateway.requests) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

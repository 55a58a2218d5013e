"""Cancellation context threaded from the orchestrator into network calls."""

import asyncio
from typing import Awaitable, Optional, TypeVar

from models.errors import NetworkError, OperationAborted

T = TypeVar("T")


class CancellationToken:
    """
    Pause and abort signals for one batch run.

    Pause is polled between items. Abort also interrupts the in-flight call
    through :meth:`run`.
    """

    def __init__(self):
        self._aborted = asyncio.Event()
        self.paused = False

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    def pause(self) -> None:
        self.paused = True

    def clear_pause(self) -> None:
        self.paused = False

    def abort(self) -> None:
        self._aborted.set()

    async def run(self, awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
        """
        Await ``awaitable`` unless abort fires or ``timeout`` elapses first.

        Raises:
            OperationAborted: Abort was signalled before or during the call
            NetworkError: The call exceeded ``timeout`` seconds
        """
        if self.aborted:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationAborted()

        call = asyncio.ensure_future(awaitable)
        abort_wait = asyncio.ensure_future(self._aborted.wait())
        try:
            done, _ = await asyncio.wait(
                {call, abort_wait},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            # The caller was cancelled; the call must not outlive it
            call.cancel()
            raise
        finally:
            abort_wait.cancel()

        if call in done:
            return call.result()

        call.cancel()
        try:
            await call
        except asyncio.CancelledError:
            pass

        if abort_wait in done or self.aborted:
            raise OperationAborted()
        raise NetworkError(f"Request timed out after {timeout} seconds")

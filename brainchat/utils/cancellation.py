"""
Cooperative cancellation for generation streams.

A single token is threaded from the HTTP layer (client disconnect or request
timeout) down to the generation stream. Consumers check it between chunks;
nothing is interrupted preemptively.
"""

import asyncio

from brainchat.utils.exceptions import GenerationCancelledError, GenerationTimeoutError

REASON_TIMEOUT = "timeout"
REASON_DISCONNECT = "disconnect"


class CancellationToken:
    """
    Cancellation signal observed at chunk boundaries.

    Usage:
        token = CancellationToken()
        token.cancel_after(60.0)
        ...
        token.raise_if_cancelled()
        ...
        token.close()
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = REASON_DISCONNECT) -> None:
        """Fire the token. Only the first reason is kept."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def cancel_after(self, seconds: float) -> None:
        """Schedule a timeout cancellation on the running loop."""
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(seconds, self.cancel, REASON_TIMEOUT)

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        """
        Raise the error matching the cancellation reason.

        Raises:
            GenerationTimeoutError: If the token fired because of a timeout
            GenerationCancelledError: If the token fired for any other reason
        """
        if not self.cancelled:
            return
        if self._reason == REASON_TIMEOUT:
            raise GenerationTimeoutError("Request timed out", context={"reason": self._reason})
        raise GenerationCancelledError("Request cancelled", context={"reason": self._reason})

    def close(self) -> None:
        """Release the pending timeout, if any."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

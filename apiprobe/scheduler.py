"""Request pacing and scan cancellation."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from apiprobe.errors import ScanCancelled


class CancellationToken:
    """Cancellation signal for one scan."""

    def __init__(self, scan_id: str):
        self.scan_id = scan_id
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScanCancelled(self.scan_id)


class CancellationRegistry:
    """Tokens for running scans, keyed by scan id."""

    def __init__(self):
        self._tokens: Dict[str, CancellationToken] = {}

    def register(self, scan_id: str) -> CancellationToken:
        token = self._tokens.get(scan_id)
        if token is None:
            token = CancellationToken(scan_id)
            self._tokens[scan_id] = token
        return token

    def get(self, scan_id: str) -> Optional[CancellationToken]:
        return self._tokens.get(scan_id)

    def cancel(self, scan_id: str) -> bool:
        """Signal a running scan. Returns False if the id is unknown."""
        token = self._tokens.get(scan_id)
        if token is None:
            return False
        token.cancel()
        return True

    def release(self, scan_id: str) -> None:
        self._tokens.pop(scan_id, None)

    def __contains__(self, scan_id: str) -> bool:
        return scan_id in self._tokens


class RequestGovernor:
    """Bounds concurrent requests and enforces a minimum spacing between them.

    One governor belongs to one scan, so the ceiling applies per target.
    """

    def __init__(self, max_concurrency: int = 5, min_interval: float = 0.0):
        self.max_concurrency = max(1, max_concurrency)
        self.min_interval = max(0.0, min_interval)
        self._semaphore = asyncio.Semaphore(self.max_concurrency)
        self._spacing_lock = asyncio.Lock()
        self._last_start: Optional[float] = None
        self.in_flight = 0
        self.peak_in_flight = 0

    async def _wait_for_spacing(self) -> None:
        if self.min_interval <= 0:
            return
        loop = asyncio.get_running_loop()
        async with self._spacing_lock:
            now = loop.time()
            if self._last_start is not None:
                wait = self._last_start + self.min_interval - now
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_start = loop.time()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a concurrency slot for the duration of one request."""
        async with self._semaphore:
            await self._wait_for_spacing()
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                yield
            finally:
                self.in_flight -= 1

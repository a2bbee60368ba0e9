"""Fail-over across several equivalent RPC transports with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Protocol, Sequence

log = logging.getLogger(__name__)

_INITIAL_INTERVAL = 0.5
_MULTIPLIER = 1.5
_RANDOMIZATION = 0.5
_MAX_INTERVAL = 60.0


class Transport(Protocol):
    async def call(self, request: Any) -> Any: ...


class _Backoff:
    """Randomised exponential backoff that gives up after a total elapsed time."""

    def __init__(self, max_elapsed: float) -> None:
        self.max_elapsed = max_elapsed
        self.interval = _INITIAL_INTERVAL
        self.started = time.monotonic()

    def next_delay(self) -> float | None:
        elapsed = time.monotonic() - self.started
        if elapsed > self.max_elapsed:
            return None
        spread = self.interval * _RANDOMIZATION
        delay = random.uniform(self.interval - spread, self.interval + spread)
        self.interval = min(self.interval * _MULTIPLIER, _MAX_INTERVAL)
        return min(delay, self.max_elapsed - elapsed)


class MultiTransport:
    """Sends each request through one of several transports, rotating on failure."""

    def __init__(
        self,
        transports: Sequence[Transport],
        attempt_timeout: float = 3.0,
        max_elapsed: float = 30.0,
    ) -> None:
        self.transports = list(transports)
        if not self.transports:
            raise ValueError("at least one transport is required")
        self.attempt_timeout = attempt_timeout
        self.max_elapsed = max_elapsed
        self._index = random.randrange(len(self.transports))

    async def _attempt(self, transport: Transport, request: Any) -> Any:
        try:
            return await asyncio.wait_for(transport.call(request), self.attempt_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError("timeout on one of the transports") from None

    async def call(self, request: Any) -> Any:
        """Return the first successful response; re-raise the last error once backoff expires."""
        backoff = _Backoff(self.max_elapsed)
        while True:
            idx = self._index % len(self.transports)
            log.debug("selecting binder front %d for request %r", idx, request)
            try:
                return await self._attempt(self.transports[idx], request)
            except Exception as exc:
                log.warning("binder front %d failed: %r", idx, exc)
                self._index += 1
                delay = backoff.next_delay()
                if delay is None:
                    raise
                log.debug("backing off for %.3fs", delay)
                await asyncio.sleep(delay)
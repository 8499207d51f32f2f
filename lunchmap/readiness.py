"""Await-able readiness gate for the places provider."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from . import config
from .errors import ProviderUnavailableError

logger = logging.getLogger(__name__)


class ProviderReadyGate:
    """Polls ``probe`` until it reports ready, sharing one outcome between callers.

    A timeout stays memoised until ``reset()``; there is no automatic retry.
    """

    def __init__(
        self,
        probe: Callable[[], bool],
        timeout_seconds: Optional[float] = None,
        poll_interval_seconds: Optional[float] = None,
    ) -> None:
        self.probe = probe
        self.timeout_seconds = (
            config.PROVIDER_READY_TIMEOUT_SECONDS if timeout_seconds is None else float(timeout_seconds)
        )
        self.poll_interval_seconds = (
            config.PROVIDER_READY_POLL_SECONDS
            if poll_interval_seconds is None
            else float(poll_interval_seconds)
        )
        self._task: Optional[asyncio.Task] = None

    @property
    def ready(self) -> bool:
        task = self._task
        return bool(task is not None and task.done() and not task.cancelled() and task.exception() is None)

    async def wait(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._poll())
        # shield: one cancelled waiter must not cancel the shared poll
        await asyncio.shield(self._task)

    def reset(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _poll(self) -> None:
        started = time.monotonic()
        attempts = 0
        while True:
            attempts += 1
            if self.probe():
                elapsed_ms = (time.monotonic() - started) * 1000
                logger.info("Places provider ready after %.0fms (%s checks)", elapsed_ms, attempts)
                return
            if time.monotonic() - started >= self.timeout_seconds:
                logger.warning(
                    "Places provider not ready after %.1fs (%s checks)", self.timeout_seconds, attempts
                )
                raise ProviderUnavailableError(
                    f"Places provider not ready within {self.timeout_seconds:.1f}s"
                )
            await asyncio.sleep(self.poll_interval_seconds)

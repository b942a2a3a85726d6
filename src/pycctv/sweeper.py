"""Background expiry of stale advertisements."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from pycctv._constants import DEFAULT_SWEEP_INTERVAL
from pycctv.models.device import DeviceNode
from pycctv.protocol import ProtocolLayer
from pycctv.registry import DeviceRegistry

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepReport:
    """Outcome of one sweep tick."""

    expired: tuple[str, ...] = ()
    renewing: tuple[str, ...] = ()


class TimeoutSweeper:
    """Ages advertisements every *interval* seconds.

    Each tick subtracts the interval from every device's remaining
    advertisement time.  Devices at or below zero are removed; devices
    with less than two intervals left get a search for their UDN so a
    fresh answer can refresh them before they expire.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        protocol: ProtocolLayer,
        *,
        interval: int = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._registry = registry
        self._protocol = protocol
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self._finishing: set[asyncio.Task[None]] = set()

    @property
    def interval(self) -> int:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> SweepReport:
        """Run one tick.

        Expired devices are detached from the registry before they are
        torn down.  The teardown and renewal searches run in their own
        task, so they finish even if the caller is cancelled; :meth:`stop`
        waits for any that are still running.
        """
        expired, renewing = await self._registry.age(self._interval)

        finish = asyncio.get_running_loop().create_task(self._finish(expired, renewing))
        self._finishing.add(finish)
        finish.add_done_callback(self._finishing.discard)
        await asyncio.shield(finish)

        return SweepReport(
            expired=tuple(node.udn for node in expired),
            renewing=tuple(renewing),
        )

    async def _finish(self, expired: list[DeviceNode], renewing: list[str]) -> None:
        for node in expired:
            _logger.info("Advertisement of %s expired", node.udn)
            await self._registry.teardown(node)
        for udn in renewing:
            await self._search_for(udn)

    async def _search_for(self, udn: str) -> None:
        _logger.debug("Advertisement of %s about to expire; searching", udn)
        try:
            await self._protocol.search(self._interval, udn)
        except Exception:
            _logger.warning("Error sending search request for %s", udn, exc_info=True)

    # ------------------------------------------------------------------
    # Task lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="pycctv-timeout-sweeper")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish.

        Teardown of devices that a tick already detached is not
        cancelled; it is awaited before returning.
        """
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._finishing:
            await asyncio.gather(*self._finishing)

    async def _run(self) -> None:
        _logger.debug("Timeout sweeper started interval=%ss", self._interval)
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep_once()
            except Exception:
                _logger.warning("Timeout sweep failed", exc_info=True)

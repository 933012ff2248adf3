"""Polling refresh loop and optimistic mutation handlers.

Every ``interval`` seconds the loop fetches orders and reservations in
parallel and replaces the store's collections wholesale.  A failure of
either fetch empties both collections and sets the error banner; the loop
keeps polling at the same cadence regardless.
"""

from __future__ import annotations

import asyncio
import logging

from backoffice_client import BackOfficeClient, DashboardError
from config import REFRESH_INTERVAL_SECONDS
from store import DashboardStore

logger = logging.getLogger(__name__)


class RefreshLoop:
    """Owns the polling cadence for one ``DashboardStore``.

    Cycles are not serialized: if a cycle is still waiting on the network
    when the timer fires again, both run.  ``stop`` halts the timer without
    cancelling in-flight requests; results that arrive after it are
    discarded.
    """

    def __init__(
        self,
        store: DashboardStore,
        client: BackOfficeClient,
        interval: float = REFRESH_INTERVAL_SECONDS,
    ) -> None:
        self.store = store
        self.client = client
        self.interval = interval
        self._timer: asyncio.Task | None = None
        self._generation = 0
        self._cycles: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self, immediate: bool = True) -> None:
        """Begin polling: one cycle now, then one every ``interval`` seconds.

        Args:
            immediate: Set False when the caller has just run
                ``refresh_now`` itself; the first timer cycle then waits
                one interval.
        """
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(
            self._tick(self._generation, immediate)
        )
        logger.info("Refresh loop started (every %.1fs)", self.interval)

    def stop(self) -> None:
        """Stop future cycles and discard results still in flight."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        self._generation += 1
        logger.info("Refresh loop stopped")

    async def _tick(self, generation: int, immediate: bool) -> None:
        if not immediate:
            await asyncio.sleep(self.interval)
        while True:
            task = asyncio.create_task(self._cycle(generation))
            self._cycles.add(task)
            task.add_done_callback(self._on_cycle_done)
            await asyncio.sleep(self.interval)

    def _on_cycle_done(self, task: asyncio.Task) -> None:
        self._cycles.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Refresh cycle crashed", exc_info=exc)

    async def refresh_now(self) -> bool:
        """Run one fetch-both cycle immediately.

        Returns:
            True if fresh collections were applied, False if the cycle
            failed or its result was discarded.
        """
        return await self._cycle(self._generation)

    async def _cycle(self, generation: int) -> bool:
        results = await asyncio.gather(
            self.client.fetch_orders(),
            self.client.fetch_reservations(),
            return_exceptions=True,
        )
        if generation != self._generation:
            logger.debug("Discarding refresh result that arrived after stop")
            return False

        try:
            for result in results:
                if isinstance(result, DashboardError):
                    logger.warning("Refresh failed: %s", result)
                    self.store.fail_refresh(str(result))
                    return False
                if isinstance(result, BaseException):
                    raise result
            orders, reservations = results
            self.store.set_collections(orders, reservations)
            return True
        finally:
            self.store.finish_loading()

    async def mark_delivered(self, order_id: str) -> None:
        """Mark *order_id* delivered upstream, then flag the local copy.

        Raises:
            DashboardError: If the upstream call failed.  The error banner
                is set before re-raising.
        """
        try:
            await self.client.mark_delivered(order_id)
        except DashboardError as exc:
            logger.warning("Mark delivered failed for %s: %s", order_id, exc)
            self.store.set_error(str(exc))
            raise
        self.store.patch_order(order_id, isDelivered=True)

    async def send_time_estimate(self, order_id: str, email: str | None) -> str:
        """Send the selected estimate for *order_id* to *email*.

        Returns:
            The "sent" stamp recorded for the order.

        Raises:
            DashboardError: If the upstream call failed.
        """
        minutes = self.store.selected_time(order_id)
        try:
            await self.client.send_time_estimate(email, minutes)
        except DashboardError as exc:
            logger.warning("Sending time estimate failed for %s: %s", order_id, exc)
            self.store.set_error(str(exc))
            raise
        return self.store.mark_time_sent(order_id, minutes)

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Optional, Sequence

from .data_sync import DataSync, NetworkError, Order, SyncError

_log = logging.getLogger("feteer.sync")

DEFAULT_STATUSES = ("ordered", "completed")


class MutationState(str, enum.Enum):
    CAPTURED = "captured"
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class Mutation:
    """
    One optimistic change and the cache it replaced.

    A failure after dispose still ends in ROLLED_BACK; the dead cache is
    left as it was.
    """

    kind: str  # status|delete
    order_id: int
    snapshot: tuple[Order, ...]
    state: MutationState = MutationState.CAPTURED
    error: Optional[BaseException] = None


class OrdersSync:
    """
    Local cache of the order list, kept in step with the server.

    Reads replace the whole cache. Status changes and deletes are applied
    locally first and rolled back to the captured snapshot if the server
    rejects them. Creation waits for the server and then prepends.

    Must be used from inside a running event loop.
    """

    def __init__(
        self,
        data_sync: DataSync,
        statuses: Sequence[str] = DEFAULT_STATUSES,
        refresh_interval: float = 30.0,
        mutation_debounce: float = 0.5,
        visibility_debounce: float = 1.0,
        initial_delay: float = 0.1,
        clock: Callable[[], float] = time.time,
    ):
        self._data = data_sync
        self.statuses = tuple(statuses)
        self.refresh_interval = refresh_interval
        self.mutation_debounce = mutation_debounce
        self.visibility_debounce = visibility_debounce
        self.initial_delay = initial_delay
        self._clock = clock

        self._orders: tuple[Order, ...] = ()
        self.loading = True
        self.error: Optional[str] = None
        self.is_online = True
        self.last_updated = clock()
        self.last_mutation: Optional[Mutation] = None

        self._alive = True
        self._started = False
        self._refresh_in_flight = False
        self._initial_timer: Optional[asyncio.TimerHandle] = None
        self._reconcile_timer: Optional[asyncio.TimerHandle] = None
        self._visibility_timer: Optional[asyncio.TimerHandle] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    # Views. Each one is derived from the same snapshot.

    @property
    def all_orders(self) -> tuple[Order, ...]:
        return self._orders

    def orders_with_status(self, status: str) -> tuple[Order, ...]:
        return tuple(o for o in self._orders if o.status == status)

    @property
    def ordered_orders(self) -> tuple[Order, ...]:
        return self.orders_with_status("ordered")

    @property
    def completed_orders(self) -> tuple[Order, ...]:
        return self.orders_with_status("completed")

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_in_flight

    # Lifecycle

    def start(self) -> None:
        if self._started:
            raise RuntimeError("OrdersSync already started")
        if not self._alive:
            raise RuntimeError("OrdersSync was disposed")
        self._started = True
        loop = asyncio.get_running_loop()
        self._initial_timer = loop.call_later(self.initial_delay, self._fire_refresh, True)
        self._poll_task = loop.create_task(self._poll())

    def dispose(self) -> None:
        """
        Stop timers and mark the cache dead.

        Requests already on the wire are left to finish; their results are
        dropped because every state write checks liveness first.
        """
        self._alive = False
        for timer in (self._initial_timer, self._reconcile_timer, self._visibility_timer):
            if timer is not None:
                timer.cancel()
        self._initial_timer = self._reconcile_timer = self._visibility_timer = None
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def drain(self) -> None:
        """Wait for every background refresh spawned so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self.dispose()
        await self.drain()

    async def __aenter__(self) -> "OrdersSync":
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _fire_refresh(self, show_loading: bool = False) -> None:
        if self._alive:
            self._spawn(self.refresh_orders(show_loading))

    async def _poll(self) -> None:
        while self._alive:
            await asyncio.sleep(self.refresh_interval)
            if self._alive and self.is_online and not self.loading and not self._refresh_in_flight:
                self._spawn(self.refresh_orders(False))

    # Reads

    async def refresh_orders(self, show_loading: bool = True) -> None:
        """
        Replace the cache with the server's list.

        Returns immediately when another refresh is in flight or after
        dispose. On failure the previous cache is kept and `error` is set.
        """
        if self._refresh_in_flight or not self._alive:
            return
        self._refresh_in_flight = True
        try:
            if show_loading:
                self.loading = True
            self.error = None
            try:
                orders = await self._data.fetch_orders()
            except SyncError as e:
                if not self._alive:
                    return
                _log.warning("refresh failed: %s", e)
                self.error = str(e)
                if isinstance(e, NetworkError):
                    self.is_online = False
                return
            if not self._alive:
                return
            self._orders = tuple(orders)
            self.last_updated = self._clock()
            self.is_online = True
        finally:
            self._refresh_in_flight = False
            if self._alive:
                self.loading = False

    # Writes

    async def create_order(self, draft: dict[str, Any]) -> Order:
        self.error = None
        try:
            order = await self._data.create_order(draft)
        except SyncError as e:
            if self._alive:
                self.error = str(e)
            raise
        if not self._alive:
            return order
        self._orders = (order,) + tuple(o for o in self._orders if o.id != order.id)
        self.last_updated = self._clock()
        if self._refresh_in_flight:
            # The running refresh may predate this order; reconcile after it lands.
            self._schedule_reconcile()
        else:
            self._spawn(self.refresh_orders(False))
        return order

    async def update_order_status(self, order_id: int, status: str) -> Mutation:
        m = self._capture("status", order_id)
        self._apply(m, tuple(
            o.model_copy(update={"status": status}) if o.id == order_id else o
            for o in self._orders
        ))
        try:
            await self._data.update_order_status(order_id, status)
        except Exception as e:
            self._rollback(m, e)
            raise
        self._confirm(m)
        return m

    async def delete_order(self, order_id: int) -> Mutation:
        m = self._capture("delete", order_id)
        self._apply(m, tuple(o for o in self._orders if o.id != order_id))
        try:
            await self._data.delete_order(order_id)
        except Exception as e:
            self._rollback(m, e)
            raise
        self._confirm(m)
        return m

    def _capture(self, kind: str, order_id: int) -> Mutation:
        m = Mutation(kind=kind, order_id=order_id, snapshot=self._orders)
        self.last_mutation = m
        self.error = None
        return m

    def _apply(self, m: Mutation, orders: tuple[Order, ...]) -> None:
        self._orders = orders
        self.last_updated = self._clock()
        m.state = MutationState.APPLIED

    def _rollback(self, m: Mutation, e: BaseException) -> None:
        m.error = e
        m.state = MutationState.ROLLED_BACK
        if not self._alive:
            return
        _log.warning("%s of order %s failed, rolling back: %s", m.kind, m.order_id, e)
        # Whole-list restore: a concurrent mutation applied after this one was captured is lost too.
        self._orders = m.snapshot
        self.last_updated = self._clock()
        self.error = str(e)

    def _confirm(self, m: Mutation) -> None:
        m.state = MutationState.CONFIRMED
        if self._alive:
            self._schedule_reconcile()

    def _schedule_reconcile(self) -> None:
        if self._reconcile_timer is not None:
            self._reconcile_timer.cancel()
        loop = asyncio.get_running_loop()
        self._reconcile_timer = loop.call_later(self.mutation_debounce, self._fire_reconcile)

    def _fire_reconcile(self) -> None:
        self._reconcile_timer = None
        self._fire_refresh(False)

    # Environment events

    def handle_online(self) -> Optional[asyncio.Task]:
        self.is_online = True
        self.error = None
        if self._alive and not self._refresh_in_flight:
            return self._spawn(self.refresh_orders(False))
        return None

    def handle_offline(self) -> None:
        self.is_online = False

    def handle_visibility_change(self, visible: bool) -> None:
        if not visible or not self._alive or not self.is_online:
            return
        if self._visibility_timer is not None:
            self._visibility_timer.cancel()
        loop = asyncio.get_running_loop()
        self._visibility_timer = loop.call_later(self.visibility_debounce, self._fire_visibility)

    def _fire_visibility(self) -> None:
        self._visibility_timer = None
        if not self._refresh_in_flight:
            self._fire_refresh(False)

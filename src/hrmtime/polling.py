"""Multiplexed polling cache.

A :class:`PollingCache` turns one slow fetch operation into a shared,
periodically refreshed value stream.  Any number of subscribers cause a
single fetch per refresh interval; new subscribers immediately receive
the last cached value (replay) and every refresh result is fanned out to
all live subscriptions in generation order.

The refresh driver is a single asyncio task per cache.  It only runs
while at least one subscription is live:

* the first subscriber starts it, and the first fetch fires at once;
* ticks are strictly sequential, so at most one fetch is in flight;
* when the last subscriber leaves, a pending wait for the next tick is
  cancelled right away, while an in-flight fetch is allowed to finish
  and update the cache.

Fetch failures never reach subscribers as values.  They are normalized
to :class:`~hrmtime.exceptions.FetchFailed`, logged, stored as
``last_error`` and passed to the optional ``on_error`` callback; the
cached entry is kept and the next tick is still scheduled.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from hrmtime._constants import DEFAULT_REFRESH_INTERVAL
from hrmtime.exceptions import FetchFailed, HrmTimeError

_logger = logging.getLogger(__name__)

T = TypeVar("T")

# Queue marker that ends iteration over a closed subscription.
_CLOSED: Any = object()


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """The most recent successful fetch result.

    Entries are replaced on every successful refresh, never mutated.
    ``generation`` starts at 1 and grows by one per replacement.
    """

    value: T
    cached_at: datetime
    generation: int


class Subscription(Generic[T]):
    """One consumer's interest in a :class:`PollingCache`.

    Values go to the callback when one is given; otherwise they are
    queued for :meth:`get` and async iteration::

        subscription = cache.subscribe()
        async for value in subscription:
            ...

    Iteration ends once the subscription is cancelled or its cache is
    closed.  Values queued before that are still yielded.
    """

    def __init__(self, cache: PollingCache[T], callback: Callable[[T], None] | None = None) -> None:
        self._cache = cache
        self._callback = callback
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._active = True
        self._last_generation = 0

    @property
    def active(self) -> bool:
        """Whether the subscription still receives deliveries."""
        return self._active

    @property
    def last_generation(self) -> int:
        """Generation of the last value delivered (``0`` if none)."""
        return self._last_generation

    def cancel(self) -> None:
        """Stop receiving values.  Idempotent."""
        self._cache.cancel(self)

    async def get(self) -> T:
        """Wait for the next delivered value.

        Raises
        ------
        HrmTimeError
            If the subscription is closed and nothing is left to read.
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker in place so later reads fail fast too.
            self._queue.put_nowait(_CLOSED)
            raise HrmTimeError("Subscription is closed")
        value: T = item
        return value

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.get()
        except HrmTimeError:
            raise StopAsyncIteration from None

    def _deliver(self, entry: CacheEntry[T]) -> None:
        if not self._active or entry.generation <= self._last_generation:
            return
        self._last_generation = entry.generation
        if self._callback is None:
            self._queue.put_nowait(entry.value)
            return
        try:
            self._callback(entry.value)
        except Exception:
            _logger.warning("Subscriber callback failed", exc_info=True)

    def _close(self) -> None:
        if not self._active:
            return
        self._active = False
        self._queue.put_nowait(_CLOSED)


class PollingCache(Generic[T]):
    """Shared, periodically refreshed view of a remotely fetched value.

    Parameters
    ----------
    fetch : callable
        Zero-argument coroutine function producing a fresh value.  Any
        timeout policy belongs to this function.
    interval : float
        Seconds between the starts of consecutive refreshes.
    on_error : callable or None
        Called with a :class:`FetchFailed` whenever a refresh fails.
    clock : callable
        Wall clock used to stamp cache entries.
    name : str
        Label used in log messages.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        *,
        interval: float = DEFAULT_REFRESH_INTERVAL,
        on_error: Callable[[FetchFailed], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        name: str = "",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._fetch = fetch
        self._interval = interval
        self._on_error = on_error
        self._clock = clock
        self._name = name or "PollingCache"
        self._entry: CacheEntry[T] | None = None
        self._subscriptions: list[Subscription[T]] = []
        self._task: asyncio.Task[None] | None = None
        self._fetching = False
        self._fetch_count = 0
        self._last_error: FetchFailed | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def name(self) -> str:
        return self._name

    @property
    def current_entry(self) -> CacheEntry[T] | None:
        return self._entry

    @property
    def generation(self) -> int:
        """Generation of the cached entry (``0`` before the first success)."""
        return self._entry.generation if self._entry is not None else 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def is_running(self) -> bool:
        """Whether the refresh driver is active."""
        return self._task is not None and not self._task.done()

    @property
    def is_fetching(self) -> bool:
        return self._fetching

    @property
    def fetch_count(self) -> int:
        """Number of fetches issued so far (successful or not)."""
        return self._fetch_count

    @property
    def last_error(self) -> FetchFailed | None:
        """Failure of the most recent refresh, cleared by the next success."""
        return self._last_error

    def current_value(self) -> T | None:
        """Return the last cached value, or ``None`` if no refresh has succeeded."""
        return self._entry.value if self._entry is not None else None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[T], None] | None = None) -> Subscription[T]:
        """Register a new consumer.

        Must be called from a running event loop.  If a value is cached
        it is delivered to the new subscription before this returns.
        The first subscriber starts the refresh cycle with an immediate
        fetch; a subscriber joining mid-fetch shares that fetch.
        """
        loop = asyncio.get_running_loop()
        subscription: Subscription[T] = Subscription(self, callback)
        self._subscriptions.append(subscription)
        if self._entry is not None:
            subscription._deliver(self._entry)
        if not self.is_running:
            _logger.debug("%s: starting refresh cycle", self._name)
            self._task = loop.create_task(self._run(), name=f"{self._name}-refresh")
        return subscription

    def cancel(self, subscription: Subscription[T]) -> None:
        """Remove a consumer; the last one leaving suspends the refresh cycle."""
        if subscription._cache is not self:
            raise ValueError("Subscription belongs to a different cache")
        with contextlib.suppress(ValueError):
            self._subscriptions.remove(subscription)
        subscription._close()
        if not self._subscriptions:
            self._suspend()

    async def aclose(self) -> None:
        """Stop the refresh cycle and close every subscription.

        Unlike :meth:`cancel`, this also aborts an in-flight fetch.  The
        cache keeps its entry and may be subscribed again.
        """
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription._close()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ------------------------------------------------------------------
    # Refresh driver
    # ------------------------------------------------------------------

    def _suspend(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        if self._fetching:
            # The driver stops on its own once the in-flight fetch settles.
            return
        _logger.debug("%s: no subscribers left, suspending refresh cycle", self._name)
        task.cancel()
        self._task = None

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self._subscriptions:
            started = loop.time()
            await self._refresh()
            if not self._subscriptions:
                break
            delay = started + self._interval - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
        _logger.debug("%s: refresh cycle stopped", self._name)

    async def _refresh(self) -> None:
        self._fetching = True
        self._fetch_count += 1
        try:
            value = await self._fetch()
        except Exception as exc:
            self._record_failure(exc)
            return
        finally:
            self._fetching = False

        entry = CacheEntry(value=value, cached_at=self._clock(), generation=self.generation + 1)
        self._entry = entry
        self._last_error = None
        _logger.debug(
            "%s: refresh #%d cached generation %d for %d subscriber(s)",
            self._name,
            self._fetch_count,
            entry.generation,
            len(self._subscriptions),
        )
        for subscription in list(self._subscriptions):
            subscription._deliver(entry)

    def _record_failure(self, exc: Exception) -> None:
        if isinstance(exc, FetchFailed):
            error = exc
        else:
            error = FetchFailed(f"{type(exc).__name__}: {exc}")
            error.__cause__ = exc
        self._last_error = error
        _logger.warning(
            "%s: refresh failed, keeping generation %d: %s",
            self._name,
            self.generation,
            error,
        )
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            _logger.warning("%s: on_error callback failed", self._name, exc_info=True)

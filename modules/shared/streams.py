"""Cancellable snapshot streams.

A ``Subscription`` is what every reactive read in the service hands back:
an async iterator over full snapshots plus an explicit ``close()`` that
releases whatever listener feeds it. Producers push on the event loop
thread with ``push``/``fail`` or from a foreign thread with the
``*_threadsafe`` variants.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, Set, TypeVar

T = TypeVar("T")
Release = Callable[[], Awaitable[None]]

logger = logging.getLogger("shared.streams")

_END = object()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException) -> None:
        self.error = error


class Subscription(Generic[T]):
    """Ordered sequence of snapshots with idempotent unsubscribe.

    Iteration stops after ``close()`` or after the producer finishes. A
    producer failure is raised once from the iterator and terminates the
    stream. ``release`` runs exactly once, on the first ``close()``.
    """

    def __init__(self, release: Optional[Release] = None, name: str = "subscription") -> None:
        self.name = name
        self._release = release
        self._released = False
        self._closed = False
        self._terminated = False
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop = asyncio.get_running_loop()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def terminated(self) -> bool:
        return self._terminated

    def push(self, item: T) -> None:
        if self._terminated:
            return
        self._queue.put_nowait(item)

    def fail(self, error: BaseException) -> None:
        if self._terminated:
            return
        logger.debug("Subscription %s terminated with %r", self.name, error)
        self._terminated = True
        self._queue.put_nowait(_Failure(error))

    def finish(self) -> None:
        if self._terminated:
            return
        self._terminated = True
        self._queue.put_nowait(_END)

    def push_threadsafe(self, item: T) -> None:
        self._call_threadsafe(self.push, item)

    def fail_threadsafe(self, error: BaseException) -> None:
        self._call_threadsafe(self.fail, error)

    def _call_threadsafe(self, fn, arg) -> None:
        try:
            self._loop.call_soon_threadsafe(fn, arg)
        except RuntimeError:
            # loop already closed, nobody left to deliver to
            logger.debug("Dropping emission for %s: event loop is closed", self.name)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._terminated = True
        self._queue.put_nowait(_END)
        if self._release is not None and not self._released:
            self._released = True
            logger.debug("Releasing listener for %s", self.name)
            await self._release()

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._closed or (self._terminated and self._queue.empty()):
            raise StopAsyncIteration
        item = await self._queue.get()
        if self._closed or item is _END:
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            raise item.error
        return item


class MappedSubscription(Generic[T]):
    """View of another subscription with ``transform`` applied to each item."""

    def __init__(self, source: Subscription, transform: Callable[[object], T]) -> None:
        self.source = source
        self.transform = transform

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def closed(self) -> bool:
        return self.source.closed

    @property
    def terminated(self) -> bool:
        return self.source.terminated

    async def close(self) -> None:
        await self.source.close()

    async def __aenter__(self) -> "MappedSubscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __aiter__(self) -> "MappedSubscription[T]":
        return self

    async def __anext__(self) -> T:
        return self.transform(await self.source.__anext__())


class Broadcaster(Generic[T]):
    """Fans snapshots out to every open subscription."""

    def __init__(self, name: str = "broadcast") -> None:
        self.name = name
        self._subscriptions: Set[Subscription[T]] = set()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def open(self) -> Subscription[T]:
        async def release() -> None:
            self._subscriptions.discard(subscription)

        subscription: Subscription[T] = Subscription(release, name=self.name)
        self._subscriptions.add(subscription)
        return subscription

    def publish(self, item: T) -> None:
        for subscription in list(self._subscriptions):
            subscription.push(item)

    def fail(self, error: BaseException) -> None:
        for subscription in list(self._subscriptions):
            subscription.fail(error)

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.close()

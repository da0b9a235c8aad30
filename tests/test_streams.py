import asyncio
import threading

import pytest

from modules.shared.errors import FetchError
from modules.shared.streams import Broadcaster, MappedSubscription, Subscription


async def test_items_arrive_in_push_order(next_item):
    subscription = Subscription()
    for n in (1, 2, 3):
        subscription.push(n)

    assert [await next_item(subscription) for _ in range(3)] == [1, 2, 3]


async def test_close_releases_exactly_once():
    released = []

    async def release():
        released.append(True)

    subscription = Subscription(release)
    await subscription.close()
    await subscription.close()

    assert released == [True]
    assert subscription.closed


async def test_close_after_failure_still_releases_once(next_item):
    released = []

    async def release():
        released.append(True)

    subscription = Subscription(release)
    subscription.fail(FetchError("permission denied"))

    with pytest.raises(FetchError):
        await next_item(subscription)
    await subscription.close()
    await subscription.close()

    assert released == [True]


async def test_failure_terminates_the_stream(next_item):
    subscription = Subscription()
    subscription.push("before")
    subscription.fail(FetchError("gone"))
    subscription.push("after")

    assert await next_item(subscription) == "before"
    with pytest.raises(FetchError):
        await next_item(subscription)
    with pytest.raises(StopAsyncIteration):
        await next_item(subscription)


async def test_no_emissions_after_close():
    subscription = Subscription()
    subscription.push("queued")
    await subscription.close()
    subscription.push("late")

    assert [item async for item in subscription] == []


async def test_close_wakes_a_waiting_consumer():
    subscription = Subscription()
    consumer = asyncio.create_task(subscription.__anext__())
    await asyncio.sleep(0)
    await subscription.close()

    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(consumer, 1.0)


async def test_push_from_another_thread(next_item):
    subscription = Subscription()
    worker = threading.Thread(target=subscription.push_threadsafe, args=("from-thread",))
    worker.start()
    worker.join()

    assert await next_item(subscription) == "from-thread"


async def test_mapped_subscription_transforms_and_closes_source(next_item):
    source = Subscription()
    mapped = MappedSubscription(source, lambda n: n * 10)
    source.push(4)

    assert await next_item(mapped) == 40
    await mapped.close()
    assert source.closed


async def test_broadcaster_forgets_closed_subscriptions(next_item):
    broadcaster = Broadcaster()
    first, second = broadcaster.open(), broadcaster.open()
    broadcaster.publish("a")
    await first.close()
    broadcaster.publish("b")

    assert len(broadcaster) == 1
    assert await next_item(second) == "a"
    assert await next_item(second) == "b"

import asyncio
import json
import threading

from core.realtime import QUEUE_SIZE, ChangeFeed, Event


def test_publish_reaches_only_that_users_subscribers():
    async def scenario():
        feed = ChangeFeed()
        mine = feed.subscribe(1)
        other = feed.subscribe(2)

        assert feed.publish(1, "notification", {"id": 10}) == 1
        evt = await mine.get(timeout=0.1)
        assert evt.event == "notification"
        assert evt.payload == {"id": 10}
        assert await other.get(timeout=0.01) is None

    asyncio.run(scenario())


def test_publish_without_subscribers():
    assert ChangeFeed().publish(99, "message", {}) == 0


def test_full_queue_drops_events():
    async def scenario():
        feed = ChangeFeed()
        sub = feed.subscribe(1)
        for i in range(QUEUE_SIZE):
            assert feed.publish(1, "notification", {"i": i}) == 1
        assert feed.publish(1, "notification", {"i": "overflow"}) == 0
        assert (await sub.get(timeout=0.01)).payload == {"i": 0}

    asyncio.run(scenario())


def test_publish_from_worker_thread_wakes_the_loop():
    async def scenario():
        feed = ChangeFeed()
        sub = feed.subscribe(4)
        delivered = []
        worker = threading.Thread(target=lambda: delivered.append(feed.publish(4, "message", {"id": 1})))
        worker.start()
        evt = await sub.get(timeout=1)
        worker.join()
        assert delivered == [1]
        assert evt.payload == {"id": 1}

    asyncio.run(scenario())


def test_event_to_sse():
    frame = Event("message", {"id": 3, "content": "hi"}).to_sse()
    assert frame.startswith("event: message\ndata: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame.split("data: ", 1)[1]) == {"id": 3, "content": "hi"}


def test_stream_sends_keepalives_and_unsubscribes_on_close():
    async def scenario():
        feed = ChangeFeed()
        sub = feed.subscribe(5)
        frames = feed.stream(sub, keepalive=0.01)

        assert await frames.__anext__() == ": connected\n\n"
        assert await frames.__anext__() == ": keepalive\n\n"
        feed.publish(5, "notification", {"title": "Hello"})
        assert (await frames.__anext__()).startswith("event: notification\n")

        assert feed.subscriber_count(5) == 1
        await frames.aclose()
        assert feed.subscriber_count(5) == 0

    asyncio.run(scenario())


class _Client:
    def __init__(self):
        self.gone = False

    async def is_disconnected(self):
        return self.gone


def test_stream_stops_when_client_disconnects():
    async def scenario():
        feed = ChangeFeed()
        sub = feed.subscribe(6)
        client = _Client()
        frames = feed.stream(sub, client, keepalive=0.01)

        assert await frames.__anext__() == ": connected\n\n"
        client.gone = True
        assert [frame async for frame in frames] == []
        assert feed.subscriber_count(6) == 0

    asyncio.run(scenario())

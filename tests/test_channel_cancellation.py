"""
Tests for the producer/consumer channel and the cancellation token.
"""

import asyncio

import pytest

from activo.utils.cancellation import CancellationToken, OperationCancelledError
from activo.utils.channel import Channel, ChannelClosedError


class TestChannel:
    """Tests for Channel."""

    @pytest.mark.asyncio
    async def test_items_delivered_in_order(self):
        async def produce(channel):
            for i in range(5):
                await channel.send(i)

        channel = Channel.start(produce, maxsize=2)

        assert await channel.collect() == [0, 1, 2, 3, 4]
        assert channel.closed is True

    @pytest.mark.asyncio
    async def test_producer_error_after_items(self):
        async def produce(channel):
            await channel.send("a")
            raise RuntimeError("producer broke")

        channel = Channel.start(produce)
        received = []

        with pytest.raises(RuntimeError, match="producer broke"):
            async for item in channel:
                received.append(item)

        assert received == ["a"]

    @pytest.mark.asyncio
    async def test_send_after_close(self):
        channel = Channel()
        await channel.close()

        with pytest.raises(ChannelClosedError):
            await channel.send("late")

    @pytest.mark.asyncio
    async def test_aclose_cancels_producer(self):
        started = asyncio.Event()

        async def produce(channel):
            started.set()
            await asyncio.sleep(3600)

        channel = Channel.start(produce)
        await started.wait()
        await channel.aclose()

        assert channel.producer.cancelled()
        assert await channel.collect() == []

    @pytest.mark.asyncio
    async def test_producer_raising_cancelled_error_ends_stream(self):
        async def produce(channel):
            await channel.send(0)
            raise asyncio.CancelledError()

        # The queue is full when the producer stops
        channel = Channel.start(produce, maxsize=1)

        assert await asyncio.wait_for(channel.collect(), timeout=2) == [0]
        assert channel.closed is True

    @pytest.mark.asyncio
    async def test_producer_cancelled_while_consumer_waits(self):
        started = asyncio.Event()

        async def produce(channel):
            started.set()
            await asyncio.sleep(3600)

        channel = Channel.start(produce)
        consumer = asyncio.create_task(channel.collect())
        await started.wait()
        channel.producer.cancel()

        assert await asyncio.wait_for(consumer, timeout=2) == []

    @pytest.mark.asyncio
    async def test_context_manager_stops_producer(self):
        async def produce(channel):
            for i in range(100):
                await channel.send(i)

        async with Channel.start(produce, maxsize=1) as channel:
            first = await channel.__anext__()

        assert first == 0
        assert channel.producer.done()

    @pytest.mark.asyncio
    async def test_acknowledge_waits_for_consumer(self):
        sent = []

        async def produce(channel):
            for i in range(3):
                await channel.send(i)
                sent.append(i)

        channel = Channel.start(produce, acknowledge=True)

        assert await channel.__anext__() == 0
        await asyncio.sleep(0.01)
        # The first send has not returned: the consumer has not come back
        assert sent == []

        assert await channel.__anext__() == 1
        await asyncio.sleep(0.01)
        assert sent == [0]

        assert await channel.collect() == [2]
        assert sent == [0, 1, 2]

    def test_invalid_maxsize(self):
        with pytest.raises(ValueError):
            Channel(maxsize=0)


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_initial_state(self):
        token = CancellationToken()

        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel_is_idempotent(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")

        assert token.cancelled is True
        assert token.reason == "first"

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError, match="Operation cancelled"):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_guard_returns_result(self):
        token = CancellationToken()

        async def work():
            await asyncio.sleep(0)
            return 42

        assert await token.guard(work()) == 42

    @pytest.mark.asyncio
    async def test_guard_propagates_errors(self):
        token = CancellationToken()

        async def work():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await token.guard(work())

    @pytest.mark.asyncio
    async def test_guard_cancels_in_flight_work(self):
        token = CancellationToken()
        finished = False

        async def slow():
            nonlocal finished
            await asyncio.sleep(3600)
            finished = True

        asyncio.get_running_loop().call_later(0.01, token.cancel)

        with pytest.raises(OperationCancelledError):
            await token.guard(slow())
        assert finished is False

    @pytest.mark.asyncio
    async def test_guard_on_cancelled_token(self):
        token = CancellationToken()
        token.cancel()

        async def work():
            return "never"

        with pytest.raises(OperationCancelledError):
            await token.guard(work())

    @pytest.mark.asyncio
    async def test_wait(self):
        token = CancellationToken()
        asyncio.get_running_loop().call_soon(token.cancel)

        await asyncio.wait_for(token.wait(), timeout=1)

        assert token.cancelled is True

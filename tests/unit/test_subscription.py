import asyncio

import pytest

from geochat.store.subscription import Subscription, maybe_await


class TestSubscription:
    """구독 핸들 테스트"""

    @pytest.mark.asyncio
    async def test_accepts_sync_and_async_callbacks(self):
        received = []

        async def async_callback(payload):
            received.append(("async", payload))

        sync_sub = Subscription("sync", lambda payload: received.append(("sync", payload)))
        async_sub = Subscription("async", async_callback)

        await sync_sub.deliver(1)
        await async_sub.deliver(2)
        assert received == [("sync", 1), ("async", 2)]

    @pytest.mark.asyncio
    async def test_deliveries_are_serialized(self):
        """한 구독의 전달은 겹치지 않음"""
        active = 0
        overlaps = []

        async def slow(payload):
            nonlocal active
            active += 1
            overlaps.append(active)
            await asyncio.sleep(0.01)
            active -= 1

        subscription = Subscription("slow", slow)
        await asyncio.gather(*(subscription.deliver(i) for i in range(5)))
        assert max(overlaps) == 1

    @pytest.mark.asyncio
    async def test_close_twice(self):
        subscription = Subscription("idle", lambda payload: None)
        subscription.attach(asyncio.sleep(10))
        await subscription.close()
        await subscription.close()
        assert subscription.closed
        assert not subscription.active

    @pytest.mark.asyncio
    async def test_no_delivery_after_close(self):
        received = []
        subscription = Subscription("closed", received.append)
        await subscription.close()
        await subscription.deliver("late")
        assert received == []

    @pytest.mark.asyncio
    async def test_feed_failure_reported_once(self):
        """피드 실패는 on_error로 한 번만 보고되고 재시도하지 않음"""
        errors = []

        async def failing_feed():
            raise ConnectionError("feed lost")

        subscription = Subscription("failing", lambda payload: None, errors.append)
        task = subscription.start(failing_feed())
        await task
        await subscription.fail(RuntimeError("second"))

        assert len(errors) == 1
        assert isinstance(errors[0], ConnectionError)
        assert isinstance(subscription.error, ConnectionError)
        assert not subscription.active
        await subscription.close()

    @pytest.mark.asyncio
    async def test_dispatch_logs_callback_errors(self):
        def broken(payload):
            raise ValueError("bad payload")

        subscription = Subscription("broken", broken)
        await subscription.dispatch("x")
        assert subscription.active

        with pytest.raises(ValueError):
            await subscription.deliver("x")

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with Subscription("scoped", lambda payload: None) as subscription:
            assert subscription.active
        assert subscription.closed

    @pytest.mark.asyncio
    async def test_maybe_await(self):
        async def value():
            return 42

        assert await maybe_await(value()) == 42
        assert await maybe_await(7) == 7

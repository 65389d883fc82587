import asyncio
from datetime import datetime, timedelta, timezone

from birdass.errors import StoreUnavailable
from birdass.metrics import runtime_metrics
from birdass.storage.reminder import ReminderStore
from birdass.world.reminder import ReminderScheduler

NOW = datetime(2021, 9, 15, 12, 0, 0, tzinfo=timezone.utc)


async def _remaining(store):
    return {r.message for r in await store.list_pending(limit=100)}


def test_tick_delivers_and_deletes_due(memory_db, fake_sink):
    async def scenario():
        async with memory_db() as conn:
            store = ReminderStore(conn)
            await store.insert("alice", "tea", NOW - timedelta(minutes=2))
            await store.insert("bob", "coffee", NOW - timedelta(minutes=1))
            await store.insert("carol", "lunch", NOW + timedelta(hours=1))

            sink = fake_sink(failing={"bob"})
            scheduler = ReminderScheduler(store, sink, clock=lambda: NOW)
            result = await scheduler.tick()

            assert (result.due, result.delivered, result.failed, result.deleted) == (2, 1, 1, 2)
            assert not result.aborted
            assert sink.sent == [
                ("alice", "Hi there! You asked me to remind you about tea - this is that reminder!"),
            ]
            # 发送失败的提醒同样被删除
            assert await _remaining(store) == {"lunch"}

    asyncio.run(scenario())


def test_second_tick_does_nothing(memory_db, fake_sink):
    async def scenario():
        async with memory_db() as conn:
            store = ReminderStore(conn)
            await store.insert("alice", "tea", NOW - timedelta(minutes=2))
            sink = fake_sink()
            scheduler = ReminderScheduler(store, sink)

            await scheduler.tick(NOW)
            result = await scheduler.tick(NOW)
            assert result.due == 0
            assert len(sink.sent) == 1

    asyncio.run(scenario())


def test_unreachable_recipient_is_dropped(memory_db, fake_sink):
    async def scenario():
        async with memory_db() as conn:
            store = ReminderStore(conn)
            await store.insert("ghost", "boo", NOW - timedelta(minutes=1))
            await store.insert("alice", "tea", NOW - timedelta(minutes=1))
            sink = fake_sink(unreachable={"ghost"})

            result = await ReminderScheduler(store, sink).tick(NOW)
            assert result.failed == 1
            assert result.delivered == 1
            assert [recipient for recipient, _ in sink.sent] == ["alice"]
            assert await store.count() == 0

    asyncio.run(scenario())


def test_slow_sink_times_out(memory_db, fake_sink):
    class SlowSink(fake_sink):
        async def open_channel(self, recipient_id):
            await asyncio.sleep(1)
            return recipient_id

    async def scenario():
        async with memory_db() as conn:
            store = ReminderStore(conn)
            await store.insert("alice", "tea", NOW - timedelta(minutes=1))
            scheduler = ReminderScheduler(store, SlowSink(), delivery_timeout_seconds=0.01)

            result = await scheduler.tick(NOW)
            assert result.failed == 1
            assert await store.count() == 0

    asyncio.run(scenario())


def test_unexpected_sink_error_does_not_stop_tick(memory_db, fake_sink):
    class BrokenSink(fake_sink):
        async def send(self, channel, text):
            if channel == "alice":
                raise RuntimeError("boom")
            await super().send(channel, text)

    async def scenario():
        async with memory_db() as conn:
            store = ReminderStore(conn)
            await store.insert("alice", "tea", NOW - timedelta(minutes=2))
            await store.insert("bob", "coffee", NOW - timedelta(minutes=1))
            sink = BrokenSink()

            result = await ReminderScheduler(store, sink).tick(NOW)
            assert (result.delivered, result.failed, result.deleted) == (1, 1, 2)
            assert [recipient for recipient, _ in sink.sent] == ["bob"]

    asyncio.run(scenario())


def test_delete_failure_is_contained(memory_db, fake_sink):
    class FlakyStore(ReminderStore):
        async def delete(self, reminder_id):
            if not getattr(self, "_failed_once", False):
                self._failed_once = True
                raise StoreUnavailable("disk full")
            await super().delete(reminder_id)

    async def scenario():
        async with memory_db() as conn:
            store = FlakyStore(conn)
            await store.insert("alice", "tea", NOW - timedelta(minutes=2))
            await store.insert("bob", "coffee", NOW - timedelta(minutes=1))
            sink = fake_sink()

            result = await ReminderScheduler(store, sink).tick(NOW)
            assert result.due == 2
            assert result.delivered == 2
            assert result.deleted == 1
            assert await store.count() == 1

    asyncio.run(scenario())


def test_unavailable_store_aborts_tick(fake_sink):
    async def scenario():
        before = runtime_metrics.tick_failed_count
        scheduler = ReminderScheduler(ReminderStore(None), fake_sink())
        result = await scheduler.tick(NOW)
        assert result.aborted
        assert result.due == 0
        assert runtime_metrics.tick_failed_count == before + 1
        assert scheduler.get_status()["last_result"]["aborted"] is True

    asyncio.run(scenario())


def test_metrics_follow_deliveries(memory_db, fake_sink):
    async def scenario():
        async with memory_db() as conn:
            before = runtime_metrics.snapshot()
            store = ReminderStore(conn)
            await store.insert("alice", "tea", NOW - timedelta(minutes=2))
            await store.insert("bob", "coffee", NOW - timedelta(minutes=1))
            await ReminderScheduler(store, fake_sink(failing={"bob"})).tick(NOW)

            after = runtime_metrics.snapshot()
            assert after["reminder_created_count"] == before["reminder_created_count"] + 2
            assert after["reminder_delivered_count"] == before["reminder_delivered_count"] + 1
            assert after["reminder_failed_count"] == before["reminder_failed_count"] + 1
            assert after["reminder_deleted_count"] == before["reminder_deleted_count"] + 2
            assert after["last_delivery_at_utc"] is not None

    asyncio.run(scenario())


def test_run_loop_ticks_until_shutdown(memory_db, fake_sink):
    async def scenario():
        async with memory_db() as conn:
            store = ReminderStore(conn)
            await store.insert("alice", "tea", NOW - timedelta(minutes=1))
            sink = fake_sink()
            scheduler = ReminderScheduler(store, sink, interval_seconds=0.01)
            shutdown_event = asyncio.Event()

            task = asyncio.create_task(scheduler.run_loop(shutdown_event))
            for _ in range(200):
                if sink.sent:
                    break
                await asyncio.sleep(0.01)
            assert scheduler.get_status()["running"]

            shutdown_event.set()
            await asyncio.wait_for(task, timeout=2)
            assert sink.sent[0][0] == "alice"
            assert not scheduler.get_status()["running"]

    asyncio.run(scenario())


def test_stop_before_start_skips_ticks(fake_sink):
    async def scenario():
        sink = fake_sink()
        scheduler = ReminderScheduler(ReminderStore(None), sink, interval_seconds=0.01)
        scheduler.stop()
        await asyncio.wait_for(scheduler.run_loop(), timeout=1)
        assert scheduler.get_status()["last_result"] is None

    asyncio.run(scenario())


def test_stop_lets_current_tick_finish(memory_db, fake_sink):
    class GatedSink(fake_sink):
        def __init__(self):
            super().__init__()
            self.entered = asyncio.Event()
            self.release = asyncio.Event()

        async def open_channel(self, recipient_id):
            self.entered.set()
            await self.release.wait()
            return recipient_id

    async def scenario():
        async with memory_db() as conn:
            store = ReminderStore(conn)
            await store.insert("alice", "tea", NOW - timedelta(minutes=1))
            sink = GatedSink()
            scheduler = ReminderScheduler(store, sink, interval_seconds=0.01, delivery_timeout_seconds=None)

            task = asyncio.create_task(scheduler.run_loop())
            await asyncio.wait_for(sink.entered.wait(), timeout=2)
            scheduler.stop()
            sink.release.set()
            await asyncio.wait_for(task, timeout=2)

            assert len(sink.sent) == 1
            assert await store.count() == 0

    asyncio.run(scenario())


def test_error_text_with_braces_does_not_break_tick(memory_db, fake_sink):
    class JsonErrorSink(fake_sink):
        async def open_channel(self, recipient_id):
            if recipient_id == "alice":
                raise RuntimeError("json {x}")
            return await super().open_channel(recipient_id)

    async def scenario():
        async with memory_db() as conn:
            store = ReminderStore(conn)
            await store.insert("alice", "tea", NOW - timedelta(minutes=2))
            await store.insert("bob", "coffee", NOW - timedelta(minutes=1))
            sink = JsonErrorSink()

            result = await ReminderScheduler(store, sink).tick(NOW)
            assert (result.due, result.delivered, result.failed, result.deleted) == (2, 1, 1, 2)
            assert [recipient for recipient, _ in sink.sent] == ["bob"]
            assert await store.count() == 0

    asyncio.run(scenario())

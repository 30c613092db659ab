"""Тесты планировщика синхронизации."""

import asyncio

import pytest

from conftest import FakeRemote
from core.sync import SyncAction, SyncResult
from services.retry_queue import RetryQueue
from services.scheduler import SyncScheduler


class StubReconciler:

    def __init__(self, fail=False):
        self.fail = fail
        self.visible_calls = 0
        self.sync_calls = 0

    async def on_visible(self):
        self.visible_calls += 1
        if self.fail:
            raise RuntimeError("unexpected")
        return SyncResult(True, SyncAction.MERGE, "ok")

    async def sync(self):
        self.sync_calls += 1
        return SyncResult(True, SyncAction.MERGE, "ok")


class TestSyncScheduler:

    @pytest.mark.asyncio
    async def test_jobs_registered(self):
        scheduler = SyncScheduler(StubReconciler(), remote=FakeRemote(),
                                  auto_sync_minutes=5, connection_check_seconds=30)
        scheduler.start()
        try:
            auto_sync = scheduler.scheduler.get_job("auto_sync")
            monitor = scheduler.scheduler.get_job("connection_monitor")
            assert auto_sync.trigger.interval.total_seconds() == 300
            assert monitor.trigger.interval.total_seconds() == 30
        finally:
            scheduler.shutdown()
        # Остановка AsyncIOScheduler выполняется через event loop
        await asyncio.sleep(0.01)
        assert not scheduler.scheduler.running

    @pytest.mark.asyncio
    async def test_no_connection_monitor_without_remote(self):
        scheduler = SyncScheduler(StubReconciler())
        scheduler.start()
        try:
            assert scheduler.scheduler.get_job("connection_monitor") is None
        finally:
            scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_auto_sync_survives_errors(self):
        reconciler = StubReconciler(fail=True)
        await SyncScheduler(reconciler).auto_sync()
        assert reconciler.visible_calls == 1

    @pytest.mark.asyncio
    async def test_connection_transitions(self, notifier):
        remote = FakeRemote()
        reconciler = StubReconciler()
        retry_queue = RetryQueue(notifier)
        processed = []

        async def queued():
            processed.append(True)
            return True

        scheduler = SyncScheduler(reconciler, remote=remote, retry_queue=retry_queue, notifier=notifier)

        assert await scheduler.check_connection()
        assert notifier.history == []

        remote.available = False
        assert not await scheduler.check_connection()
        assert notifier.last().level.value == "warning"

        retry_queue.enqueue("Progress sync", queued)
        remote.available = True
        assert await scheduler.check_connection()
        assert reconciler.sync_calls == 1
        assert processed == [True]
        assert len(retry_queue) == 0

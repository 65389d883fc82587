from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest

from birdass.channels.base import NotificationSink
from birdass.errors import DeliveryFailed, RecipientUnreachable
from birdass.storage.db_config import init_db


class FakeSink(NotificationSink):
    """记录发送内容的通知通道, 可以指定打不开或发不出的接收者"""

    def __init__(self, unreachable=(), failing=()):
        self.unreachable = set(unreachable)
        self.failing = set(failing)
        self.opened = []
        self.sent = []

    async def open_channel(self, recipient_id):
        self.opened.append(recipient_id)
        if recipient_id in self.unreachable:
            raise RecipientUnreachable(recipient_id, "blocked")
        return recipient_id

    async def send(self, channel, text):
        if channel in self.failing:
            raise DeliveryFailed(f"send to {channel} failed")
        self.sent.append((channel, text))


@asynccontextmanager
async def _memory_db():
    conn = await init_db(":memory:")
    try:
        yield conn
    finally:
        await conn.close()


@pytest.fixture
def memory_db():
    """返回一个 async context manager 工厂, 需要在同一个事件循环里使用连接"""
    return _memory_db


@pytest.fixture
def fake_sink():
    return FakeSink


@pytest.fixture
def sept_15():
    return datetime(2021, 9, 15, 12, 0, 0, tzinfo=timezone.utc)

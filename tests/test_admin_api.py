import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from birdass.admin.app import create_app
from birdass.admin.logview import log_path, parse_levels, read_logs
from birdass.admin.schemas import RuntimeControl
from birdass.datamodel import DayPrompt, MusicMonth, Reminder
from birdass.errors import StoreUnavailable
from birdass.utils import now_utc
from birdass.world.period import current_window
from birdass.world.reminder import ReminderScheduler

TOKEN = "s3cret"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


class StubReminderStore:
    """只实现 Admin API 用到的方法, 避免跨事件循环使用 aiosqlite 连接"""

    def __init__(self, reminders=(), broken=False):
        self.reminders = list(reminders)
        self.broken = broken
        self.available = not broken

    async def count(self):
        if self.broken:
            raise StoreUnavailable("down")
        return len(self.reminders)

    async def list_pending(self, limit=50, offset=0):
        if self.broken:
            raise StoreUnavailable("down")
        return self.reminders[offset:offset + limit]

    async def query_due(self, now):
        for reminder in list(self.reminders):
            if reminder.due_at < now:
                yield reminder

    async def delete(self, reminder_id):
        self.reminders = [r for r in self.reminders if r.reminder_id != reminder_id]


class StubMusicStore:
    def __init__(self, month=None):
        self.month = month
        self.available = True

    async def first_starting_after(self, after, before=None):
        return self.month


class NullSink:
    def __init__(self):
        self.sent = []

    async def open_channel(self, recipient_id):
        return recipient_id

    async def send(self, channel, text):
        self.sent.append((channel, text))


def make_control(reminder_store=None, music_store=None, auth_token=TOKEN, log_file=None):
    reminder_store = reminder_store or StubReminderStore()
    return RuntimeControl(
        shutdown_event=asyncio.Event(),
        started_at=time.time(),
        reminder_store=reminder_store,
        music_store=music_store or StubMusicStore(),
        scheduler=ReminderScheduler(reminder_store, NullSink()),
        auth_token=auth_token,
        log_file=log_file,
    )


def test_health_needs_no_token():
    client = TestClient(create_app(make_control()))
    assert client.get("/healthz").text == "ok"
    body = client.get("/api/v1/health").json()
    assert body["status"] == "ok"
    assert body["db_connected"] is True
    assert body["scheduler_running"] is False


def test_auth():
    client = TestClient(create_app(make_control()))
    assert client.get("/api/v1/auth/check").status_code == 401
    assert client.get("/api/v1/auth/check", headers={"Authorization": "Bearer nope"}).status_code == 401
    assert client.get("/api/v1/auth/check", headers=AUTH).json() == {"ok": True}
    assert client.get("/api/v1/auth/check", headers={"X-Birdass-Token": TOKEN}).status_code == 200


def test_admin_disabled_without_token():
    client = TestClient(create_app(make_control(auth_token="")))
    assert client.get("/api/v1/metrics", headers=AUTH).status_code == 503


def test_metrics():
    client = TestClient(create_app(make_control()))
    body = client.get("/api/v1/metrics", headers=AUTH).json()
    assert "reminder_delivered_count" in body["runtime"]
    assert body["components"]["db"]["connected"] is True
    assert body["components"]["telegram"]["enabled"] is False
    assert body["components"]["reminder"]["running"] is False


def test_list_reminders():
    due_at = datetime(2030, 1, 1, 9, 30, tzinfo=timezone.utc)
    store = StubReminderStore([Reminder("r1", "42", "tea", due_at), Reminder("r2", "42", "cake", due_at)])
    client = TestClient(create_app(make_control(reminder_store=store)))

    body = client.get("/api/v1/reminders", params={"limit": 1}, headers=AUTH).json()
    assert body["total"] == 2
    assert body["items"] == [
        {"reminder_id": "r1", "recipient_id": "42", "message": "tea", "due_at_utc": "2030-01-01 09:30:00"},
    ]


def test_store_failure_is_503():
    client = TestClient(create_app(make_control(reminder_store=StubReminderStore(broken=True))))
    assert client.get("/api/v1/reminders", headers=AUTH).status_code == 503


def test_manual_tick():
    past = now_utc() - timedelta(minutes=1)
    store = StubReminderStore([Reminder("r1", "42", "tea", past)])
    control = make_control(reminder_store=store)
    client = TestClient(create_app(control))

    body = client.post("/api/v1/reminders/tick", headers=AUTH).json()
    assert body == {"due": 1, "delivered": 1, "failed": 0, "deleted": 1, "aborted": False}
    assert store.reminders == []
    assert control.scheduler.sink.sent[0][0] == "42"


@pytest.mark.parametrize("offset_days,state", [(2, "active"), (40, "upcoming")])
def test_music_month_state(offset_days, state):
    window = current_window(now_utc())
    start_time = window.start + timedelta(days=offset_days)
    month = MusicMonth("m1", start_time.replace(microsecond=0), [DayPrompt(1, "A")])
    client = TestClient(create_app(make_control(music_store=StubMusicStore(month))))

    body = client.get("/api/v1/music-month", headers=AUTH).json()
    assert body["month"]["state"] == state
    assert body["month"]["days"] == [{"day": 1, "prompt": "A"}]


def test_music_month_none():
    client = TestClient(create_app(make_control()))
    body = client.get("/api/v1/music-month", headers=AUTH).json()
    assert body["month"] is None
    assert body["window"]["start_utc"] < body["window"]["end_utc"]


def test_shutdown():
    control = make_control()
    client = TestClient(create_app(control))
    resp = client.post("/api/v1/admin/shutdown", json={"reason": "deploy"}, headers=AUTH)
    assert resp.json()["reason"] == "deploy"
    assert control.shutdown_event.is_set()


def test_logs(tmp_path):
    log_file = tmp_path / "birdass.log"
    log_file.write_text(
        "2021-09-15 12:00:00.000 | INFO     | birdass.main:run:1 - 启动 birdass...\n"
        "2021-09-15 12:00:01.000 | ERROR    | birdass.world.reminder:tick:2 - 查询到期提醒失败\n"
        "2021-09-15 12:00:02.000 | INFO     | birdass.world.reminder:tick:3 - 本轮提醒处理完成\n",
        encoding="utf-8",
    )
    client = TestClient(create_app(make_control(log_file=str(log_file))))

    body = client.get("/api/v1/logs", params={"levels": "error"}, headers=AUTH).json()
    assert len(body["lines"]) == 1
    assert "查询到期提醒失败" in body["lines"][0]

    body = client.get("/api/v1/logs", params={"lines": 1}, headers=AUTH).json()
    assert body["lines"][0].endswith("本轮提醒处理完成")


def test_logs_not_configured():
    client = TestClient(create_app(make_control()))
    assert client.get("/api/v1/logs", headers=AUTH).status_code == 404


def test_logview_helpers(tmp_path):
    assert log_path("logs/birdass.log", "error").name == "birdass_error.log"
    assert log_path("logs/birdass.log").name == "birdass.log"
    assert parse_levels(["info", " Error", "bogus"]) == {"INFO", "ERROR"}
    assert read_logs(tmp_path / "missing.log", 10) == []

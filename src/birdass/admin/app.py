from __future__ import annotations

import asyncio
import time
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from birdass.channels.telegram_polling import get_status as get_telegram_status
from birdass.errors import StoreUnavailable
from birdass.logger import logger
from birdass.metrics import runtime_metrics
from birdass.utils import now_utc, to_db_time
from birdass.world.period import current_window, find_month

from .auth import admin_auth
from .logview import log_path, parse_levels, read_logs
from .schemas import RuntimeControl, ShutdownRequest


def _store_error(e: StoreUnavailable) -> HTTPException:
    logger.error(f"Admin API 访问存储失败: {e}")
    return HTTPException(status_code=503, detail="存储不可用")


def create_app(control: RuntimeControl) -> FastAPI:
    app = FastAPI(title="birdass Admin API", version="1.0.0")

    if not control.auth_token:
        logger.warning("未配置 ADMIN_AUTH_TOKEN，管理 API 将不可访问")

    require_auth = admin_auth(control.auth_token)
    protected = [Depends(require_auth)]

    def health_payload() -> dict[str, Any]:
        return {
            "status": "ok",
            "now_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "uptime_seconds": max(0.0, time.time() - control.started_at),
            "db_connected": control.reminder_store.available,
            "scheduler_running": control.scheduler.get_status()["running"],
            "shutdown_requested": control.shutdown_event.is_set(),
        }

    @app.get("/healthz", include_in_schema=False)
    async def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, Any]:
        return health_payload()

    @app.get("/api/v1/health")
    async def api_health() -> dict[str, Any]:
        return health_payload()

    @app.get("/api/v1/auth/check", dependencies=protected)
    async def auth_check() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/api/v1/metrics", dependencies=protected)
    async def get_metrics() -> dict[str, Any]:
        telegram_status: dict[str, Any] = {"enabled": control.telegram_enabled, "connected": False}
        if control.telegram_enabled:
            telegram_status.update(get_telegram_status())

        return {
            "runtime": runtime_metrics.snapshot(),
            "components": {
                "db": {"connected": control.reminder_store.available},
                "telegram": telegram_status,
                "reminder": control.scheduler.get_status(),
            },
            "active_tasks": len(asyncio.all_tasks()),
        }

    @app.get("/api/v1/reminders", dependencies=protected)
    async def get_reminders(limit: int = 50, offset: int = 0) -> dict[str, Any]:
        limit = max(1, min(limit, 500))
        offset = max(0, offset)

        try:
            total = await control.reminder_store.count()
            reminders = await control.reminder_store.list_pending(limit=limit, offset=offset)
        except StoreUnavailable as e:
            raise _store_error(e)

        items = [
            {
                "reminder_id": r.reminder_id,
                "recipient_id": r.recipient_id,
                "message": r.message,
                "due_at_utc": to_db_time(r.due_at),
            }
            for r in reminders
        ]
        return {"items": items, "limit": limit, "offset": offset, "total": total}

    @app.post("/api/v1/reminders/tick")
    async def trigger_tick(auth_info: dict[str, str] = Depends(require_auth)) -> dict[str, Any]:
        """立即执行一轮提醒检查, 不影响定时循环"""
        logger.info(f"收到手动检查提醒请求: by={auth_info['user']}")
        result = await control.scheduler.tick()
        return {
            "due": result.due,
            "delivered": result.delivered,
            "failed": result.failed,
            "deleted": result.deleted,
            "aborted": result.aborted,
        }

    @app.get("/api/v1/music-month", dependencies=protected)
    async def get_music_month() -> dict[str, Any]:
        window = current_window(now_utc(), control.grace_days)
        try:
            month = await find_month(control.music_store, window)
        except StoreUnavailable as e:
            raise _store_error(e)

        payload: dict[str, Any] = {
            "window": {"start_utc": to_db_time(window.start), "end_utc": to_db_time(window.end)},
            "month": None,
        }
        if month is not None:
            payload["month"] = {
                "month_id": month.month_id,
                "start_time_utc": to_db_time(month.start_time),
                "state": "upcoming" if window.is_upcoming(month.start_time) else "active",
                "days": [{"day": d.day, "prompt": d.prompt} for d in month.days],
            }
        return payload

    @app.get("/api/v1/logs", dependencies=protected)
    async def get_logs(
        lines: int = 200,
        levels: str | None = None,
        q: str | None = None,
        stream: str = "main",
    ) -> dict[str, Any]:
        if not control.log_file:
            raise HTTPException(status_code=404, detail="未配置日志文件")
        lines = max(1, min(lines, 5000))

        target_path = log_path(control.log_file, stream)
        level_set = parse_levels(levels.split(",")) if levels else set()
        return {
            "stream": stream,
            "levels": sorted(level_set),
            "q": q,
            "file": str(target_path),
            "lines": await asyncio.to_thread(read_logs, target_path, lines, level_set, q),
        }

    @app.post("/api/v1/admin/shutdown")
    async def admin_shutdown(
        payload: ShutdownRequest,
        auth_info: dict[str, str] = Depends(require_auth),
    ) -> dict[str, Any]:
        logger.warning(f"收到远程关闭请求: by={auth_info['user']}, reason={payload.reason}")
        control.shutdown_event.set()
        return {"ok": True, "action": "shutdown", "reason": payload.reason}

    return app

from __future__ import annotations

import asyncio

import uvicorn

from birdass.logger import logger

from .app import create_app
from .schemas import RuntimeControl


def build_server(control: RuntimeControl, host: str, port: int) -> uvicorn.Server:
    server = uvicorn.Server(
        uvicorn.Config(create_app(control), host=host, port=port, log_level="warning", access_log=False)
    )
    # 系统信号由 main.py 统一处理
    server.install_signal_handlers = lambda: None
    return server


async def main_loop(control: RuntimeControl, host: str, port: int) -> None:
    """运行 Admin HTTP 服务直到 shutdown_event 被设置"""
    server = build_server(control, host, port)

    async def stop_on_shutdown() -> None:
        await control.shutdown_event.wait()
        logger.info("关闭 Admin HTTP 服务...")
        server.should_exit = True

    stopper = asyncio.create_task(stop_on_shutdown())
    logger.info(f"Admin HTTP 服务启动: http://{host}:{port}")
    try:
        await server.serve()
    finally:
        stopper.cancel()
        await asyncio.gather(stopper, return_exceptions=True)
        logger.info("Admin HTTP 服务已关闭")

import os
from pathlib import Path

import aiosqlite

from birdass.logger import logger

__all__ = ["init_db", "close_db"]

_SQL_DIR = Path(__file__).with_name("sql")


async def init_db(db_path: str) -> aiosqlite.Connection:
    """打开数据库并按 user_version 建表, 返回连接; db_path 为 ":memory:" 时使用内存库"""
    if db_path != ":memory:":
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

    conn = await aiosqlite.connect(db_path)

    async with conn.execute("PRAGMA user_version") as cursor:
        row = await cursor.fetchone()
        user_version = row[0]

    if user_version == 0:
        init_sql = (_SQL_DIR / "db_init_v1.sql").read_text(encoding="utf-8")
        await conn.executescript(init_sql)
        await conn.execute("PRAGMA user_version = 1")
        logger.info(f"数据库已初始化: {db_path}")

    await conn.commit()
    return conn


async def close_db(conn: aiosqlite.Connection | None) -> None:
    if conn is None:
        return
    await conn.close()
    logger.info("数据库连接已关闭")

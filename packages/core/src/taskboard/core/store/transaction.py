"""写事务封装

同一进程内所有请求共享一个 aiosqlite 连接。一次结构性变更（创建、移动、
重排、删除）包含多条 UPDATE，必须作为一个整体提交：
- asyncio.Lock 串行化同一连接上的写事务，避免不同请求的语句交错进同一事务；
- BEGIN IMMEDIATE 在多进程场景下提前拿到写锁；
- 任一步失败整体回滚，position 稠密性不会出现部分提交；
- 读取经 read_snapshot 持有同一把锁，看不到进行中事务的中间状态。
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import aiosqlite
import structlog

from ..exceptions import PersistenceError

log = structlog.get_logger()


@asynccontextmanager
async def write_transaction(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncGenerator[aiosqlite.Connection, None]:
    """在写锁内开启事务，正常退出时提交，异常时回滚

    Args:
        conn: 数据库连接（所有语句需在同一连接上执行以保证事务性）
        lock: 该连接的写锁

    Raises:
        PersistenceError: SQLite 层错误（已回滚）
        其他异常: 原样抛出（已回滚）
    """
    async with lock:
        try:
            await conn.execute("BEGIN IMMEDIATE")
            yield conn
            await conn.commit()
        except aiosqlite.Error as e:
            await conn.rollback()
            log.error("transaction_rolled_back", error=str(e), error_type=type(e).__name__)
            raise PersistenceError(f"Storage error: {e}", original_error=e) from e
        except BaseException:
            await conn.rollback()
            raise


@asynccontextmanager
async def read_snapshot(lock: asyncio.Lock) -> AsyncGenerator[None, None]:
    """在写锁内读取

    共享连接上，写事务尚未提交的平移对同一连接可见。
    读取与写事务互斥，只能看到事务开始前或提交后的状态。
    """
    async with lock:
        yield

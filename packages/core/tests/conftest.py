"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from ulid import ULID

from taskboard.core.models import Task, TaskList

TEST_OWNER = "owner-1"
TEST_DAY = date(2026, 10, 19)


@pytest_asyncio.fixture
async def core_db_path(tmp_path: Path) -> Path:
    """核心层临时数据库路径"""
    return tmp_path / "core_test.db"


@pytest_asyncio.fixture
async def core_db(core_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """核心层已初始化数据库连接"""
    from taskboard.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(core_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest.fixture
def make_task():
    """构造未落库的 Task（position 由 PositionEngine 分配）"""

    def _make(
        title: str,
        owner_id: str = TEST_OWNER,
        day: date = TEST_DAY,
        task_list: TaskList = TaskList.TODO,
    ) -> Task:
        now = datetime.now(UTC)
        return Task(
            task_id=str(ULID()),
            owner_id=owner_id,
            title=title,
            task_list=task_list,
            day=day,
            created_at=now,
            updated_at=now,
        )

    return _make

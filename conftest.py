"""全局 pytest 配置 -- 临时 SQLite 数据库 + 日志环境"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from taskboard.core.store import StoreGroup, create_store_group


@pytest.fixture(autouse=True)
def _quiet_env(monkeypatch):
    """测试中使用 dev 日志格式，避免读取开发机的 TASKBOARD_* 配置"""
    monkeypatch.setenv("TASKBOARD_LOG_FORMAT", "dev")
    monkeypatch.delenv("TASKBOARD_TIMEZONE", raising=False)


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供已初始化的 StoreGroup"""
    group = await create_store_group(str(tmp_db_path))
    yield group
    await group.conn.close()

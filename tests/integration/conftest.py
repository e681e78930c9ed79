"""集成测试共享 fixture -- 客户端经 ASGITransport 直连 Gateway"""

from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport
from taskboard.client.api import TaskBoardClient
from taskboard.core.store import create_store_group

BOARD_DAY = date(2026, 10, 19)


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path, monkeypatch):
    """集成测试用 FastAPI app"""
    db_path = tmp_path / "sqlite" / "integration.db"
    monkeypatch.setenv("TASKBOARD_DB_PATH", str(db_path))

    from taskboard.gateway.main import create_app

    app = create_app()
    store_group = await create_store_group(str(db_path))
    app.state.store_group = store_group

    yield app

    await store_group.conn.close()


@pytest_asyncio.fixture
async def api(integration_app) -> AsyncGenerator[TaskBoardClient, None]:
    """owner-int 的 API 客户端"""
    async with TaskBoardClient(
        "http://test",
        "owner-int",
        day=BOARD_DAY,
        transport=ASGITransport(app=integration_app),
    ) as client:
        yield client


@pytest_asyncio.fixture
async def other_api(integration_app) -> AsyncGenerator[TaskBoardClient, None]:
    """另一个调用方，用于验证数据隔离"""
    async with TaskBoardClient(
        "http://test",
        "owner-other",
        day=BOARD_DAY,
        transport=ASGITransport(app=integration_app),
    ) as client:
        yield client

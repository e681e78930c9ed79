"""apps/gateway 测试配置 -- httpx AsyncClient + 临时 SQLite"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskboard.core.store import create_store_group

OWNER = "owner-gw"
DAY = "2026-10-19"


@pytest_asyncio.fixture
async def test_app(tmp_path: Path, monkeypatch):
    """创建测试用 FastAPI app 实例（手动初始化，绕过 lifespan）"""
    monkeypatch.setenv("TASKBOARD_DB_PATH", str(tmp_path / "sqlite" / "test.db"))

    from taskboard.gateway.main import create_app

    app = create_app()
    store_group = await create_store_group(str(tmp_path / "sqlite" / "test.db"))
    app.state.store_group = store_group

    yield app

    await store_group.conn.close()


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """带调用方身份与逻辑日期请求头的 AsyncClient"""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
        headers={"X-Anonymous-User-Id": OWNER, "X-Client-Day": DAY},
    ) as ac:
        yield ac

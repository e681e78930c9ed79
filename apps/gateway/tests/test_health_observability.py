"""健康检查 + 可观测性测试

测试内容：
1. /health 永远 200，/ready 检查 SQLite
2. 每个响应带 X-Request-ID（ULID），且互不相同；客户端传入的 id 原样沿用
3. 日志格式 / 级别环境变量解析
4. lifespan 按 TASKBOARD_DB_PATH 初始化并关闭 Store
"""

import logging
from pathlib import Path

from httpx import AsyncClient
from taskboard.gateway.middleware.logging_config import (
    resolve_log_format,
    resolve_log_level,
    setup_logging,
)


class TestHealth:
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_ready(self, client: AsyncClient):
        resp = await client.get("/ready")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ready"
        assert body["checks"]["sqlite"] == "ok"
        assert body["checks"]["disk_space_mb"] >= 0

    async def test_ready_reports_closed_db(self, client: AsyncClient, test_app):
        await test_app.state.store_group.conn.close()
        resp = await client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["checks"]["sqlite"].startswith("error")


class TestObservability:
    async def test_request_id_in_response_header(self, client: AsyncClient):
        resp = await client.get("/api/tasks/today")
        assert "x-request-id" in resp.headers
        # ULID 格式：26 字符
        assert len(resp.headers["x-request-id"]) == 26

    async def test_request_ids_are_unique(self, client: AsyncClient):
        ids = set()
        for _ in range(3):
            resp = await client.get("/health")
            ids.add(resp.headers["x-request-id"])
        assert len(ids) == 3

    async def test_error_responses_carry_request_id(self, client: AsyncClient):
        resp = await client.post("/api/tasks", json={"title": ""})
        assert resp.status_code == 400
        assert "x-request-id" in resp.headers

    async def test_incoming_request_id_is_kept(self, client: AsyncClient):
        resp = await client.get("/health", headers={"X-Request-ID": "retry-42"})
        assert resp.headers["x-request-id"] == "retry-42"

    async def test_oversized_request_id_replaced(self, client: AsyncClient):
        resp = await client.get("/health", headers={"X-Request-ID": "x" * 200})
        assert len(resp.headers["x-request-id"]) == 26


class TestLoggingConfig:
    def test_format_defaults_to_dev(self, monkeypatch):
        monkeypatch.setenv("TASKBOARD_LOG_FORMAT", "yaml")
        assert resolve_log_format() == "dev"
        monkeypatch.setenv("TASKBOARD_LOG_FORMAT", " JSON ")
        assert resolve_log_format() == "json"

    def test_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("TASKBOARD_LOG_LEVEL", "chatty")
        assert resolve_log_level() == logging.INFO
        monkeypatch.setenv("TASKBOARD_LOG_LEVEL", "debug")
        assert resolve_log_level() == logging.DEBUG

    def test_setup_quiets_sql_statement_logs(self, monkeypatch):
        monkeypatch.setenv("TASKBOARD_LOG_LEVEL", "DEBUG")
        setup_logging()
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("aiosqlite").level == logging.INFO
        assert logging.getLogger("uvicorn.access").level == logging.WARNING


class TestLifespan:
    async def test_lifespan_opens_and_closes_store(self, tmp_path: Path, monkeypatch):
        db_path = tmp_path / "life" / "board.db"
        monkeypatch.setenv("TASKBOARD_DB_PATH", str(db_path))

        from taskboard.gateway.main import create_app

        app = create_app()
        async with app.router.lifespan_context(app):
            store_group = app.state.store_group
            cursor = await store_group.conn.execute("SELECT COUNT(*) FROM tasks")
            assert (await cursor.fetchone())[0] == 0

        assert db_path.exists()

"""Client 包测试 fixtures"""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from taskboard.client.api import TaskBoardClient
from taskboard.client.store import OptimisticTaskStore
from taskboard.core.models import Priority, Task, TaskList

CLIENT_OWNER = "owner-c"
CLIENT_DAY = date(2026, 10, 19)


def _make_task(
    task_id: str,
    task_list: TaskList = TaskList.TODO,
    position: int = 0,
    priority: Priority = Priority.MEDIUM,
    accumulated_seconds: int = 0,
    active: bool = False,
) -> Task:
    """构造测试用 Task"""
    now = datetime.now(UTC)
    return Task(
        task_id=task_id,
        owner_id=CLIENT_OWNER,
        title=f"Task {task_id}",
        task_list=task_list,
        position=position,
        day=CLIENT_DAY,
        priority=priority,
        accumulated_seconds=accumulated_seconds,
        active_since=now if active else None,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def board() -> list[Task]:
    """todo: A B C / pending: P (low) Q (high) / ongoing: D / completed: X"""
    return [
        _make_task("A", TaskList.TODO, 0),
        _make_task("B", TaskList.TODO, 1),
        _make_task("C", TaskList.TODO, 2),
        _make_task("P", TaskList.PENDING, 0, priority=Priority.LOW),
        _make_task("Q", TaskList.PENDING, 1, priority=Priority.HIGH),
        _make_task("D", TaskList.ONGOING, 0),
        _make_task("X", TaskList.COMPLETED, 0, accumulated_seconds=600),
    ]


@pytest.fixture
def mock_api() -> AsyncMock:
    """Mock TaskBoardClient（所有 API 方法默认成功）"""
    api = AsyncMock(spec=TaskBoardClient)
    api.owner_id = CLIENT_OWNER
    api.day = CLIENT_DAY
    return api


@pytest_asyncio.fixture
async def store(mock_api: AsyncMock, board: list[Task]) -> OptimisticTaskStore:
    """已加载 board 的 OptimisticTaskStore"""
    mock_api.fetch_today.return_value = board
    s = OptimisticTaskStore(mock_api)
    assert await s.load() is True
    return s


@pytest.fixture
def make_task():
    """Task 构造工厂"""
    return _make_task

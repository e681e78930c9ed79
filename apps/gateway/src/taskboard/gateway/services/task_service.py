"""TaskService -- 看板任务业务逻辑

- 创建：任务落在调用方当天 todo 列末尾
- 查询：当天全部任务，按 (列顺序, position) 排序
- 编辑：只改 title / description / priority / estimated_target
- 移动 / 重排 / 删除：全部经由 PositionEngine，单事务提交
- 计时：原子累加 accumulated_seconds，并设置/清除 active_since 标记
"""

from datetime import UTC, date, datetime

import structlog
from taskboard.core.exceptions import TaskNotFoundError, TaskValidationError
from taskboard.core.models import Partition, Priority, Task, TaskList
from taskboard.core.position import PositionEngine
from taskboard.core.store import StoreGroup
from ulid import ULID

log = structlog.get_logger()


class TaskService:
    """任务业务服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group
        self._engine = PositionEngine(
            store_group.conn,
            store_group.task_store,
            store_group.write_lock,
        )

    async def create_task(
        self,
        owner_id: str,
        day: date,
        title: str,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        estimated_target: float = 0,
    ) -> Task:
        """在 todo 列末尾创建任务

        Raises:
            TaskValidationError: 标题/描述非法
        """
        now = datetime.now(UTC)
        try:
            task = Task(
                task_id=str(ULID()),
                owner_id=owner_id,
                title=title,
                description=description,
                task_list=TaskList.TODO,
                day=day,
                priority=priority,
                estimated_target=estimated_target,
                created_at=now,
                updated_at=now,
            )
        except ValueError as e:
            raise TaskValidationError(str(e)) from e

        created = await self._engine.create_task(task)
        log.info("task_created", task_id=created.task_id, position=created.position)
        return created

    async def list_today(self, owner_id: str, day: date) -> list[Task]:
        """查询调用方当天的全部任务（只读已提交状态）"""
        async with self._stores.snapshot():
            return await self._stores.task_store.list_tasks_for_day(owner_id, day)

    async def get_task(self, owner_id: str, task_id: str) -> Task:
        async with self._stores.snapshot():
            task = await self._stores.task_store.get_task(owner_id, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def update_task(self, owner_id: str, task_id: str, changes: dict) -> Task:
        """更新任务详情，不影响 list / position

        Args:
            changes: 已校验的字段子集（title / description / priority / estimated_target）
        """
        async with self._stores.transaction():
            if await self._stores.task_store.get_task(owner_id, task_id) is None:
                raise TaskNotFoundError(task_id)
            if changes:
                await self._stores.task_store.update_fields(
                    owner_id, task_id, changes, datetime.now(UTC)
                )

        log.info("task_updated", task_id=task_id, fields=sorted(changes))
        return await self.get_task(owner_id, task_id)

    async def move_task(
        self,
        owner_id: str,
        task_id: str,
        task_list: TaskList,
        position: int,
    ) -> Task:
        """拖拽落点：同列重排或跨列移动"""
        return await self._engine.move(owner_id, task_id, task_list, position)

    async def reorder(
        self,
        owner_id: str,
        day: date,
        task_list: TaskList,
        ordered_ids: list[str],
    ) -> int:
        """批量重排某列"""
        if not ordered_ids:
            raise TaskValidationError("orderedIds must be a non-empty array of task IDs")
        partition = Partition(owner_id=owner_id, day=day, task_list=task_list)
        return await self._engine.bulk_reorder(partition, ordered_ids)

    async def record_time(
        self,
        owner_id: str,
        task_id: str,
        additional_seconds: float,
        active: bool,
    ) -> Task:
        """计时刷新：原子累加秒数，active=True 时记录运行标记，否则清除

        Raises:
            TaskValidationError: 秒数为负
            TaskNotFoundError: 任务不存在
        """
        if additional_seconds < 0:
            raise TaskValidationError("additionalSeconds is required and must be >= 0")

        seconds = round(additional_seconds)
        now = datetime.now(UTC)
        async with self._stores.transaction():
            changed = await self._stores.task_store.add_time(
                owner_id, task_id, seconds, now if active else None, now
            )
            if changed == 0:
                raise TaskNotFoundError(task_id)

        log.info("time_flushed", task_id=task_id, seconds=seconds, active=active)
        return await self.get_task(owner_id, task_id)

    async def delete_task(self, owner_id: str, task_id: str) -> Task:
        """删除任务并修复所在分区的 position"""
        return await self._engine.delete_preserving_density(owner_id, task_id)

    async def delete_completed(self, owner_id: str, day: date) -> int:
        """清空调用方当天的 completed 列"""
        partition = Partition(owner_id=owner_id, day=day, task_list=TaskList.COMPLETED)
        return await self._engine.delete_partition(partition)

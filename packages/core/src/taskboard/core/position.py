"""Position Engine -- Ordered Partition 稠密性维护

每次结构性变更（创建、列内移动、跨列移动、批量重排、删除）后，
保证每个 (owner_id, day, task_list) 分区内 position 恰为 0..N-1。

所有操作在单个写事务内完成：
1. 事务内重新读取被移动的任务（调用方读到的 position 可能已过期）
2. 执行最少的平移写入
3. 写入被移动任务的新 list / position
任一步失败整体回滚，不会提交破坏稠密性的中间状态。
"""

import asyncio
from datetime import UTC, datetime

import aiosqlite
import structlog

from .exceptions import TaskNotFoundError, TaskValidationError
from .models.enums import TaskList
from .models.task import Partition, Task
from .store.task_store import SqliteTaskStore
from .store.transaction import read_snapshot, write_transaction

log = structlog.get_logger()


def clamp(value: int, low: int, high: int) -> int:
    """将 value 限制在 [low, high]"""
    return max(low, min(value, high))


class PositionEngine:
    """Ordered Partition 的 position 维护引擎"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        task_store: SqliteTaskStore,
        write_lock: asyncio.Lock | None = None,
    ) -> None:
        self._conn = conn
        self._tasks = task_store
        self._write_lock = write_lock or asyncio.Lock()

    def _transaction(self):
        return write_transaction(self._conn, self._write_lock)

    async def insert_at_end(self, partition: Partition) -> int:
        """新任务在分区末尾的 position（= 当前任务数）"""
        return await self._tasks.count_partition(partition)

    async def create_task(self, task: Task) -> Task:
        """在分区末尾插入任务，position 由引擎分配"""
        async with self._transaction():
            position = await self.insert_at_end(task.partition)
            placed = task.model_copy(update={"position": position})
            await self._tasks.insert_task(placed)

        log.info(
            "task_inserted",
            task_id=placed.task_id,
            task_list=placed.task_list.value,
            position=position,
        )
        return placed

    async def move(
        self,
        owner_id: str,
        task_id: str,
        dest_list: TaskList,
        to_pos: int,
    ) -> Task:
        """移动任务到 dest_list 的 to_pos（同列或跨列）

        Raises:
            TaskValidationError: to_pos 为负
            TaskNotFoundError: 任务不存在
        """
        if to_pos < 0:
            raise TaskValidationError("Position is required and must be >= 0")

        async with self._transaction():
            task = await self._load(owner_id, task_id)
            if task.task_list == dest_list:
                await self._move_within(task, to_pos)
            else:
                await self._move_across(task, dest_list, to_pos)
            moved = await self._load(owner_id, task_id)

        return moved

    async def move_within_list(self, task: Task, to_pos: int) -> Task:
        """列内移动：from == to 时不产生任何写入"""
        return await self.move(task.owner_id, task.task_id, task.task_list, to_pos)

    async def move_across_lists(self, task: Task, dest_list: TaskList, to_pos: int) -> Task:
        """跨列移动：关闭源列空位，打开目标列槽位，再放置任务"""
        if dest_list == task.task_list:
            raise TaskValidationError("Destination list equals source list")
        return await self.move(task.owner_id, task.task_id, dest_list, to_pos)

    async def bulk_reorder(self, partition: Partition, ordered_ids: list[str]) -> int:
        """按给定顺序重写分区内 position（幂等）

        - 不属于该分区的 id 被忽略（先过滤，再编号，保证不留空位）
        - 重复 id 只取第一次出现
        - 分区内未列出的任务保持原相对顺序，排在列出的任务之后

        Returns:
            被列出并重新编号的任务数
        """
        now = datetime.now(UTC)
        async with self._transaction():
            members = await self._tasks.list_partition(partition)
            member_ids = {t.task_id for t in members}

            listed: list[str] = []
            for task_id in ordered_ids:
                if task_id in member_ids and task_id not in listed:
                    listed.append(task_id)

            rest = [t.task_id for t in members if t.task_id not in listed]
            for index, task_id in enumerate(listed + rest):
                await self._tasks.set_position(partition, task_id, index, now)

        log.info(
            "partition_reordered",
            task_list=partition.task_list.value,
            listed=len(listed),
            ignored=len(ordered_ids) - len(listed),
        )
        return len(listed)

    async def delete_preserving_density(self, owner_id: str, task_id: str) -> Task:
        """删除任务并把同分区后面的任务前移一位"""
        async with self._transaction():
            task = await self._load(owner_id, task_id)
            await self._tasks.delete_task(owner_id, task_id)
            await self._tasks.shift_positions(task.partition, -1, task.position + 1)

        log.info(
            "task_deleted",
            task_id=task_id,
            task_list=task.task_list.value,
            position=task.position,
        )
        return task

    async def delete_partition(self, partition: Partition) -> int:
        """删除整个分区（其他分区不受影响）"""
        async with self._transaction():
            deleted = await self._tasks.delete_partition(partition)

        log.info("partition_cleared", task_list=partition.task_list.value, deleted=deleted)
        return deleted

    async def repair_partition(self, partition: Partition) -> int:
        """补偿性修复：按 (position, created_at, task_id) 重新编号为 0..N-1

        Returns:
            position 被改写的任务数
        """
        now = datetime.now(UTC)
        changed = 0
        async with self._transaction():
            members = await self._tasks.list_partition(partition)
            for index, task in enumerate(members):
                if task.position != index:
                    await self._tasks.set_position(partition, task.task_id, index, now)
                    changed += 1

        if changed:
            log.warning(
                "partition_repaired",
                owner_id=partition.owner_id,
                day=partition.day.isoformat(),
                task_list=partition.task_list.value,
                changed=changed,
            )
        return changed

    async def list_partition(self, partition: Partition) -> list[Task]:
        """已提交的分区成员（等待进行中的写事务结束后再读）"""
        async with read_snapshot(self._write_lock):
            return await self._tasks.list_partition(partition)

    async def check_density(self, partition: Partition) -> bool:
        """分区内 position 是否恰为 0..N-1"""
        members = await self.list_partition(partition)
        return sorted(t.position for t in members) == list(range(len(members)))

    async def _load(self, owner_id: str, task_id: str) -> Task:
        task = await self._tasks.get_task(owner_id, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def _move_within(self, task: Task, to_pos: int) -> None:
        partition = task.partition
        count = await self._tasks.count_partition(partition)
        from_pos = task.position
        to_pos = clamp(to_pos, 0, count - 1)

        if from_pos == to_pos:
            log.debug("move_noop", task_id=task.task_id, position=from_pos)
            return

        if from_pos < to_pos:
            # 向后移动：(from, to] 前移一位
            await self._tasks.shift_positions(partition, -1, from_pos + 1, to_pos)
        else:
            # 向前移动：[to, from) 后移一位
            await self._tasks.shift_positions(partition, 1, to_pos, from_pos - 1)

        await self._tasks.set_placement(
            task.owner_id, task.task_id, task.task_list.value, to_pos, datetime.now(UTC)
        )
        log.info(
            "task_moved",
            task_id=task.task_id,
            task_list=task.task_list.value,
            from_pos=from_pos,
            to_pos=to_pos,
        )

    async def _move_across(self, task: Task, dest_list: TaskList, to_pos: int) -> None:
        source = task.partition
        dest = source.with_list(dest_list)
        dest_count = await self._tasks.count_partition(dest)
        to_pos = clamp(to_pos, 0, dest_count)

        # 源列：关闭空位
        await self._tasks.shift_positions(source, -1, task.position + 1)
        # 目标列：打开槽位
        await self._tasks.shift_positions(dest, 1, to_pos)

        await self._tasks.set_placement(
            task.owner_id, task.task_id, dest_list.value, to_pos, datetime.now(UTC)
        )
        log.info(
            "task_moved",
            task_id=task.task_id,
            from_list=source.task_list.value,
            to_list=dest_list.value,
            from_pos=task.position,
            to_pos=to_pos,
        )

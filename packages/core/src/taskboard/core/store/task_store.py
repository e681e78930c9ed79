"""TaskStore SQLite 实现

仅提供单条 SQL 级别的数据库操作，不做 commit。
多条写入的原子性由调用方（transaction.write_transaction）负责。
"""

from datetime import date, datetime

import aiosqlite

from ..models.enums import BOARD_ORDER
from ..models.task import Partition, Task

_COLUMNS = (
    "task_id, owner_id, title, description, task_list, position, day, priority, "
    "estimated_target, accumulated_seconds, active_since, created_at, updated_at"
)

# 按看板列顺序排序（todo, pending, ongoing, completed）
_BOARD_ORDER_SQL = "CASE task_list " + " ".join(
    f"WHEN '{name.value}' THEN {rank}" for rank, name in enumerate(BOARD_ORDER)
) + " ELSE 99 END"

# PUT /tasks/{id} 允许更新的列
EDITABLE_COLUMNS = frozenset({"title", "description", "priority", "estimated_target"})


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_task(self, task: Task) -> None:
        """写入任务记录"""
        await self._conn.execute(
            f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                task.task_id,
                task.owner_id,
                task.title,
                task.description,
                task.task_list.value,
                task.position,
                task.day.isoformat(),
                task.priority.value,
                task.estimated_target,
                task.accumulated_seconds,
                task.active_since.isoformat() if task.active_since else None,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ),
        )

    async def get_task(self, owner_id: str, task_id: str) -> Task | None:
        """在 owner 作用域内按 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE task_id = ? AND owner_id = ?",
            (task_id, owner_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks_for_day(self, owner_id: str, day: date) -> list[Task]:
        """查询某天的全部任务，按 (列顺序, position) 排序"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE owner_id = ? AND day = ?
            ORDER BY {_BOARD_ORDER_SQL}, position, created_at
            """,
            (owner_id, day.isoformat()),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_partition(self, partition: Partition) -> list[Task]:
        """查询分区内任务，按 position 排序"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE owner_id = ? AND day = ? AND task_list = ?
            ORDER BY position, created_at, task_id
            """,
            self._partition_params(partition),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def count_partition(self, partition: Partition) -> int:
        """分区内任务数"""
        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM tasks WHERE owner_id = ? AND day = ? AND task_list = ?",
            self._partition_params(partition),
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def list_partitions(self) -> list[Partition]:
        """列出库中存在的所有分区"""
        cursor = await self._conn.execute(
            "SELECT DISTINCT owner_id, day, task_list FROM tasks ORDER BY owner_id, day"
        )
        rows = await cursor.fetchall()
        return [
            Partition(owner_id=row[0], day=date.fromisoformat(row[1]), task_list=row[2])
            for row in rows
        ]

    async def shift_positions(
        self,
        partition: Partition,
        delta: int,
        min_pos: int,
        max_pos: int | None = None,
    ) -> int:
        """将分区内 position 落在 [min_pos, max_pos] 的任务整体平移 delta

        max_pos 为 None 表示不设上界。

        Returns:
            受影响的行数
        """
        sql = (
            "UPDATE tasks SET position = position + ? "
            "WHERE owner_id = ? AND day = ? AND task_list = ? AND position >= ?"
        )
        params: list = [delta, *self._partition_params(partition), min_pos]
        if max_pos is not None:
            sql += " AND position <= ?"
            params.append(max_pos)
        cursor = await self._conn.execute(sql, params)
        return cursor.rowcount

    async def set_placement(
        self,
        owner_id: str,
        task_id: str,
        task_list: str,
        position: int,
        updated_at: datetime,
    ) -> int:
        """设置任务所在列和 position"""
        cursor = await self._conn.execute(
            """
            UPDATE tasks SET task_list = ?, position = ?, updated_at = ?
            WHERE task_id = ? AND owner_id = ?
            """,
            (task_list, position, updated_at.isoformat(), task_id, owner_id),
        )
        return cursor.rowcount

    async def set_position(
        self,
        partition: Partition,
        task_id: str,
        position: int,
        updated_at: datetime,
    ) -> int:
        """仅当任务属于该分区时设置 position，返回受影响行数（0 表示不属于该分区）"""
        cursor = await self._conn.execute(
            """
            UPDATE tasks SET position = ?, updated_at = ?
            WHERE task_id = ? AND owner_id = ? AND day = ? AND task_list = ?
            """,
            (position, updated_at.isoformat(), task_id, *self._partition_params(partition)),
        )
        return cursor.rowcount

    async def update_fields(
        self,
        owner_id: str,
        task_id: str,
        fields: dict,
        updated_at: datetime,
    ) -> int:
        """更新任务的可编辑字段（不影响 list / position）"""
        unknown = set(fields) - EDITABLE_COLUMNS
        if unknown:
            raise ValueError(f"Non-editable columns: {sorted(unknown)}")

        assignments = ", ".join(f"{column} = ?" for column in fields)
        params = [
            value.value if hasattr(value, "value") else value for value in fields.values()
        ]
        cursor = await self._conn.execute(
            f"UPDATE tasks SET {assignments}, updated_at = ? "
            "WHERE task_id = ? AND owner_id = ?",
            (*params, updated_at.isoformat(), task_id, owner_id),
        )
        return cursor.rowcount

    async def add_time(
        self,
        owner_id: str,
        task_id: str,
        seconds: int,
        active_since: datetime | None,
        updated_at: datetime,
    ) -> int:
        """原子累加 accumulated_seconds，并设置/清除 active_since 标记

        使用 SET x = x + ? 而不是读-改-写，多次增量可交换、不会丢失。
        """
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET accumulated_seconds = accumulated_seconds + ?,
                active_since = ?,
                updated_at = ?
            WHERE task_id = ? AND owner_id = ?
            """,
            (
                seconds,
                active_since.isoformat() if active_since else None,
                updated_at.isoformat(),
                task_id,
                owner_id,
            ),
        )
        return cursor.rowcount

    async def delete_task(self, owner_id: str, task_id: str) -> int:
        """删除单个任务"""
        cursor = await self._conn.execute(
            "DELETE FROM tasks WHERE task_id = ? AND owner_id = ?",
            (task_id, owner_id),
        )
        return cursor.rowcount

    async def delete_partition(self, partition: Partition) -> int:
        """删除整个分区"""
        cursor = await self._conn.execute(
            "DELETE FROM tasks WHERE owner_id = ? AND day = ? AND task_list = ?",
            self._partition_params(partition),
        )
        return cursor.rowcount

    @staticmethod
    def _partition_params(partition: Partition) -> tuple[str, str, str]:
        return (partition.owner_id, partition.day.isoformat(), partition.task_list.value)

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            owner_id=row[1],
            title=row[2],
            description=row[3],
            task_list=row[4],
            position=row[5],
            day=date.fromisoformat(row[6]),
            priority=row[7],
            estimated_target=row[8],
            accumulated_seconds=row[9],
            active_since=datetime.fromisoformat(row[10]) if row[10] else None,
            created_at=datetime.fromisoformat(row[11]),
            updated_at=datetime.fromisoformat(row[12]),
        )

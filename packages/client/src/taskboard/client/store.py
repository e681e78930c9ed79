"""OptimisticTaskStore -- 客户端本地看板镜像

每个变更都遵循同一流程：
1. 变更前取快照（每次变更独立取，不是全局撤销栈）
2. 立即修改本地状态（界面即时反馈）
3. 等待服务端确认
4. 成功：保留本地状态（必要时用服务端返回值替换）
   失败：恢复第 1 步的快照，记录一条临时提示，不自动重试

本地 position 重排与服务端 PositionEngine 使用同一套规则（apply_move / apply_reorder），
因此确认成功后本地状态与服务端一致，无需重新拉取。
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime
from typing import Any

import structlog
from taskboard.core.models import PRIORITY_RANK, Priority, Task, TaskList, board_rank
from taskboard.core.models.task import normalize_description, normalize_title
from ulid import ULID

from .api import TaskBoardClient
from .exceptions import TaskBoardClientError

log = structlog.get_logger()

TEMP_ID_PREFIX = "temp-"


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def apply_move(tasks: list[Task], task_id: str, dest_list: TaskList, to_pos: int) -> list[Task]:
    """本地模拟 PositionEngine.move，返回新的任务列表（不修改入参）

    目标位置按服务端规则钳制：同列 [0, N-1]，跨列 [0, N_dest]。
    """
    moving = next((t for t in tasks if t.task_id == task_id), None)
    if moving is None:
        return list(tasks)

    source = moving.partition
    from_pos = moving.position
    result: list[Task] = []

    if dest_list == moving.task_list:
        count = sum(1 for t in tasks if t.partition == source)
        to_pos = _clamp(to_pos, 0, count - 1)
        if to_pos == from_pos:
            return list(tasks)
        for t in tasks:
            if t.task_id == task_id:
                result.append(t.model_copy(update={"position": to_pos}))
            elif t.partition == source and from_pos < t.position <= to_pos:
                result.append(t.model_copy(update={"position": t.position - 1}))
            elif t.partition == source and to_pos <= t.position < from_pos:
                result.append(t.model_copy(update={"position": t.position + 1}))
            else:
                result.append(t)
        return result

    dest = source.with_list(dest_list)
    dest_count = sum(1 for t in tasks if t.partition == dest)
    to_pos = _clamp(to_pos, 0, dest_count)
    for t in tasks:
        if t.task_id == task_id:
            result.append(t.model_copy(update={"task_list": dest_list, "position": to_pos}))
        elif t.partition == source and t.position > from_pos:
            result.append(t.model_copy(update={"position": t.position - 1}))
        elif t.partition == dest and t.position >= to_pos:
            result.append(t.model_copy(update={"position": t.position + 1}))
        else:
            result.append(t)
    return result


def apply_reorder(tasks: list[Task], task_list: TaskList, ordered_ids: list[str]) -> list[Task]:
    """本地模拟 PositionEngine.bulk_reorder"""
    members = sorted((t for t in tasks if t.task_list == task_list), key=lambda t: t.position)
    member_ids = {t.task_id for t in members}

    listed: list[str] = []
    for task_id in ordered_ids:
        if task_id in member_ids and task_id not in listed:
            listed.append(task_id)
    rest = [t.task_id for t in members if t.task_id not in listed]
    new_positions = {task_id: index for index, task_id in enumerate(listed + rest)}

    return [
        t.model_copy(update={"position": new_positions[t.task_id]})
        if t.task_id in new_positions
        else t
        for t in tasks
    ]


def apply_delete(tasks: list[Task], task_id: str) -> list[Task]:
    """移除任务并把同分区后面的任务前移一位"""
    removed = next((t for t in tasks if t.task_id == task_id), None)
    if removed is None:
        return list(tasks)
    result = []
    for t in tasks:
        if t.task_id == task_id:
            continue
        if t.partition == removed.partition and t.position > removed.position:
            t = t.model_copy(update={"position": t.position - 1})
        result.append(t)
    return result


class OptimisticTaskStore:
    """当天任务的客户端镜像，所有变更先本地生效再等待服务端确认"""

    def __init__(self, api: TaskBoardClient) -> None:
        self._api = api
        self._tasks: list[Task] = []
        # 拖拽预览：task_id -> 临时所在列（不持久化，不改 position）
        self._tentative: dict[str, TaskList] = {}
        self.last_notice: str | None = None

    # ============================================================
    # 读取
    # ============================================================

    @property
    def tasks(self) -> list[Task]:
        """按看板顺序 (列, position) 排列的任务"""
        return sorted(self._tasks, key=lambda t: (board_rank(t.task_list), t.position))

    def get(self, task_id: str) -> Task | None:
        return next((t for t in self._tasks if t.task_id == task_id), None)

    def list_of(self, task_id: str) -> TaskList | None:
        """任务当前显示所在列（含拖拽预览）"""
        if task_id in self._tentative:
            return self._tentative[task_id]
        task = self.get(task_id)
        return task.task_list if task else None

    def column(self, task_list: TaskList) -> list[Task]:
        """某一列的显示顺序

        pending 列按优先级（high -> low）展示，position 仅作次序键；
        其他列按 position 展示。
        """
        members = [t for t in self._tasks if self.list_of(t.task_id) == task_list]
        if task_list == TaskList.PENDING:
            return sorted(members, key=lambda t: (PRIORITY_RANK[t.priority], t.position))
        return sorted(members, key=lambda t: t.position)

    def snapshot(self) -> list[Task]:
        """当前本地状态的深拷贝"""
        return [t.model_copy(deep=True) for t in self._tasks]

    # ============================================================
    # 拖拽预览
    # ============================================================

    def set_tentative_list(self, task_id: str, task_list: TaskList | None) -> None:
        """设置拖拽中的临时列归属；None 或等于实际列时清除"""
        task = self.get(task_id)
        if task is None or task_list is None or task_list == task.task_list:
            self._tentative.pop(task_id, None)
            return
        self._tentative[task_id] = task_list

    def clear_tentative(self, task_id: str | None = None) -> None:
        if task_id is None:
            self._tentative.clear()
        else:
            self._tentative.pop(task_id, None)

    # ============================================================
    # 变更
    # ============================================================

    async def load(self) -> bool:
        """拉取当天看板，整体替换本地状态"""
        try:
            tasks = await self._api.fetch_today()
        except TaskBoardClientError as e:
            self._notify("load tasks", e.message)
            return False
        self._tasks = tasks
        self._tentative.clear()
        self.last_notice = None
        return True

    async def create_task(
        self,
        title: str,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        estimated_target: float = 0,
    ) -> bool:
        """在 todo 列末尾插入临时任务，成功后替换为服务端任务"""
        try:
            title = normalize_title(title)
            description = normalize_description(description)
        except ValueError as e:
            self._notify("create task", str(e))
            return False

        now = datetime.now(UTC)
        provisional = Task(
            task_id=f"{TEMP_ID_PREFIX}{ULID()}",
            owner_id=self._api.owner_id,
            title=title,
            description=description,
            task_list=TaskList.TODO,
            position=sum(1 for t in self._tasks if t.task_list == TaskList.TODO),
            day=self._api.day or date.today(),
            priority=priority,
            estimated_target=estimated_target,
            created_at=now,
            updated_at=now,
        )

        async def call() -> None:
            created = await self._api.create_task(
                title,
                description=description,
                priority=priority,
                estimated_target=estimated_target,
            )
            self._replace(provisional.task_id, created)

        return await self._mutate(
            "create task",
            lambda tasks: [*tasks, provisional],
            call,
        )

    async def update_task(self, task_id: str, **changes: Any) -> bool:
        """更新标题 / 描述 / 优先级 / 预估耗时"""
        if self.get(task_id) is None:
            self._notify("update task", f"Task with id {task_id} does not exist")
            return False
        try:
            if "title" in changes:
                changes["title"] = normalize_title(changes["title"])
            if "description" in changes:
                changes["description"] = normalize_description(changes["description"])
        except ValueError as e:
            self._notify("update task", str(e))
            return False

        async def call() -> None:
            updated = await self._api.update_task(task_id, **changes)
            self._replace(task_id, updated)

        return await self._mutate(
            "update task",
            lambda tasks: [
                t.model_copy(update=changes) if t.task_id == task_id else t for t in tasks
            ],
            call,
        )

    async def move_task(self, task_id: str, dest_list: TaskList, position: int) -> bool:
        """移动到 dest_list 的 position，本地按服务端规则重排"""
        if self.get(task_id) is None:
            self._notify("move task", f"Task with id {task_id} does not exist")
            return False
        if position < 0:
            self._notify("move task", "Position is required and must be >= 0")
            return False

        self._tentative.pop(task_id, None)
        return await self._mutate(
            "move task",
            lambda tasks: apply_move(tasks, task_id, dest_list, position),
            lambda: self._api.move_task(task_id, dest_list, position),
        )

    async def move_to_end(self, task_id: str, dest_list: TaskList) -> bool:
        """移动到 dest_list 末尾"""
        task = self.get(task_id)
        if task is None:
            self._notify("move task", f"Task with id {task_id} does not exist")
            return False
        end = sum(1 for t in self._tasks if t.partition == task.partition.with_list(dest_list))
        if dest_list == task.task_list:
            end -= 1
        return await self.move_task(task_id, dest_list, end)

    async def complete_task(self, task_id: str, final_seconds: int | None = None) -> bool:
        """移到 completed 列末尾；final_seconds 为计时器 stop() 返回的最终累计值"""
        task = self.get(task_id)
        if task is None:
            self._notify("complete task", f"Task with id {task_id} does not exist")
            return False
        end = sum(
            1 for t in self._tasks if t.partition == task.partition.with_list(TaskList.COMPLETED)
        )
        if task.task_list == TaskList.COMPLETED:
            end -= 1

        def apply(tasks: list[Task]) -> list[Task]:
            moved = apply_move(tasks, task_id, TaskList.COMPLETED, end)
            if final_seconds is None:
                return moved
            return [
                t.model_copy(update={"accumulated_seconds": final_seconds, "active_since": None})
                if t.task_id == task_id
                else t
                for t in moved
            ]

        self._tentative.pop(task_id, None)
        return await self._mutate(
            "complete task",
            apply,
            lambda: self._api.move_task(task_id, TaskList.COMPLETED, end),
        )

    async def reorder(self, task_list: TaskList, ordered_ids: list[str]) -> bool:
        if not ordered_ids:
            self._notify("reorder tasks", "Ordered ids must not be empty")
            return False
        return await self._mutate(
            "reorder tasks",
            lambda tasks: apply_reorder(tasks, task_list, ordered_ids),
            lambda: self._api.reorder(task_list, ordered_ids),
        )

    async def delete_task(self, task_id: str) -> bool:
        if self.get(task_id) is None:
            self._notify("delete task", f"Task with id {task_id} does not exist")
            return False
        self._tentative.pop(task_id, None)
        return await self._mutate(
            "delete task",
            lambda tasks: apply_delete(tasks, task_id),
            lambda: self._api.delete_task(task_id),
        )

    async def clear_completed(self) -> bool:
        """删除 completed 列全部任务"""
        return await self._mutate(
            "clear completed tasks",
            lambda tasks: [t for t in tasks if t.task_list != TaskList.COMPLETED],
            self._api.delete_completed,
        )

    def apply_time(self, task_id: str, accumulated_seconds: int, running: bool) -> None:
        """计时器刷新成功后同步显示值（服务端已确认，无需快照）"""
        self._tasks = [
            t.model_copy(
                update={
                    "accumulated_seconds": accumulated_seconds,
                    "active_since": (t.active_since or datetime.now(UTC)) if running else None,
                }
            )
            if t.task_id == task_id
            else t
            for t in self._tasks
        ]

    # ============================================================
    # 内部
    # ============================================================

    async def _mutate(
        self,
        action: str,
        apply: Callable[[list[Task]], list[Task]],
        call: Callable[[], Awaitable[Any]],
    ) -> bool:
        """快照 -> 本地生效 -> 等待服务端 -> 失败则恢复该快照"""
        snapshot = self.snapshot()
        self._tasks = apply(self._tasks)
        try:
            await call()
        except TaskBoardClientError as e:
            self._tasks = snapshot
            self._notify(action, e.message)
            log.warning(
                "optimistic_rollback",
                action=action,
                status_code=e.status_code,
                error=e.message,
            )
            return False
        self.last_notice = None
        return True

    def _replace(self, task_id: str, task: Task) -> None:
        self._tasks = [task if t.task_id == task_id else t for t in self._tasks]

    def _notify(self, action: str, reason: str) -> None:
        self.last_notice = f"Could not {action}: {reason}"

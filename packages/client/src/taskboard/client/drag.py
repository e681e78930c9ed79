"""DragCoordinator -- 拖拽手势到 (目标列, 目标位置) 的转换

状态机: IDLE -> DRAGGING -> COMMITTING -> IDLE

- start: 记录被拖任务的原始列与 position（DragOrigin，拖拽期间不可变）
- over: 仅做临时的列归属预览，不改 position，不持久化
- release: 先撤销预览，再以 DragOrigin 为源、以目标列当前几何为准计算最终位置，
  通过 OptimisticTaskStore.move_task 提交（失败时由 store 恢复提交前快照）
"""

from dataclasses import dataclass
from enum import StrEnum

import structlog
from taskboard.core.models import Task, TaskList

from .store import OptimisticTaskStore

log = structlog.get_logger()


class DragState(StrEnum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"


@dataclass(frozen=True)
class DropTarget:
    """放置目标：某一列的容器本身，或列中的某个任务"""

    task_list: TaskList | None = None
    task_id: str | None = None

    @classmethod
    def column(cls, task_list: TaskList) -> "DropTarget":
        return cls(task_list=task_list)

    @classmethod
    def task(cls, task_id: str) -> "DropTarget":
        return cls(task_id=task_id)


@dataclass(frozen=True)
class DragOrigin:
    task_id: str
    task_list: TaskList
    position: int


@dataclass(frozen=True)
class Placement:
    task_list: TaskList
    position: int


def plan(origin: DragOrigin, target: DropTarget, tasks: list[Task]) -> Placement | None:
    """根据拖拽起点与放置目标计算最终位置

    - 放在列容器上：该列末尾（与指针坐标无关）
    - 放在任务上：取该任务当前的 position（同列时等价于数组移动，跨列时插在它之前）
    - 放回原位（同列且位置不变、或放在自己身上）：返回 None，不产生写入

    pending 列的优先级排序只是展示方式，这里始终按 position 计算。
    """
    if target.task_id is not None:
        if target.task_id == origin.task_id:
            return None
        over = next((t for t in tasks if t.task_id == target.task_id), None)
        if over is None:
            return None
        if over.task_list == origin.task_list and over.position == origin.position:
            return None
        return Placement(over.task_list, over.position)

    if target.task_list is None:
        return None

    others = sum(
        1 for t in tasks if t.task_list == target.task_list and t.task_id != origin.task_id
    )
    if target.task_list == origin.task_list and others == origin.position:
        return None
    return Placement(target.task_list, others)


class DragCoordinator:
    """单个拖拽手势的协调器（同一时刻只处理一个手势）"""

    def __init__(self, store: OptimisticTaskStore) -> None:
        self._store = store
        self.state = DragState.IDLE
        self.origin: DragOrigin | None = None

    def start(self, task_id: str) -> DragOrigin | None:
        """开始拖拽；任务不存在时返回 None"""
        if self.state != DragState.IDLE:
            self.cancel()

        task = self._store.get(task_id)
        if task is None:
            return None

        self.origin = DragOrigin(task.task_id, task.task_list, task.position)
        self.state = DragState.DRAGGING
        return self.origin

    def over(self, target: DropTarget) -> None:
        """指针经过新目标：更新临时列归属"""
        if self.state != DragState.DRAGGING or self.origin is None:
            return
        if target.task_id is not None:
            if target.task_id == self.origin.task_id:
                return
            dest = self._store.list_of(target.task_id)
        else:
            dest = target.task_list
        if dest is not None:
            self._store.set_tentative_list(self.origin.task_id, dest)

    async def release(self, target: DropTarget | None) -> bool:
        """松开拖拽

        Args:
            target: 放置目标；None 表示手势被取消（拖出看板等）

        Returns:
            是否提交了一次移动且服务端确认成功
        """
        if self.state != DragState.DRAGGING or self.origin is None:
            return False

        origin = self.origin
        self._store.clear_tentative(origin.task_id)

        if target is None:
            log.debug("drag_cancelled", task_id=origin.task_id)
            self._reset()
            return False

        placement = plan(origin, target, self._store.tasks)
        if placement is None:
            log.debug("drag_noop", task_id=origin.task_id)
            self._reset()
            return False

        self.state = DragState.COMMITTING
        try:
            ok = await self._store.move_task(
                origin.task_id, placement.task_list, placement.position
            )
        finally:
            self._reset()

        log.debug(
            "drag_committed",
            task_id=origin.task_id,
            from_list=origin.task_list.value,
            to_list=placement.task_list.value,
            to_pos=placement.position,
            ok=ok,
        )
        return ok

    def cancel(self) -> None:
        """放弃当前手势并撤销预览"""
        if self.origin is not None:
            self._store.clear_tentative(self.origin.task_id)
        self._reset()

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self.origin = None

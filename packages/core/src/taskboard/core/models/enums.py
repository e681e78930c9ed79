"""枚举定义

包含看板四列 TaskList、优先级 Priority，以及列的展示顺序和 pending 列的优先级排序权重。
"""

from enum import StrEnum


class TaskList(StrEnum):
    """看板列（Ordered Partition 的 list 维度）"""

    TODO = "todo"
    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class Priority(StrEnum):
    """任务优先级"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# 看板从左到右的列顺序（GET /tasks/today 的一级排序键）
BOARD_ORDER: tuple[TaskList, ...] = (
    TaskList.TODO,
    TaskList.PENDING,
    TaskList.ONGOING,
    TaskList.COMPLETED,
)

# pending 列按优先级展示：high 在前
PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


def board_rank(task_list: TaskList) -> int:
    """列在看板中的序号"""
    return BOARD_ORDER.index(task_list)

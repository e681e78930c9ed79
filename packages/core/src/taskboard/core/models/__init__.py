"""Task Board Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import BOARD_ORDER, PRIORITY_RANK, Priority, TaskList, board_rank
from .task import Partition, Task, normalize_description, normalize_title

__all__ = [
    # 枚举
    "TaskList",
    "Priority",
    "BOARD_ORDER",
    "PRIORITY_RANK",
    "board_rank",
    # Task
    "Task",
    "Partition",
    "normalize_title",
    "normalize_description",
]

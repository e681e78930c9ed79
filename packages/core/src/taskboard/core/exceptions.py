"""Task Board 异常体系

ValidationError -> 4xx，写入前拒绝；NotFound -> 404，无任何副作用；
PersistenceError -> 5xx，事务已整体回滚。
"""


class TaskBoardError(Exception):
    """Task Board 基础异常"""

    code: str = "TASKBOARD_ERROR"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TaskValidationError(TaskBoardError):
    """请求参数非法（空标题、非法枚举值、负 position / 负秒数等）"""

    code = "VALIDATION_ERROR"
    status_code = 400


class TaskNotFoundError(TaskBoardError):
    """任务不存在于调用方的 owner 作用域内"""

    code = "TASK_NOT_FOUND"
    status_code = 404

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist")
        self.task_id = task_id


class PersistenceError(TaskBoardError):
    """存储不可用或事务提交失败

    事务内的所有写入已回滚，position 稠密性不受影响。
    """

    code = "PERSISTENCE_ERROR"
    status_code = 500

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error

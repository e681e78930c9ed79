"""Client 异常体系

与服务端错误分类一一对应：
- ClientValidationError: 4xx 参数非法
- ClientNotFoundError: 404 任务不存在
- ServerError: 5xx 存储不可用（服务端事务已回滚）
- NetworkError: 连接失败 / 超时，请求是否到达服务端未知
"""


class TaskBoardClientError(Exception):
    """Client 包基础异常"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        recoverable: bool = True,
    ) -> None:
        """
        Args:
            message: 错误描述（可直接展示给用户）
            status_code: HTTP 状态码，网络错误时为 None
            recoverable: 稍后重试是否可能成功
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.recoverable = recoverable


class ClientValidationError(TaskBoardClientError):
    """请求被服务端（或本地预校验）拒绝，重试无意义"""

    def __init__(self, message: str, status_code: int | None = 400) -> None:
        super().__init__(message, status_code=status_code, recoverable=False)


class ClientNotFoundError(TaskBoardClientError):
    """任务不存在（可能已在其他标签页被删除）"""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404, recoverable=False)


class ServerError(TaskBoardClientError):
    """服务端 5xx"""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message, status_code=status_code, recoverable=True)


class NetworkError(TaskBoardClientError):
    """服务端不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, base_url: str, original_error: Exception) -> None:
        """
        Args:
            base_url: 尝试连接的 API 地址
            original_error: 原始异常
        """
        super().__init__(
            f"Task board API unreachable: {base_url} -- {original_error}",
            status_code=None,
            recoverable=True,
        )
        self.base_url = base_url
        self.original_error = original_error

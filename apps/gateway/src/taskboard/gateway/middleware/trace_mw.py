"""TraceMiddleware

把调用方 owner_id 与路径中的 task_id 绑定到日志上下文，
同一任务的移动、计时刷新、删除日志可按 task_id 串联。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ULID 字符串长度
_TASK_ID_LENGTH = 26


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        owner_id = request.headers.get("x-anonymous-user-id", "").strip()
        if owner_id:
            structlog.contextvars.bind_contextvars(owner_id=owner_id)

        # /api/tasks/{task_id}[/move|/time]
        parts = request.url.path.strip("/").split("/")
        if len(parts) >= 3 and parts[:2] == ["api", "tasks"]:
            if len(parts[2]) == _TASK_ID_LENGTH:
                structlog.contextvars.bind_contextvars(task_id=parts[2])

        return await call_next(request)

"""LoggingMiddleware

每个请求结束时记一条 request_completed（状态码、耗时），
5xx 记为 error，4xx 记为 warning，未处理异常记 request_failed 后继续抛出。

request_id 沿用客户端传入的 X-Request-ID（重试的同一次操作可串联），
缺失或不合规时生成 ULID，并通过响应头返回。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_REQUEST_ID_LENGTH = 64


def request_id_for(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if incoming and len(incoming) <= _MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return str(ULID())


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求日志：绑定 request_id / method / path，记录结果与耗时"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request_id_for(request)
        started = time.monotonic()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        log = structlog.get_logger()

        try:
            response = await call_next(request)
        except Exception:
            await log.aexception("request_failed", duration_ms=_elapsed_ms(started))
            raise

        status_code = response.status_code
        if status_code >= 500:
            emit = log.aerror
        elif status_code >= 400:
            emit = log.awarning
        else:
            emit = log.ainfo
        await emit(
            "request_completed",
            status_code=status_code,
            duration_ms=_elapsed_ms(started),
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

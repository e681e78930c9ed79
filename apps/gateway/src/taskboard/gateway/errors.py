"""统一错误响应

TaskBoardError 子类 -> 对应 HTTP 状态码；请求体校验失败 -> 400 VALIDATION_ERROR。
响应格式：{"success": false, "error": {"code": ..., "message": ...}}
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse
from taskboard.core.exceptions import PersistenceError, TaskBoardError

log = structlog.get_logger()


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}},
    )


async def handle_taskboard_error(request: Request, exc: TaskBoardError) -> JSONResponse:
    if isinstance(exc, PersistenceError):
        log.error("persistence_error", error=exc.message)
    else:
        log.info("request_rejected", code=exc.code, error=exc.message)
    return error_response(exc.status_code, exc.code, exc.message)


async def handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{field}: {err['msg']}" if field else err["msg"])
    message = "; ".join(messages) or "Invalid request"
    log.info("request_rejected", code="VALIDATION_ERROR", error=message)
    return error_response(400, "VALIDATION_ERROR", message)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskBoardError, handle_taskboard_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)

"""Gateway 日志初始化

应用事件、uvicorn 与 aiosqlite 的日志经同一个 structlog formatter 输出；
中间件绑定的 request_id / owner_id / task_id 会并入每条事件。

环境变量:
    TASKBOARD_LOG_FORMAT: dev（默认，终端可读）| json（每行一个 JSON 对象）
    TASKBOARD_LOG_LEVEL: 根 logger 级别（默认 INFO，无法识别时回退 INFO）
"""

import logging
import os

import structlog

LOG_FORMATS = ("dev", "json")

# aiosqlite 每条语句一条 DEBUG；uvicorn.access 与 request_completed 重复
QUIET_LOGGERS = {
    "aiosqlite": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def resolve_log_format() -> str:
    log_format = os.environ.get("TASKBOARD_LOG_FORMAT", "dev").strip().lower()
    return log_format if log_format in LOG_FORMATS else "dev"


def resolve_log_level() -> int:
    name = os.environ.get("TASKBOARD_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _board_processors(json_output: bool) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        # 回滚 / 刷新失败的 traceback 以字符串字段写入 JSON
        processors.append(structlog.processors.format_exc_info)
    return processors


def setup_logging() -> None:
    """配置 structlog 与标准库 logging，可重复调用（每次 create_app）"""
    json_output = resolve_log_format() == "json"
    processors = _board_processors(json_output)

    if json_output:
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(resolve_log_level())

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

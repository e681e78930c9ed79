"""ClientConfig -- 客户端配置加载

从环境变量加载 API 地址、调用方标识、超时与计时器参数。
"""

import os
import uuid
from collections.abc import Callable

import structlog
from pydantic import BaseModel, Field
from taskboard.core.config import TIMER_FLUSH_PERIOD

log = structlog.get_logger()


class ClientConfig(BaseModel):
    """客户端配置 -- 从环境变量加载

    环境变量:
        TASKBOARD_API_URL: API 地址（默认 http://localhost:8000）
        TASKBOARD_OWNER_ID: 调用方标识（默认每次生成一个 UUID）
        TASKBOARD_TIMEOUT_S: 请求超时（秒，默认 10）
        TASKBOARD_FLUSH_PERIOD: 计时器自动刷新周期（tick 数，默认 30）
    """

    api_url: str = Field(default="http://localhost:8000", description="API 基础 URL")
    owner_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        min_length=1,
        description="调用方不透明标识",
    )
    timeout_s: float = Field(default=10, gt=0, description="请求超时（秒）")
    flush_period: int = Field(
        default=TIMER_FLUSH_PERIOD, ge=1, description="计时器自动刷新周期（tick 数）"
    )
    tick_interval_s: float = Field(default=1.0, gt=0, description="计时器 tick 间隔（秒）")


def _number_env(
    name: str, fallback: float, parse: Callable[[str], float] = int
) -> float | None:
    """读取正数环境变量；未设置返回 None，非法时记录 warning 并返回 None"""
    val = os.environ.get(name)
    if not val:
        return None
    try:
        number = parse(val)
    except ValueError:
        number = None
    if number is None or number <= 0:
        log.warning("invalid_client_config", env_var=name, value=val, fallback=fallback)
        return None
    return number


def load_client_config() -> ClientConfig:
    """从环境变量加载客户端配置

    数值型变量非法时记录 warning 并使用默认值，不阻塞启动。
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKBOARD_API_URL"):
        kwargs["api_url"] = val.rstrip("/")

    if val := os.environ.get("TASKBOARD_OWNER_ID", "").strip():
        kwargs["owner_id"] = val

    if (timeout := _number_env("TASKBOARD_TIMEOUT_S", 10, float)) is not None:
        kwargs["timeout_s"] = timeout

    if (period := _number_env("TASKBOARD_FLUSH_PERIOD", TIMER_FLUSH_PERIOD)) is not None:
        kwargs["flush_period"] = period

    return ClientConfig(**kwargs)

"""依赖注入模块 -- Store 实例 + 调用方身份 + 逻辑日期

Store 实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from datetime import date

from fastapi import Header, Request
from taskboard.core.config import today
from taskboard.core.exceptions import TaskValidationError
from taskboard.core.store import StoreGroup

from .services.task_service import TaskService

OWNER_HEADER = "X-Anonymous-User-Id"
DAY_HEADER = "X-Client-Day"


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_task_service(request: Request) -> TaskService:
    """每个请求构造一个 TaskService（共享 StoreGroup 的连接与写锁）"""
    return TaskService(get_store_group(request))


def get_owner_id(
    x_anonymous_user_id: str | None = Header(default=None),
) -> str:
    """读取调用方标识，缺失或为空时拒绝请求"""
    owner_id = (x_anonymous_user_id or "").strip()
    if not owner_id:
        raise TaskValidationError(f"Missing required header: {OWNER_HEADER}")
    return owner_id


def get_task_day(
    x_client_day: str | None = Header(default=None),
) -> date:
    """调用方的逻辑日期（YYYY-MM-DD），未提供时取服务器配置时区的今天"""
    if not x_client_day:
        return today()
    try:
        return date.fromisoformat(x_client_day.strip())
    except ValueError as e:
        raise TaskValidationError(
            f"Invalid {DAY_HEADER} header, expected YYYY-MM-DD: {x_client_day}"
        ) from e

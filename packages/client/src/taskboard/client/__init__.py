"""Task Board Client -- API 客户端、乐观更新 Store、拖拽协调与计时器

packages/client 的公开接口导出。
"""

# 核心组件
from .api import TaskBoardClient

# 配置
from .config import ClientConfig, load_client_config
from .drag import DragCoordinator, DragOrigin, DragState, DropTarget, Placement, plan

# 异常
from .exceptions import (
    ClientNotFoundError,
    ClientValidationError,
    NetworkError,
    ServerError,
    TaskBoardClientError,
)
from .store import OptimisticTaskStore, apply_move, apply_reorder
from .timer import TimerEngine, TimerSession, TimerState

__all__ = [
    "TaskBoardClient",
    "OptimisticTaskStore",
    "apply_move",
    "apply_reorder",
    "DragCoordinator",
    "DragOrigin",
    "DragState",
    "DropTarget",
    "Placement",
    "plan",
    "TimerEngine",
    "TimerSession",
    "TimerState",
    "ClientConfig",
    "load_client_config",
    "TaskBoardClientError",
    "ClientValidationError",
    "ClientNotFoundError",
    "ServerError",
    "NetworkError",
]

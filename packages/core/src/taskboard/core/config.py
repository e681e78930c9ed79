"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、逻辑日期时区、字段长度限制、计时器刷新周期等可配置常量。
"""

import os
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKBOARD_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKBOARD_DB_PATH",
        str(_get_base_dir() / "sqlite" / "taskboard.db"),
    )


def get_timezone() -> ZoneInfo | None:
    """获取逻辑日期所用时区（TASKBOARD_TIMEZONE），未设置时使用服务器本地时区"""
    name = os.environ.get("TASKBOARD_TIMEZONE", "").strip()
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        log.warning("invalid_timezone_config", env_var="TASKBOARD_TIMEZONE", value=name)
        return None


def today() -> date:
    """调用方未提供逻辑日期时的默认"今天"（仅在创建/查询入口取一次）"""
    return datetime.now(get_timezone()).date()


# 标题最大长度（code points）
TITLE_MAX_LENGTH: int = 100

# 描述最大长度（code points）
DESCRIPTION_MAX_LENGTH: int = 500

# 计时器自动刷新周期（tick 数，1 tick = 1 秒）
TIMER_FLUSH_PERIOD: int = 30

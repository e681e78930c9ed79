"""Task Domain Model

Task 是唯一的持久化实体。position 在 (owner_id, day, task_list) 构成的
Ordered Partition 内必须稠密：N 个任务的 position 恰为 0..N-1。
JSON 线上字段统一使用 camelCase（id / ownerId / list / accumulatedSeconds ...）。
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..config import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH
from .enums import Priority, TaskList


def normalize_title(value: str) -> str:
    """标题去首尾空白后不可为空，且不超过 TITLE_MAX_LENGTH 个字符"""
    value = value.strip()
    if not value:
        raise ValueError("Task title is required")
    if len(value) > TITLE_MAX_LENGTH:
        raise ValueError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
    return value


def normalize_description(value: str | None) -> str:
    """描述去首尾空白，可为空，不超过 DESCRIPTION_MAX_LENGTH 个字符"""
    value = (value or "").strip()
    if len(value) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(
            f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
        )
    return value


class Partition(BaseModel):
    """Ordered Partition -- position 稠密性约束的作用域"""

    model_config = ConfigDict(frozen=True)

    owner_id: str
    day: date
    task_list: TaskList

    def with_list(self, task_list: TaskList) -> "Partition":
        """同一 owner、同一天的另一列"""
        return Partition(owner_id=self.owner_id, day=self.day, task_list=task_list)


class Task(BaseModel):
    """Task 数据模型

    accumulated_seconds 单调不减，只通过原子增量累加；
    active_since 仅作崩溃恢复标记，不参与耗时计算。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    task_id: str = Field(alias="id", description="唯一标识，ULID 格式")
    owner_id: str = Field(min_length=1, description="调用方提供的不透明标识")
    title: str = Field(description="任务标题")
    description: str = Field(default="", description="任务描述")
    task_list: TaskList = Field(default=TaskList.TODO, alias="list", description="所在列")
    position: int = Field(default=0, ge=0, description="列内位置（从 0 开始）")
    day: date = Field(description="逻辑日期，创建后不可变")
    priority: Priority = Field(default=Priority.MEDIUM, description="优先级")
    estimated_target: float = Field(default=0, ge=0, description="预估耗时（小时）")
    accumulated_seconds: int = Field(default=0, ge=0, description="累计计时秒数")
    active_since: datetime | None = Field(default=None, description="计时器运行标记")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        return normalize_title(value)

    @field_validator("description", mode="before")
    @classmethod
    def check_description(cls, value: str | None) -> str:
        return normalize_description(value)

    @property
    def partition(self) -> Partition:
        """任务当前所属的 Ordered Partition"""
        return Partition(owner_id=self.owner_id, day=self.day, task_list=self.task_list)

    def to_wire(self) -> dict:
        """序列化为 camelCase JSON 字典"""
        return self.model_dump(mode="json", by_alias=True)

"""任务路由

POST   /api/tasks              创建任务（todo 列末尾）
GET    /api/tasks/today        当天全部任务
PUT    /api/tasks/{task_id}    更新详情
PATCH  /api/tasks/reorder      批量重排某列
PATCH  /api/tasks/{task_id}/move  拖拽移动
PATCH  /api/tasks/{task_id}/time  计时刷新
DELETE /api/tasks/completed    清空当天 completed 列
DELETE /api/tasks/{task_id}    删除任务
"""

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from starlette.responses import JSONResponse
from taskboard.core.models import (
    Priority,
    TaskList,
    normalize_description,
    normalize_title,
)

from ..deps import get_owner_id, get_task_day, get_task_service
from ..services.task_service import TaskService

router = APIRouter(prefix="/api/tasks")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateTaskRequest(_CamelModel):
    """创建任务请求体"""

    title: str = Field(description="任务标题")
    description: str | None = Field(default=None, description="任务描述")
    priority: Priority | None = Field(default=None, description="优先级，默认 medium")
    estimated_target: float | None = Field(default=None, ge=0, description="预估耗时（小时）")

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        return normalize_title(value)

    @field_validator("description")
    @classmethod
    def check_description(cls, value: str | None) -> str:
        return normalize_description(value)


class UpdateTaskRequest(_CamelModel):
    """更新任务请求体 -- 只有显式提供的字段会被更新"""

    title: str | None = None
    description: str | None = None
    priority: Priority | None = None
    estimated_target: float | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str | None) -> str | None:
        return None if value is None else normalize_title(value)

    @field_validator("description")
    @classmethod
    def check_description(cls, value: str | None) -> str | None:
        return None if value is None else normalize_description(value)

    def changes(self) -> dict:
        """显式提供且非 null 的字段"""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }


class MoveTaskRequest(_CamelModel):
    """拖拽移动请求体"""

    task_list: TaskList = Field(alias="list", description="目标列")
    position: int = Field(ge=0, description="目标列中的位置")


class ReorderRequest(_CamelModel):
    """批量重排请求体"""

    task_list: TaskList = Field(alias="list", description="被重排的列")
    ordered_ids: list[str] = Field(min_length=1, description="新顺序的任务 ID 列表")


class TimeRequest(_CamelModel):
    """计时刷新请求体"""

    additional_seconds: float = Field(ge=0, description="本次累加秒数")
    activity_flag: bool = Field(
        default=False,
        validation_alias=AliasChoices("activityFlag", "timerRunning", "activity_flag"),
        description="计时器是否仍在运行",
    )


@router.post("")
async def create_task(
    body: CreateTaskRequest,
    owner_id: str = Depends(get_owner_id),
    day: date = Depends(get_task_day),
    service: TaskService = Depends(get_task_service),
):
    """创建任务 -- 201"""
    task = await service.create_task(
        owner_id,
        day,
        title=body.title,
        description=body.description or "",
        priority=body.priority or Priority.MEDIUM,
        estimated_target=body.estimated_target or 0,
    )
    return JSONResponse(status_code=201, content={"success": True, "data": task.to_wire()})


@router.get("/today")
async def list_today(
    owner_id: str = Depends(get_owner_id),
    day: date = Depends(get_task_day),
    service: TaskService = Depends(get_task_service),
):
    """当天全部任务，按 (列顺序, position) 排序"""
    tasks = await service.list_today(owner_id, day)
    return {"success": True, "count": len(tasks), "data": [t.to_wire() for t in tasks]}


@router.patch("/reorder")
async def reorder_tasks(
    body: ReorderRequest,
    owner_id: str = Depends(get_owner_id),
    day: date = Depends(get_task_day),
    service: TaskService = Depends(get_task_service),
):
    """批量重排某列（position = 数组下标）"""
    reordered = await service.reorder(owner_id, day, body.task_list, body.ordered_ids)
    return {"success": True, "message": f"Reordered {reordered} tasks", "count": reordered}


@router.delete("/completed")
async def delete_completed_tasks(
    owner_id: str = Depends(get_owner_id),
    day: date = Depends(get_task_day),
    service: TaskService = Depends(get_task_service),
):
    """清空当天 completed 列"""
    deleted = await service.delete_completed(owner_id, day)
    return {
        "success": True,
        "message": f"Deleted {deleted} completed task(s)",
        "deletedCount": deleted,
    }


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    body: UpdateTaskRequest,
    owner_id: str = Depends(get_owner_id),
    service: TaskService = Depends(get_task_service),
):
    """更新任务详情（不影响 list / position）"""
    task = await service.update_task(owner_id, task_id, body.changes())
    return {"success": True, "data": task.to_wire()}


@router.patch("/{task_id}/move")
async def move_task(
    task_id: str,
    body: MoveTaskRequest,
    owner_id: str = Depends(get_owner_id),
    service: TaskService = Depends(get_task_service),
):
    """拖拽移动（同列重排或跨列）"""
    task = await service.move_task(owner_id, task_id, body.task_list, body.position)
    return {"success": True, "data": task.to_wire()}


@router.patch("/{task_id}/time")
async def update_time_spent(
    task_id: str,
    body: TimeRequest,
    owner_id: str = Depends(get_owner_id),
    service: TaskService = Depends(get_task_service),
):
    """计时刷新：原子累加 + 运行标记"""
    task = await service.record_time(
        owner_id, task_id, body.additional_seconds, body.activity_flag
    )
    return {"success": True, "data": task.to_wire()}


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    owner_id: str = Depends(get_owner_id),
    service: TaskService = Depends(get_task_service),
):
    """删除任务并修复所在列的 position"""
    await service.delete_task(owner_id, task_id)
    return {"success": True, "message": "Task deleted successfully"}

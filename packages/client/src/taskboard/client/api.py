"""TaskBoardClient -- 看板 REST API 调用封装

基于 httpx.AsyncClient；每个请求都携带调用方标识头（及可选的逻辑日期头）。
HTTP 错误与连接错误统一转换为 taskboard.client.exceptions 中的异常。
"""

from datetime import date

import httpx
import structlog
from taskboard.core.models import Priority, Task, TaskList

from .config import ClientConfig
from .exceptions import (
    ClientNotFoundError,
    ClientValidationError,
    NetworkError,
    ServerError,
    TaskBoardClientError,
)

log = structlog.get_logger()

OWNER_HEADER = "X-Anonymous-User-Id"
DAY_HEADER = "X-Client-Day"


class TaskBoardClient:
    """看板 API 客户端"""

    def __init__(
        self,
        base_url: str,
        owner_id: str,
        timeout_s: float = 10,
        day: date | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化客户端

        Args:
            base_url: API 基础 URL（不含 /api）
            owner_id: 调用方标识，用于数据隔离
            timeout_s: 请求超时（秒）
            day: 逻辑日期；None 表示由服务端按其时区决定
            transport: 自定义 httpx transport（测试中用 ASGITransport / MockTransport）
        """
        if not owner_id.strip():
            raise ClientValidationError("owner_id must not be empty", status_code=None)

        self.base_url = base_url.rstrip("/")
        self.owner_id = owner_id.strip()
        self.day = day

        headers = {OWNER_HEADER: self.owner_id}
        if day is not None:
            headers[DAY_HEADER] = day.isoformat()

        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        day: date | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "TaskBoardClient":
        return cls(
            base_url=config.api_url,
            owner_id=config.owner_id,
            timeout_s=config.timeout_s,
            day=day,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "TaskBoardClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def fetch_today(self) -> list[Task]:
        """当天全部任务"""
        body = await self._request("GET", "/api/tasks/today")
        return [Task.model_validate(item) for item in body.get("data", [])]

    async def create_task(
        self,
        title: str,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        estimated_target: float = 0,
    ) -> Task:
        body = await self._request(
            "POST",
            "/api/tasks",
            json={
                "title": title,
                "description": description,
                "priority": priority.value,
                "estimatedTarget": estimated_target,
            },
        )
        return Task.model_validate(body["data"])

    async def update_task(self, task_id: str, **changes) -> Task:
        """更新详情；changes 使用 snake_case 字段名"""
        payload = {}
        for name, value in changes.items():
            if name == "estimated_target":
                name = "estimatedTarget"
            payload[name] = value.value if isinstance(value, Priority) else value
        body = await self._request("PUT", f"/api/tasks/{task_id}", json=payload)
        return Task.model_validate(body["data"])

    async def move_task(self, task_id: str, task_list: TaskList, position: int) -> Task:
        body = await self._request(
            "PATCH",
            f"/api/tasks/{task_id}/move",
            json={"list": task_list.value, "position": position},
        )
        return Task.model_validate(body["data"])

    async def reorder(self, task_list: TaskList, ordered_ids: list[str]) -> int:
        body = await self._request(
            "PATCH",
            "/api/tasks/reorder",
            json={"list": task_list.value, "orderedIds": ordered_ids},
        )
        return int(body.get("count", 0))

    async def update_time(self, task_id: str, additional_seconds: int, active: bool) -> Task:
        """计时刷新：服务端原子累加 additional_seconds，并设置/清除运行标记"""
        body = await self._request(
            "PATCH",
            f"/api/tasks/{task_id}/time",
            json={"additionalSeconds": additional_seconds, "activityFlag": active},
        )
        return Task.model_validate(body["data"])

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/api/tasks/{task_id}")

    async def delete_completed(self) -> int:
        body = await self._request("DELETE", "/api/tasks/completed")
        return int(body.get("deletedCount", 0))

    async def _request(self, method: str, path: str, json: dict | None = None) -> dict:
        """发送请求并把错误转换为 TaskBoardClientError 子类

        Raises:
            NetworkError: 连接失败或超时
            ClientValidationError: 400 / 422
            ClientNotFoundError: 404
            ServerError: 5xx
            TaskBoardClientError: 其他非 2xx
        """
        try:
            resp = await self._http.request(method, path, json=json)
        except httpx.TransportError as e:
            log.warning("api_unreachable", method=method, path=path, error=str(e))
            raise NetworkError(self.base_url, e) from e

        if resp.is_success:
            return resp.json()

        message = _error_message(resp)
        log.info(
            "api_request_failed",
            method=method,
            path=path,
            status_code=resp.status_code,
            error=message,
        )
        if resp.status_code in (400, 422):
            raise ClientValidationError(message, status_code=resp.status_code)
        if resp.status_code == 404:
            raise ClientNotFoundError(message)
        if resp.status_code >= 500:
            raise ServerError(message, status_code=resp.status_code)
        raise TaskBoardClientError(message, status_code=resp.status_code, recoverable=False)


def _error_message(resp: httpx.Response) -> str:
    """从错误响应中取出可读信息"""
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {resp.status_code}"

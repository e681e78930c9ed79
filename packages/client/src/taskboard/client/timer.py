"""Timer Accrual Engine -- 客户端计时、周期刷新与暂停/恢复

状态机: IDLE -> RUNNING（start / 恢复）-> IDLE（pause / stop）

- start: 未保存秒数清零，先启动 tick 循环，再上报 (0, active=True) 写入运行标记
- 每个 tick: 显示总数 +1，未保存秒数 +1；tick 从不等待网络
- 每 flush_period 个 tick: 在后台把未保存秒数原子累加到服务端，成功后扣减；
  上一次刷新仍未返回时跳过本次，秒数留给下一次刷新
- pause / stop: 停止 tick，上报剩余秒数并清除运行标记
- shutdown: 页面卸载时的尽力刷新，不等待结果

服务端只做加法（accumulated_seconds + N），刷新之间互相可交换，
因此同一任务的并发刷新不会丢失增量；单个引擎内的刷新由 _flush_lock 串行化。
"""

import asyncio
from collections.abc import Callable
from enum import StrEnum

import structlog
from taskboard.core.config import TIMER_FLUSH_PERIOD
from taskboard.core.models import Task

from .api import TaskBoardClient
from .config import ClientConfig
from .exceptions import TaskBoardClientError

log = structlog.get_logger()


class TimerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"


class TimerEngine:
    """单个任务的计时器

    失败语义：
    - 周期刷新失败：秒数保留在未保存计数中，下次刷新一并重试
    - pause / stop / shutdown 刷新失败：这部分秒数放弃（损失不超过一个刷新周期）
    网络错误只记录日志，不向调用方抛出。
    """

    def __init__(
        self,
        api: TaskBoardClient,
        task_id: str,
        initial_seconds: int = 0,
        flush_period: int = TIMER_FLUSH_PERIOD,
        tick_interval_s: float = 1.0,
        on_flushed: Callable[[Task], None] | None = None,
    ) -> None:
        """
        Args:
            api: API 客户端
            task_id: 计时的任务
            initial_seconds: 任务当前已持久化的累计秒数
            flush_period: 自动刷新周期（tick 数）
            tick_interval_s: tick 间隔（秒）
            on_flushed: 每次刷新成功后回调（参数为服务端返回的任务）
        """
        if flush_period < 1:
            raise ValueError("flush_period must be >= 1")

        self._api = api
        self.task_id = task_id
        self.flush_period = flush_period
        self.tick_interval_s = tick_interval_s
        self._on_flushed = on_flushed

        self.state = TimerState.IDLE
        self.elapsed = initial_seconds
        self.persisted = initial_seconds
        self.unsaved = 0
        self._session_ticks = 0

        self._ticker: asyncio.Task | None = None
        self._periodic: asyncio.Task | None = None
        self._flush_lock = asyncio.Lock()
        self._background: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self.state == TimerState.RUNNING

    async def start(self, auto_tick: bool = True) -> None:
        """开始 / 恢复计时

        Args:
            auto_tick: 是否启动内部 tick 循环；False 时由调用方驱动 tick()
        """
        if self.running:
            return

        self.state = TimerState.RUNNING
        self.unsaved = 0
        self._session_ticks = 0
        log.info("timer_started", task_id=self.task_id, elapsed=self.elapsed)

        if auto_tick:
            self._ticker = asyncio.create_task(self._tick_loop())

        await self._flush(active=True, keep_on_failure=True)

    def tick(self) -> asyncio.Task | None:
        """推进一秒；到达刷新周期时在后台发起刷新

        Returns:
            本次发起的刷新 task（未发起时为 None）；调用方可选择 await
        """
        if not self.running:
            return None

        self.elapsed += 1
        self.unsaved += 1
        self._session_ticks += 1

        if self._session_ticks % self.flush_period != 0:
            return None
        if self._periodic is not None and not self._periodic.done():
            log.debug("timer_flush_in_flight", task_id=self.task_id, unsaved=self.unsaved)
            return None

        # 刷新在独立 task 中完成：tick 循环被取消时已发出的请求不会中断，
        # 其结果仍由 _flush 记账，pause 的刷新排在其后
        self._periodic = self._spawn(self._flush(active=True, keep_on_failure=True))
        return self._periodic

    async def pause(self) -> None:
        """暂停：停止 tick，上报剩余秒数并清除运行标记"""
        if not self.running and self.unsaved == 0:
            return

        self.state = TimerState.IDLE
        await self._stop_ticker()
        await self._flush(active=False, keep_on_failure=False)
        log.info("timer_paused", task_id=self.task_id, persisted=self.persisted)

    async def stop(self) -> int:
        """停止并返回刷新后的累计秒数（供调用方把任务移入 completed）"""
        await self.pause()
        log.info("timer_stopped", task_id=self.task_id, persisted=self.persisted)
        return self.persisted

    def shutdown(self) -> asyncio.Task | None:
        """卸载时尽力刷新：立即返回，不等待请求完成

        Returns:
            刷新 task（无需刷新时为 None）；调用方可选择 await
        """
        was_running = self.running
        self.state = TimerState.IDLE
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

        if not was_running and self.unsaved == 0:
            return None
        return self._spawn(self._flush(active=False, keep_on_failure=False))

    async def _tick_loop(self) -> None:
        # 按绝对截止时间调度：单次唤醒延迟不会累积成漂移，迟到的 tick 随后补上
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while self.running:
            deadline += self.tick_interval_s
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            self.tick()

    async def _stop_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is None or ticker is asyncio.current_task():
            return
        ticker.cancel()
        try:
            await ticker
        except asyncio.CancelledError:
            pass

    async def _flush(self, active: bool, keep_on_failure: bool) -> bool:
        """上报未保存秒数（金额在锁内读取，避免重复计入）"""
        async with self._flush_lock:
            if active and not self.running:
                # 已暂停：剩余秒数由暂停刷新上报，不再写运行标记
                return False
            amount = self.unsaved
            try:
                task = await self._api.update_time(self.task_id, amount, active)
            except TaskBoardClientError as e:
                if not keep_on_failure:
                    self.unsaved -= amount
                log.warning(
                    "timer_flush_failed",
                    task_id=self.task_id,
                    amount=amount,
                    active=active,
                    kept=keep_on_failure,
                    error=e.message,
                )
                return False

            self.unsaved -= amount
            self.persisted = task.accumulated_seconds
            log.debug(
                "timer_flushed",
                task_id=self.task_id,
                amount=amount,
                active=active,
                persisted=self.persisted,
            )

        if self._on_flushed is not None:
            self._on_flushed(task)
        return True

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task


class TimerSession:
    """同一客户端同一时刻最多一个运行中的计时器

    激活新任务时先暂停（并刷新）上一个。
    """

    def __init__(
        self,
        api: TaskBoardClient,
        flush_period: int = TIMER_FLUSH_PERIOD,
        tick_interval_s: float = 1.0,
        on_flushed: Callable[[Task], None] | None = None,
    ) -> None:
        self._api = api
        self._flush_period = flush_period
        self._tick_interval_s = tick_interval_s
        self._on_flushed = on_flushed
        self.active: TimerEngine | None = None

    @classmethod
    def from_config(
        cls,
        api: TaskBoardClient,
        config: ClientConfig,
        on_flushed: Callable[[Task], None] | None = None,
    ) -> "TimerSession":
        return cls(
            api,
            flush_period=config.flush_period,
            tick_interval_s=config.tick_interval_s,
            on_flushed=on_flushed,
        )

    async def activate(
        self, task_id: str, initial_seconds: int = 0, auto_tick: bool = True
    ) -> TimerEngine:
        """开始计时 task_id；已在计时的是同一任务时直接返回"""
        current = self.active
        if current is not None and current.task_id == task_id:
            await current.start(auto_tick=auto_tick)
            return current

        if current is not None:
            await current.pause()

        engine = TimerEngine(
            self._api,
            task_id,
            initial_seconds=initial_seconds,
            flush_period=self._flush_period,
            tick_interval_s=self._tick_interval_s,
            on_flushed=self._on_flushed,
        )
        self.active = engine
        await engine.start(auto_tick=auto_tick)
        return engine

    async def pause(self) -> None:
        if self.active is not None:
            await self.active.pause()

    async def stop(self) -> int | None:
        """停止当前计时器，返回其累计秒数"""
        engine, self.active = self.active, None
        if engine is None:
            return None
        return await engine.stop()

    def shutdown(self) -> asyncio.Task | None:
        engine, self.active = self.active, None
        if engine is None:
            return None
        return engine.shutdown()

"""OptimisticTaskStore 单元测试

验证：本地立即生效、服务端失败时恢复该次变更前的快照、
本地重排规则与服务端 PositionEngine 一致、拖拽预览不改 position。
"""

from unittest.mock import AsyncMock

from taskboard.client.exceptions import ClientNotFoundError, NetworkError, ServerError
from taskboard.client.store import OptimisticTaskStore, apply_move, apply_reorder
from taskboard.core.models import Priority, TaskList


def _ids(store: OptimisticTaskStore, task_list: TaskList) -> list[str]:
    return [t.task_id for t in store.column(task_list)]


def _positions(store: OptimisticTaskStore, task_list: TaskList) -> list[int]:
    return sorted(t.position for t in store.tasks if t.task_list == task_list)


def _wire(store: OptimisticTaskStore) -> list[dict]:
    return [t.to_wire() for t in store.tasks]


class TestLoadAndView:
    async def test_columns_sorted_by_position(self, store):
        assert _ids(store, TaskList.TODO) == ["A", "B", "C"]
        assert _ids(store, TaskList.ONGOING) == ["D"]

    async def test_pending_column_sorted_by_priority(self, store):
        # Q 是 high，position 更大但展示在前
        assert _ids(store, TaskList.PENDING) == ["Q", "P"]

    async def test_board_order(self, store):
        lists = [t.task_list for t in store.tasks]
        assert lists == [
            TaskList.TODO,
            TaskList.TODO,
            TaskList.TODO,
            TaskList.PENDING,
            TaskList.PENDING,
            TaskList.ONGOING,
            TaskList.COMPLETED,
        ]

    async def test_load_failure_keeps_state(self, store, mock_api):
        mock_api.fetch_today.side_effect = NetworkError("http://test", OSError("down"))
        assert await store.load() is False
        assert _ids(store, TaskList.TODO) == ["A", "B", "C"]
        assert "Could not load tasks" in store.last_notice

    async def test_snapshot_is_independent(self, store):
        snap = store.snapshot()
        snap[0].title = "changed"
        assert store.get(snap[0].task_id).title != "changed"


class TestMove:
    async def test_move_within_list(self, store, mock_api):
        """A 从 0 移到 2 -> B C A"""
        assert await store.move_task("A", TaskList.TODO, 2) is True
        assert _ids(store, TaskList.TODO) == ["B", "C", "A"]
        assert _positions(store, TaskList.TODO) == [0, 1, 2]
        mock_api.move_task.assert_awaited_once_with("A", TaskList.TODO, 2)

    async def test_move_across_lists(self, store):
        assert await store.move_task("B", TaskList.ONGOING, 0) is True
        assert _ids(store, TaskList.TODO) == ["A", "C"]
        assert _ids(store, TaskList.ONGOING) == ["B", "D"]
        assert _positions(store, TaskList.TODO) == [0, 1]
        assert _positions(store, TaskList.ONGOING) == [0, 1]

    async def test_move_failure_restores_snapshot(self, store, mock_api):
        before = _wire(store)
        mock_api.move_task.side_effect = ServerError("Storage unavailable")

        assert await store.move_task("A", TaskList.COMPLETED, 0) is False

        assert _wire(store) == before
        assert store.last_notice == "Could not move task: Storage unavailable"

    async def test_move_unknown_task(self, store, mock_api):
        assert await store.move_task("nope", TaskList.TODO, 0) is False
        mock_api.move_task.assert_not_called()

    async def test_negative_position_rejected_locally(self, store, mock_api):
        assert await store.move_task("A", TaskList.TODO, -1) is False
        mock_api.move_task.assert_not_called()

    async def test_move_to_end(self, store, mock_api):
        assert await store.move_to_end("A", TaskList.TODO) is True
        assert _ids(store, TaskList.TODO) == ["B", "C", "A"]
        mock_api.move_task.assert_awaited_once_with("A", TaskList.TODO, 2)

    async def test_complete_task_records_final_seconds(self, store, mock_api):
        assert await store.complete_task("D", final_seconds=95) is True
        assert _ids(store, TaskList.COMPLETED) == ["X", "D"]
        assert store.get("D").accumulated_seconds == 95
        assert store.get("D").active_since is None
        mock_api.move_task.assert_awaited_once_with("D", TaskList.COMPLETED, 1)

    async def test_each_mutation_has_its_own_rollback_point(self, store, mock_api):
        """第一次成功、第二次失败：只撤销第二次"""
        assert await store.move_task("A", TaskList.ONGOING, 1) is True
        mock_api.move_task.side_effect = ServerError("boom")

        assert await store.move_task("B", TaskList.ONGOING, 0) is False

        assert _ids(store, TaskList.TODO) == ["B", "C"]
        assert _ids(store, TaskList.ONGOING) == ["D", "A"]


class TestCreate:
    async def test_provisional_task_replaced_on_success(self, store, mock_api, make_task):
        seen = {}

        async def create(title, **kwargs):
            # 等待服务端期间，临时任务已在 todo 末尾
            last = store.column(TaskList.TODO)[-1]
            seen["id"] = last.task_id
            seen["position"] = last.position
            return make_task("SRV", TaskList.TODO, 3)

        mock_api.create_task.side_effect = create

        assert await store.create_task("  Write report  ") is True

        assert seen["id"].startswith("temp-")
        assert seen["position"] == 3
        assert _ids(store, TaskList.TODO) == ["A", "B", "C", "SRV"]
        assert mock_api.create_task.await_args.args == ("Write report",)

    async def test_create_failure_removes_provisional(self, store, mock_api):
        mock_api.create_task.side_effect = NetworkError("http://test", OSError("down"))

        assert await store.create_task("Offline") is False

        assert _ids(store, TaskList.TODO) == ["A", "B", "C"]
        assert not any(t.task_id.startswith("temp-") for t in store.tasks)
        assert store.last_notice.startswith("Could not create task")

    async def test_blank_title_rejected_without_call(self, store, mock_api):
        assert await store.create_task("   ") is False
        assert store.last_notice == "Could not create task: Task title is required"
        mock_api.create_task.assert_not_called()


class TestUpdate:
    async def test_update_applies_server_copy(self, store, mock_api, make_task):
        server = make_task("A", TaskList.TODO, 0, priority=Priority.HIGH)
        mock_api.update_task.return_value = server

        assert await store.update_task("A", priority=Priority.HIGH) is True
        assert store.get("A").priority == Priority.HIGH
        mock_api.update_task.assert_awaited_once_with("A", priority=Priority.HIGH)

    async def test_update_failure_restores(self, store, mock_api):
        mock_api.update_task.side_effect = ClientNotFoundError("Task with id A does not exist")

        assert await store.update_task("A", title="Renamed") is False
        assert store.get("A").title == "Task A"

    async def test_update_too_long_title(self, store, mock_api):
        assert await store.update_task("A", title="x" * 101) is False
        mock_api.update_task.assert_not_called()


class TestReorderAndDelete:
    async def test_reorder(self, store, mock_api):
        assert await store.reorder(TaskList.TODO, ["C", "A"]) is True
        # 未列出的 B 排在后面
        assert _ids(store, TaskList.TODO) == ["C", "A", "B"]
        mock_api.reorder.assert_awaited_once_with(TaskList.TODO, ["C", "A"])

    async def test_reorder_empty_rejected(self, store, mock_api):
        assert await store.reorder(TaskList.TODO, []) is False
        mock_api.reorder.assert_not_called()

    async def test_delete_renumbers_partition(self, store):
        assert await store.delete_task("A") is True
        assert _ids(store, TaskList.TODO) == ["B", "C"]
        assert _positions(store, TaskList.TODO) == [0, 1]

    async def test_delete_failure_restores(self, store, mock_api):
        before = _wire(store)
        mock_api.delete_task.side_effect = ServerError("boom")

        assert await store.delete_task("B") is False
        assert _wire(store) == before

    async def test_clear_completed(self, store, mock_api):
        assert await store.clear_completed() is True
        assert store.column(TaskList.COMPLETED) == []
        assert len(store.tasks) == 6
        mock_api.delete_completed.assert_awaited_once()

    async def test_clear_completed_failure_restores(self, store, mock_api):
        mock_api.delete_completed.side_effect = ServerError("boom")
        assert await store.clear_completed() is False
        assert _ids(store, TaskList.COMPLETED) == ["X"]


class TestTentativeList:
    async def test_preview_changes_membership_only(self, store):
        store.set_tentative_list("A", TaskList.ONGOING)

        assert "A" in _ids(store, TaskList.ONGOING)
        assert "A" not in _ids(store, TaskList.TODO)
        assert store.get("A").task_list == TaskList.TODO
        assert store.get("A").position == 0

    async def test_clearing_preview(self, store):
        store.set_tentative_list("A", TaskList.ONGOING)
        store.set_tentative_list("A", None)
        assert _ids(store, TaskList.TODO) == ["A", "B", "C"]

    async def test_preview_back_to_own_list_clears(self, store):
        store.set_tentative_list("A", TaskList.ONGOING)
        store.set_tentative_list("A", TaskList.TODO)
        assert store.list_of("A") == TaskList.TODO


class TestApplyTime:
    async def test_apply_time_updates_display(self, store):
        store.apply_time("D", 120, running=True)
        assert store.get("D").accumulated_seconds == 120
        assert store.get("D").active_since is not None

        store.apply_time("D", 130, running=False)
        assert store.get("D").active_since is None


class TestPureHelpers:
    def test_apply_move_clamps_within_list(self, board):
        result = apply_move(board, "A", TaskList.TODO, 99)
        todo = sorted((t for t in result if t.task_list == TaskList.TODO), key=lambda t: t.position)
        assert [t.task_id for t in todo] == ["B", "C", "A"]

    def test_apply_move_clamps_across_lists(self, board):
        result = apply_move(board, "A", TaskList.ONGOING, 99)
        moved = next(t for t in result if t.task_id == "A")
        assert moved.task_list == TaskList.ONGOING
        assert moved.position == 1

    def test_apply_move_noop_returns_equal_state(self, board):
        result = apply_move(board, "B", TaskList.TODO, 1)
        assert [t.to_wire() for t in result] == [t.to_wire() for t in board]

    def test_apply_move_does_not_mutate_input(self, board):
        apply_move(board, "A", TaskList.COMPLETED, 0)
        assert board[0].task_list == TaskList.TODO
        assert board[6].position == 0

    def test_apply_reorder_ignores_foreign_and_duplicate_ids(self, board):
        result = apply_reorder(board, TaskList.TODO, ["C", "D", "C", "B"])
        todo = sorted((t for t in result if t.task_list == TaskList.TODO), key=lambda t: t.position)
        assert [t.task_id for t in todo] == ["C", "B", "A"]
        ongoing = next(t for t in result if t.task_id == "D")
        assert ongoing.position == 0


async def test_store_accepts_any_api_with_client_shape(board):
    """Store 只依赖 API 的方法形状"""
    api = AsyncMock()
    api.fetch_today.return_value = board
    api.owner_id = "someone"
    api.day = None
    store = OptimisticTaskStore(api)
    assert await store.load() is True
    assert len(store.tasks) == 7

"""CLI 入口模块 -- python -m taskboard.core <command>

支持的命令：
  repair-positions  对所有分区重新执行 position 稠密性修复
"""

import asyncio
import sys

from .config import get_db_path


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m taskboard.core <command>")
        print("命令:")
        print("  repair-positions  对所有分区重新执行 position 稠密性修复")
        sys.exit(1)

    command = sys.argv[1]

    if command == "repair-positions":
        asyncio.run(repair_positions())
    else:
        print(f"未知命令: {command}")
        print("可用命令: repair-positions")
        sys.exit(1)


async def repair_positions(db_path: str | None = None) -> int:
    """遍历所有分区执行修复，返回被改写的任务总数"""
    from .position import PositionEngine
    from .store import create_store_group

    db_path = db_path or get_db_path()
    print(f"数据库路径: {db_path}")
    print("开始修复 position...")

    store_group = await create_store_group(db_path)
    engine = PositionEngine(store_group.conn, store_group.task_store, store_group.write_lock)

    try:
        partitions = await store_group.task_store.list_partitions()
        changed = 0
        for partition in partitions:
            changed += await engine.repair_partition(partition)
        print(f"修复完成，检查 {len(partitions)} 个分区，改写 {changed} 条任务")
        return changed
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()

"""CLI 入口模块 -- python -m tcof.core <command>

支持的命令：
  audit                        检查重复 source_id 与复合 id
  clone-templates <project_id> 将模板目录克隆到指定项目
"""

import asyncio
import sys

from .audit import audit_tasks
from .catalog import load_catalog
from .config import get_catalog_path, get_db_path, load_retry_policy

_USAGE = """用法: python -m tcof.core <command>
命令:
  audit                        检查重复 source_id 与复合 id
  clone-templates <project_id> 将模板目录克隆到指定项目"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "audit":
        sys.exit(asyncio.run(run_audit()))
    elif command == "clone-templates":
        if len(sys.argv) < 3:
            print("缺少参数: project_id")
            sys.exit(1)
        asyncio.run(run_clone_templates(sys.argv[2]))
    else:
        print(f"未知命令: {command}")
        print("可用命令: audit, clone-templates")
        sys.exit(1)


async def run_audit() -> int:
    """执行审计，发现问题时返回非零退出码"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        report = await audit_tasks(store_group.task_store)
    finally:
        await store_group.conn.close()

    print(f"任务总数: {report.total_tasks}")
    print(f"重复 source_id 组: {len(report.duplicate_sources)}")
    for group in report.duplicate_sources:
        print(f"  {group.project_id} {group.source_id}: {', '.join(group.task_ids)}")
    print(f"复合 id 任务: {len(report.compound_ids)}")
    for item in report.compound_ids:
        print(f"  {item.project_id} {item.task_id} -> {item.canonical}")

    return 0 if report.clean else 2


async def run_clone_templates(project_id: str) -> None:
    """执行模板克隆"""
    from .store import create_store_group
    from .upsert import UpsertCoordinator

    catalog = load_catalog(get_catalog_path())
    print(f"模板数: {len(catalog)}")

    store_group = await create_store_group(get_db_path())
    try:
        coordinator = UpsertCoordinator(
            store_group.task_store,
            catalog=catalog,
            policy=load_retry_policy(),
        )
        created = await coordinator.clone_templates(project_id)
        print(f"克隆完成，新增 {len(created)} 条任务")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()

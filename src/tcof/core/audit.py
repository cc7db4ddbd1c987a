"""任务数据完整性审计

找出历史数据中的两类问题：
- 同一项目内 source_id 重复的任务组（唯一索引上线前写入的数据）
- 存储 id 本身是复合形式（带后缀）的任务
"""

from collections import defaultdict

from pydantic import BaseModel, Field

from .identifiers import parse
from .store.protocols import TaskStore


class DuplicateSourceGroup(BaseModel):
    project_id: str
    source_id: str
    task_ids: list[str]


class CompoundIdTask(BaseModel):
    project_id: str
    task_id: str
    canonical: str
    suffix: str


class AuditReport(BaseModel):
    """审计结果"""

    total_tasks: int = 0
    duplicate_sources: list[DuplicateSourceGroup] = Field(default_factory=list)
    compound_ids: list[CompoundIdTask] = Field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.duplicate_sources and not self.compound_ids


async def audit_tasks(store: TaskStore) -> AuditReport:
    """扫描全部任务并生成审计报告"""
    tasks = await store.list_all_tasks()

    by_source: dict[tuple[str, str], list[str]] = defaultdict(list)
    compound: list[CompoundIdTask] = []

    for task in tasks:
        if task.source_id is not None:
            by_source[(task.project_id, task.source_id)].append(task.id)

        ref = parse(task.id)
        if ref.suffix is not None:
            compound.append(
                CompoundIdTask(
                    project_id=task.project_id,
                    task_id=task.id,
                    canonical=ref.canonical,
                    suffix=ref.suffix,
                )
            )

    duplicates = [
        DuplicateSourceGroup(
            project_id=project_id,
            source_id=source_id,
            task_ids=sorted(task_ids),
        )
        for (project_id, source_id), task_ids in sorted(by_source.items())
        if len(task_ids) > 1
    ]

    return AuditReport(
        total_tasks=len(tasks),
        duplicate_sources=duplicates,
        compound_ids=compound,
    )

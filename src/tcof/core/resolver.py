"""TaskResolver -- 任务引用解析的唯一实现

给定 project_id 与客户端传入的原始引用，按顺序尝试：
1. 精确 id 匹配
2. 精确 source_id 匹配
3. 规范 id 匹配（剥离后缀；id 等于规范形式或原始引用的分隔前缀，
   或 id 以 “规范形式-” 开头）
4. 规范 source_id 匹配（同 3，作用于 source_id）
5. 均未命中 -> NOT_FOUND

每一步都先按 project_id 过滤再匹配，其他项目的同名 source_id
永远不会被返回，也不会作为回退结果。
"""

from dataclasses import dataclass

import structlog

from .exceptions import TaskNotFoundError
from .identifiers import ID_SEPARATOR, ParsedRef, parse
from .models.enums import ErrorKind, ResolutionMethod
from .models.task import Task
from .store.protocols import MatchField, TaskStore

log = structlog.get_logger()


def _most_specific(matches: list[Task], field: MatchField, exact: list[str]) -> list[Task]:
    """只保留最具体的命中：规范形式 > 较长前缀 > 较短前缀 > “规范形式-” 开头的值"""

    def rank(task: Task) -> int:
        value = getattr(task, MatchField(field).value)
        return exact.index(value) if value in exact else len(exact)

    best = min(rank(task) for task in matches)
    return [task for task in matches if rank(task) == best]


@dataclass(frozen=True)
class Resolution:
    """解析结果"""

    project_id: str
    ref: ParsedRef
    task: Task | None
    method: ResolutionMethod
    candidates: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return self.task is not None

    @property
    def integrity_warning(self) -> bool:
        """同一步命中多条记录（违反 source_id 项目内唯一）"""
        return len(self.candidates) > 1


class TaskResolver:
    """项目作用域内的任务引用解析器"""

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    async def resolve(self, project_id: str, raw_ref: str) -> Resolution:
        """解析引用，未命中时返回 method=NOT_FOUND 的结果而非抛异常"""
        ref = parse(raw_ref)
        canonical_values = [ref.canonical, *ref.prefixes()]
        canonical_prefix = f"{ref.canonical}{ID_SEPARATOR}"

        steps = (
            (ResolutionMethod.EXACT_ID, MatchField.ID, [raw_ref], None),
            (ResolutionMethod.EXACT_SOURCE_ID, MatchField.SOURCE_ID, [raw_ref], None),
            (ResolutionMethod.CANONICAL_ID, MatchField.ID, canonical_values, canonical_prefix),
            (
                ResolutionMethod.CANONICAL_SOURCE_ID,
                MatchField.SOURCE_ID,
                canonical_values,
                canonical_prefix,
            ),
        )

        for method, field, exact, prefix in steps:
            matches = await self._store.find_tasks(project_id, field, exact, prefix)
            # Store 实现出错时也不能越过项目边界
            matches = [task for task in matches if task.project_id == project_id]
            if matches:
                matches = _most_specific(matches, field, exact)
                return self._select(project_id, ref, method, matches)

        log.debug(
            "task_resolved",
            project_id=project_id,
            ref=raw_ref,
            method=ResolutionMethod.NOT_FOUND.value,
        )
        return Resolution(
            project_id=project_id,
            ref=ref,
            task=None,
            method=ResolutionMethod.NOT_FOUND,
        )

    async def resolve_or_raise(self, project_id: str, raw_ref: str) -> Task:
        """解析引用，未命中抛 TaskNotFoundError（用于不支持 upsert 的调用方）"""
        resolution = await self.resolve(project_id, raw_ref)
        if resolution.task is None:
            raise TaskNotFoundError(project_id, raw_ref)
        return resolution.task

    async def resolve_source(self, project_id: str, source_id: str) -> Task | None:
        """项目内按 source_id 精确查找（并发克隆冲突后回查使用）"""
        matches = await self._store.find_tasks(project_id, MatchField.SOURCE_ID, [source_id])
        matches = [task for task in matches if task.project_id == project_id]
        if not matches:
            return None
        ref = parse(source_id)
        return self._select(project_id, ref, ResolutionMethod.EXACT_SOURCE_ID, matches).task

    @staticmethod
    def _select(
        project_id: str,
        ref: ParsedRef,
        method: ResolutionMethod,
        matches: list[Task],
    ) -> Resolution:
        """多条命中时确定性地选择 id 最小者，并记录数据完整性告警"""
        chosen = min(matches, key=lambda task: task.id)
        candidates = tuple(sorted(task.id for task in matches))

        if len(matches) > 1:
            log.warning(
                "data_integrity_warning",
                kind=ErrorKind.DATA_INTEGRITY_WARNING.value,
                project_id=project_id,
                ref=ref.raw,
                method=method.value,
                candidates=list(candidates),
                selected=chosen.id,
            )
        else:
            log.debug(
                "task_resolved",
                project_id=project_id,
                ref=ref.raw,
                method=method.value,
                task_id=chosen.id,
            )

        return Resolution(
            project_id=project_id,
            ref=ref,
            task=chosen,
            method=method,
            candidates=candidates,
        )
